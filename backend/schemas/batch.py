"""Pydantic schemas for the scheduled batch endpoints."""

import datetime as dt

from pydantic import BaseModel, ConfigDict


class BatchResultResponse(BaseModel):
    """Summary of one batch run."""

    items_synced: int
    items_failed: int
    daily_snapshot_written: bool
    monthly_snapshots_written: int
    errors: list[str] = []

    model_config = ConfigDict(from_attributes=True)


class RetentionResultResponse(BaseModel):
    run_date: dt.date
    dry_run: bool
    daily_months_rolled: list[str]
    monthly_rows_written: int
    years_rolled: list[int]
    yearly_rows_written: int
    transaction_months_rolled: list[str]
    summary_rows_written: int
    rows_deleted: int
    archives: list[str]
    errors: list[str]

    model_config = ConfigDict(from_attributes=True)
