"""Pydantic schemas for portfolio history."""

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ValuePointResponse(BaseModel):
    date: dt.date
    portfolio_value_cents: int

    model_config = ConfigDict(from_attributes=True)


class SnapshotHistoryResponse(BaseModel):
    daily: list[ValuePointResponse]
    monthly: list[ValuePointResponse]
    yearly: list[ValuePointResponse] = []


class HoldingPointResponse(BaseModel):
    date: dt.date
    account_id: str
    account_name: Optional[str] = None
    symbol: str
    quantity: Decimal
    value_cents: int

    model_config = ConfigDict(from_attributes=True)


class HoldingsHistoryResponse(BaseModel):
    daily: list[HoldingPointResponse]


class CurrentHoldingsResponse(BaseModel):
    holdings: list[HoldingPointResponse]
