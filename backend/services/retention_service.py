"""Retention service - rolls aged rows into coarser aggregates, then deletes them.

Three passes, each processed one unit (a month or a year) at a time and in a
strict order per unit:

1. export the rows to the archive directory
2. make sure the aggregate rows exist (written if missing, never recomputed)
3. delete the detailed rows

Steps 2 and 3 commit together, so either both happen or neither. A unit
whose export or confirmation fails is skipped and reported; its rows stay.

* Daily snapshots and holdings older than the previous calendar month roll
  into MonthlySnapshot rows.
* Monthly snapshots older than twelve months roll into YearlySnapshot rows,
  one whole year at a time.
* Transactions older than three months roll into TransactionMonthlySummary
  rows per category.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from config import settings
from models import (
    DailyHolding,
    DailySnapshot,
    MonthlySnapshot,
    Transaction,
    TransactionMonthlySummary,
    YearlySnapshot,
)
from services.archive_service import ArchiveError, ArchiveService
from utils.dates import add_months, month_start, retention_cutoff

logger = logging.getLogger(__name__)


class RetentionError(Exception):
    """A unit could not be rolled up safely; its rows were kept."""


@dataclass
class RetentionResult:
    """Summary of one retention run."""

    run_date: date
    dry_run: bool = False
    daily_months_rolled: list[str] = field(default_factory=list)
    monthly_rows_written: int = 0
    years_rolled: list[int] = field(default_factory=list)
    yearly_rows_written: int = 0
    transaction_months_rolled: list[str] = field(default_factory=list)
    summary_rows_written: int = 0
    rows_deleted: int = 0
    archives: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _distinct_months(dates: list[date]) -> list[date]:
    return sorted({month_start(d) for d in dates})


@dataclass
class _CategoryTotals:
    """Running totals for one category of a month, split by sign."""

    inflow_cents: int = 0
    outflow_cents: int = 0
    inflow_count: int = 0
    outflow_count: int = 0

    def add(self, amount_cents: int) -> None:
        if amount_cents < 0:
            self.inflow_cents += -amount_cents
            self.inflow_count += 1
        else:
            self.outflow_cents += amount_cents
            self.outflow_count += 1

    def apply(self, summary: TransactionMonthlySummary) -> None:
        summary.inflow_cents += self.inflow_cents
        summary.outflow_cents += self.outflow_cents
        summary.inflow_count += self.inflow_count
        summary.outflow_count += self.outflow_count
        summary.total_cents += self.outflow_cents - self.inflow_cents
        summary.transaction_count += self.inflow_count + self.outflow_count


class RetentionService:
    """Applies the retention policy to the snapshot and transaction tables."""

    def __init__(
        self,
        archive: Optional[ArchiveService] = None,
        daily_months: Optional[int] = None,
        monthly_months: Optional[int] = None,
        transaction_months: Optional[int] = None,
    ):
        self._archive = archive or ArchiveService(settings.ARCHIVE_DIR)
        self._daily_months = daily_months or settings.DAILY_RETENTION_MONTHS
        self._monthly_months = monthly_months or settings.MONTHLY_RETENTION_MONTHS
        self._transaction_months = transaction_months or settings.TRANSACTION_RETENTION_MONTHS

    def run(self, db: Session, today: Optional[date] = None, dry_run: bool = False) -> RetentionResult:
        """Run all three passes.

        Args:
            db: Database session
            today: Reference date for the retention windows
            dry_run: Only report which units are due; write nothing

        Returns:
            What was rolled up, archived and deleted.
        """
        today = today or date.today()
        result = RetentionResult(run_date=today, dry_run=dry_run)

        self._roll_daily(db, today, result)
        self._roll_monthly(db, today, result)
        self._roll_transactions(db, today, result)

        logger.info(
            "Retention %s%s: daily months %s, years %s, transaction months %s, %d rows deleted, %d errors",
            today, " (dry run)" if dry_run else "",
            result.daily_months_rolled, result.years_rolled,
            result.transaction_months_rolled, result.rows_deleted, len(result.errors),
        )
        return result

    def _run_unit(self, db: Session, label: str, result: RetentionResult, fn) -> bool:
        """Run one unit, isolating archive and confirmation failures."""
        try:
            fn()
        except (ArchiveError, RetentionError) as exc:
            db.rollback()
            logger.error("Retention %s skipped: %s", label, exc)
            result.errors.append(f"{label}: {exc}")
            return False
        db.commit()
        return True

    # ------------------------------------------------------------------
    # Daily -> monthly
    # ------------------------------------------------------------------

    def _roll_daily(self, db: Session, today: date, result: RetentionResult) -> None:
        cutoff = retention_cutoff(today, self._daily_months)
        snapshot_dates = [
            d for (d,) in db.query(DailySnapshot.snapshot_date)
            .filter(DailySnapshot.snapshot_date < cutoff).all()
        ]
        holding_dates = [
            d for (d,) in db.query(DailyHolding.holding_date)
            .filter(DailyHolding.holding_date < cutoff).distinct().all()
        ]

        for month in _distinct_months(snapshot_dates + holding_dates):
            label = f"daily {month:%Y-%m}"
            if result.dry_run:
                result.daily_months_rolled.append(f"{month:%Y-%m}")
                continue
            if self._run_unit(db, label, result, lambda m=month: self._roll_daily_month(db, m, today, result)):
                result.daily_months_rolled.append(f"{month:%Y-%m}")

    def _roll_daily_month(self, db: Session, month: date, today: date, result: RetentionResult) -> None:
        next_month = add_months(month, 1)
        snapshots = (
            db.query(DailySnapshot)
            .filter(DailySnapshot.snapshot_date >= month, DailySnapshot.snapshot_date < next_month)
            .order_by(DailySnapshot.snapshot_date)
            .all()
        )
        holdings = (
            db.query(DailyHolding)
            .filter(DailyHolding.holding_date >= month, DailyHolding.holding_date < next_month)
            .order_by(DailyHolding.holding_date, DailyHolding.account_id, DailyHolding.symbol)
            .all()
        )

        # 1. export
        result.archives.append(str(self._archive.export(
            f"daily_snapshots_{month:%Y-%m}_run-{today.isoformat()}.csv",
            ["date", "portfolio_value_cents"],
            [(s.snapshot_date.isoformat(), s.portfolio_value_cents) for s in snapshots],
        )))
        result.archives.append(str(self._archive.export(
            f"daily_holdings_{month:%Y-%m}_run-{today.isoformat()}.csv",
            ["date", "account_id", "symbol", "quantity", "value_cents"],
            [
                (h.holding_date.isoformat(), h.account_id, h.symbol, str(h.quantity), h.value_cents)
                for h in holdings
            ],
        )))

        # 2. confirm monthly rows exist, writing missing ones from the
        # latest day each account has holdings for in this month
        latest_day: dict[str, date] = {}
        for h in holdings:
            if h.holding_date > latest_day.get(h.account_id, date.min):
                latest_day[h.account_id] = h.holding_date
        totals: dict[str, int] = defaultdict(int)
        for h in holdings:
            if h.holding_date == latest_day[h.account_id]:
                totals[h.account_id] += h.value_cents

        existing = {
            row.account_id for row in db.query(MonthlySnapshot).filter_by(month=month).all()
        }
        for account_id, value_cents in sorted(totals.items()):
            if account_id not in existing:
                db.add(MonthlySnapshot(month=month, account_id=account_id, portfolio_value_cents=value_cents))
                result.monthly_rows_written += 1
        db.flush()

        confirmed = {
            row.account_id for row in db.query(MonthlySnapshot).filter_by(month=month).all()
        }
        missing = set(totals) - confirmed
        if missing:
            raise RetentionError(f"monthly rows missing for accounts {sorted(missing)}")
        if not confirmed and any(s.portfolio_value_cents for s in snapshots):
            raise RetentionError("daily totals exist but no account holdings to roll into monthly rows")

        # 3. delete
        deleted = db.query(DailyHolding).filter(
            DailyHolding.holding_date >= month, DailyHolding.holding_date < next_month
        ).delete(synchronize_session=False)
        deleted += db.query(DailySnapshot).filter(
            DailySnapshot.snapshot_date >= month, DailySnapshot.snapshot_date < next_month
        ).delete(synchronize_session=False)
        result.rows_deleted += deleted

    # ------------------------------------------------------------------
    # Monthly -> yearly
    # ------------------------------------------------------------------

    def _roll_monthly(self, db: Session, today: date, result: RetentionResult) -> None:
        cutoff = retention_cutoff(today, self._monthly_months)
        months = [
            m for (m,) in db.query(MonthlySnapshot.month)
            .filter(MonthlySnapshot.month < cutoff).distinct().all()
        ]
        # Only whole years leave the window.
        years = sorted({m.year for m in months if date(m.year, 12, 1) < cutoff})

        for year in years:
            label = f"monthly {year}"
            if result.dry_run:
                result.years_rolled.append(year)
                continue
            if self._run_unit(db, label, result, lambda y=year: self._roll_year(db, y, today, result)):
                result.years_rolled.append(year)

    def _roll_year(self, db: Session, year: int, today: date, result: RetentionResult) -> None:
        start, end = date(year, 1, 1), date(year + 1, 1, 1)
        rows = (
            db.query(MonthlySnapshot)
            .filter(MonthlySnapshot.month >= start, MonthlySnapshot.month < end)
            .order_by(MonthlySnapshot.month, MonthlySnapshot.account_id)
            .all()
        )

        # 1. export
        result.archives.append(str(self._archive.export(
            f"monthly_snapshots_{year}_run-{today.isoformat()}.csv",
            ["month", "account_id", "portfolio_value_cents"],
            [(r.month.isoformat(), r.account_id, r.portfolio_value_cents) for r in rows],
        )))

        # 2. confirm yearly rows: each account's latest month in the year
        year_end: dict[str, MonthlySnapshot] = {}
        for r in rows:
            year_end[r.account_id] = r  # rows are ordered by month

        existing = {row.account_id for row in db.query(YearlySnapshot).filter_by(year=year).all()}
        for account_id, row in sorted(year_end.items()):
            if account_id not in existing:
                db.add(YearlySnapshot(year=year, account_id=account_id, portfolio_value_cents=row.portfolio_value_cents))
                result.yearly_rows_written += 1
        db.flush()

        confirmed = {row.account_id for row in db.query(YearlySnapshot).filter_by(year=year).all()}
        missing = set(year_end) - confirmed
        if missing:
            raise RetentionError(f"yearly rows missing for accounts {sorted(missing)}")

        # 3. delete
        result.rows_deleted += db.query(MonthlySnapshot).filter(
            MonthlySnapshot.month >= start, MonthlySnapshot.month < end
        ).delete(synchronize_session=False)

    # ------------------------------------------------------------------
    # Transactions -> monthly per-category summary
    # ------------------------------------------------------------------

    def _roll_transactions(self, db: Session, today: date, result: RetentionResult) -> None:
        cutoff = retention_cutoff(today, self._transaction_months)
        dates = [
            d for (d,) in db.query(Transaction.date)
            .filter(Transaction.date < cutoff).distinct().all()
        ]

        for month in _distinct_months(dates):
            label = f"transactions {month:%Y-%m}"
            if result.dry_run:
                result.transaction_months_rolled.append(f"{month:%Y-%m}")
                continue
            if self._run_unit(db, label, result, lambda m=month: self._roll_transaction_month(db, m, today, result)):
                result.transaction_months_rolled.append(f"{month:%Y-%m}")

    def _roll_transaction_month(self, db: Session, month: date, today: date, result: RetentionResult) -> None:
        next_month = add_months(month, 1)
        rows = (
            db.query(Transaction)
            .filter(Transaction.date >= month, Transaction.date < next_month)
            .order_by(Transaction.date, Transaction.plaid_transaction_id)
            .all()
        )

        # 1. export
        result.archives.append(str(self._archive.export(
            f"transactions_{month:%Y-%m}_run-{today.isoformat()}.csv",
            [
                "transaction_id", "item_id", "account_id", "date", "amount_cents",
                "name", "merchant_name", "provider_category", "category_id", "pending",
            ],
            [
                (
                    t.plaid_transaction_id, t.item_id, t.plaid_account_id, t.date.isoformat(),
                    t.amount_cents, t.name, t.merchant_name or "", t.provider_category or "",
                    t.category_id if t.category_id is not None else "", t.pending,
                )
                for t in rows
            ],
        )))

        # 2. fold into the per-category summary. Summary writes and deletes
        # commit together, so an existing row only ever holds transactions
        # that are already gone and the new ones are added to it.
        totals: dict[Optional[int], _CategoryTotals] = defaultdict(_CategoryTotals)
        for t in rows:
            totals[t.category_id].add(t.amount_cents)

        for category_id, folded in totals.items():
            summary = (
                db.query(TransactionMonthlySummary)
                .filter(
                    TransactionMonthlySummary.month == month,
                    TransactionMonthlySummary.category_id.is_(None)
                    if category_id is None
                    else TransactionMonthlySummary.category_id == category_id,
                )
                .first()
            )
            if summary is None:
                summary = TransactionMonthlySummary(
                    month=month,
                    category_id=category_id,
                    total_cents=0,
                    transaction_count=0,
                    inflow_cents=0,
                    outflow_cents=0,
                    inflow_count=0,
                    outflow_count=0,
                )
                db.add(summary)
                result.summary_rows_written += 1
            folded.apply(summary)
        db.flush()

        summarized = (
            db.query(func.coalesce(func.sum(TransactionMonthlySummary.transaction_count), 0))
            .filter(TransactionMonthlySummary.month == month)
            .scalar()
        )
        if summarized < len(rows):
            raise RetentionError(
                f"summary covers {summarized} transactions but {len(rows)} are due for deletion"
            )

        # 3. delete
        result.rows_deleted += db.query(Transaction).filter(
            Transaction.date >= month, Transaction.date < next_month
        ).delete(synchronize_session=False)
