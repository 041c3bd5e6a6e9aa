"""Snapshot service - daily brokerage snapshots and the month-end rollup."""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from integrations.exceptions import ProviderError
from integrations.provider_protocol import BrokerageAccount, BrokerageProviderClient, BrokeragePosition
from models import DailyHolding, DailySnapshot, MonthlySnapshot, SnapTradeUser
from utils.dates import is_last_day_of_month, month_start

logger = logging.getLogger(__name__)


@dataclass
class SnapshotResult:
    """Outcome of one daily snapshot pass."""

    snapshot_date: date
    daily_written: bool = False
    monthly_written: int = 0
    accounts: int = 0
    holdings_written: int = 0
    portfolio_value_cents: int = 0
    position_errors: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when every account's positions were fetched."""
        return not self.position_errors


def consolidate_positions(positions: list[BrokeragePosition]) -> dict[str, tuple[Decimal, int]]:
    """Merge positions that share a symbol into (quantity, value_cents)."""
    merged: dict[str, tuple[Decimal, int]] = {}
    for position in positions:
        quantity, value = merged.get(position.symbol, (Decimal("0"), 0))
        merged[position.symbol] = (quantity + position.quantity, value + position.value_cents)
    return merged


class SnapshotService:
    """Writes today's DailyHolding/DailySnapshot rows and, on the last day
    of a month, that month's MonthlySnapshot rows."""

    def __init__(self, brokerage_client: BrokerageProviderClient):
        self._client = brokerage_client

    def write_daily_snapshots(
        self, db: Session, user: SnapTradeUser, today: Optional[date] = None
    ) -> SnapshotResult:
        """Capture today's brokerage state.

        The account list (with balances) must succeed; a failure propagates
        and nothing is written. A failed position fetch for one account is
        recorded in ``position_errors`` and that account contributes no
        holdings, but its balance still counts toward the daily total.

        Args:
            db: Database session
            user: The registered brokerage user
            today: Snapshot date (defaults to the local calendar date)

        Returns:
            What was written.
        """
        today = today or date.today()
        result = SnapshotResult(snapshot_date=today)

        accounts = self._client.list_accounts(user.user_id, user.user_secret)
        if not accounts:
            logger.info("No brokerage accounts; skipping snapshot for %s", today)
            return result
        result.accounts = len(accounts)

        for account in accounts:
            self._write_account_holdings(db, user, account, today, result)

        # month-end rows use the same balances as the daily total
        account_totals = {account.id: account.balance_cents for account in accounts}
        result.portfolio_value_cents = sum(account_totals.values())
        self._upsert_daily_snapshot(db, today, result.portfolio_value_cents)
        result.daily_written = True

        if is_last_day_of_month(today):
            result.monthly_written = self._write_monthly(db, today, account_totals)

        db.commit()
        logger.info(
            "Snapshot %s: %d accounts, %d holdings, total %d cents, %d monthly rows",
            today, result.accounts, result.holdings_written,
            result.portfolio_value_cents, result.monthly_written,
        )
        return result

    def _write_account_holdings(
        self,
        db: Session,
        user: SnapTradeUser,
        account: BrokerageAccount,
        today: date,
        result: SnapshotResult,
    ) -> None:
        """Upsert one account's holdings for today."""
        try:
            positions = self._client.list_positions(user.user_id, user.user_secret, account.id)
        except ProviderError as exc:
            logger.warning("Positions for account %s failed: %s", account.id, exc)
            result.position_errors.append(f"{account.id}: {exc}")
            return

        merged = consolidate_positions(positions)
        existing = {
            row.symbol: row
            for row in db.query(DailyHolding).filter_by(holding_date=today, account_id=account.id).all()
        }
        for symbol, (quantity, value_cents) in merged.items():
            row = existing.get(symbol)
            if row is None:
                row = DailyHolding(holding_date=today, account_id=account.id, symbol=symbol)
                db.add(row)
            row.quantity = quantity
            row.value_cents = value_cents
            result.holdings_written += 1
        # A same-day rerun replaces the account's holdings, so drop sold symbols
        for symbol, row in existing.items():
            if symbol not in merged:
                db.delete(row)
        db.flush()

    @staticmethod
    def _upsert_daily_snapshot(db: Session, today: date, value_cents: int) -> DailySnapshot:
        snapshot = db.query(DailySnapshot).filter_by(snapshot_date=today).first()
        if snapshot is None:
            snapshot = DailySnapshot(snapshot_date=today, portfolio_value_cents=value_cents)
            db.add(snapshot)
        else:
            snapshot.portfolio_value_cents = value_cents
        db.flush()
        return snapshot

    @staticmethod
    def _write_monthly(db: Session, today: date, account_totals: dict[str, int]) -> int:
        """Upsert one MonthlySnapshot per account for today's month."""
        month = month_start(today)
        existing = {
            row.account_id: row
            for row in db.query(MonthlySnapshot).filter_by(month=month).all()
        }
        for account_id, value_cents in account_totals.items():
            row = existing.get(account_id)
            if row is None:
                db.add(MonthlySnapshot(month=month, account_id=account_id, portfolio_value_cents=value_cents))
            else:
                row.portfolio_value_cents = value_cents
        db.flush()
        logger.info("Month-end rollup for %s: %d accounts", month, len(account_totals))
        return len(account_totals)
