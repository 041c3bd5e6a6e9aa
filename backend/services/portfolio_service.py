"""Portfolio service - snapshot history and holdings for charts."""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from integrations.exceptions import ProviderError
from integrations.provider_protocol import BrokerageProviderClient
from models import DailyHolding, DailySnapshot, MonthlySnapshot, SnapTradeUser, YearlySnapshot

logger = logging.getLogger(__name__)

DAILY_WINDOW_DAYS = 30
MONTHLY_WINDOW_YEARS = 2


@dataclass
class ValuePoint:
    date: date
    portfolio_value_cents: int


@dataclass
class SnapshotHistory:
    """Chart series. ``monthly`` starts January 1st two years back."""

    daily: list[ValuePoint] = field(default_factory=list)
    monthly: list[ValuePoint] = field(default_factory=list)
    yearly: list[ValuePoint] = field(default_factory=list)


@dataclass
class HoldingPoint:
    date: date
    account_id: str
    symbol: str
    quantity: Decimal
    value_cents: int
    account_name: Optional[str] = None


class PortfolioService:
    """Reads the snapshot tables written by the nightly batch."""

    def __init__(self, brokerage_client: Optional[BrokerageProviderClient] = None):
        self._brokerage_client = brokerage_client

    def get_snapshot_history(
        self, db: Session, today: Optional[date] = None, account_id: Optional[str] = None
    ) -> SnapshotHistory:
        """Daily values for the last 30 days plus monthly and yearly values.

        Without ``account_id`` the series are portfolio totals: daily points
        come from DailySnapshot and monthly/yearly points sum every account.
        With it, daily points are that account's holdings total per day.
        """
        today = today or date.today()
        daily_start = today - timedelta(days=DAILY_WINDOW_DAYS)
        monthly_start = date(today.year - MONTHLY_WINDOW_YEARS, 1, 1)

        history = SnapshotHistory()

        if account_id is None:
            rows = (
                db.query(DailySnapshot.snapshot_date, DailySnapshot.portfolio_value_cents)
                .filter(DailySnapshot.snapshot_date >= daily_start, DailySnapshot.snapshot_date <= today)
                .order_by(DailySnapshot.snapshot_date)
                .all()
            )
        else:
            rows = (
                db.query(DailyHolding.holding_date, func.sum(DailyHolding.value_cents))
                .filter(
                    DailyHolding.account_id == account_id,
                    DailyHolding.holding_date >= daily_start,
                    DailyHolding.holding_date <= today,
                )
                .group_by(DailyHolding.holding_date)
                .order_by(DailyHolding.holding_date)
                .all()
            )
        history.daily = [ValuePoint(d, int(v or 0)) for d, v in rows]

        monthly = db.query(MonthlySnapshot.month, func.sum(MonthlySnapshot.portfolio_value_cents)).filter(
            MonthlySnapshot.month >= monthly_start, MonthlySnapshot.month <= today
        )
        yearly = db.query(YearlySnapshot.year, func.sum(YearlySnapshot.portfolio_value_cents))
        if account_id is not None:
            monthly = monthly.filter(MonthlySnapshot.account_id == account_id)
            yearly = yearly.filter(YearlySnapshot.account_id == account_id)

        history.monthly = [
            ValuePoint(m, int(v or 0))
            for m, v in monthly.group_by(MonthlySnapshot.month).order_by(MonthlySnapshot.month).all()
        ]
        history.yearly = [
            ValuePoint(date(y, 12, 31), int(v or 0))
            for y, v in yearly.group_by(YearlySnapshot.year).order_by(YearlySnapshot.year).all()
        ]
        return history

    @staticmethod
    def get_holdings_history(
        db: Session,
        today: Optional[date] = None,
        account_id: Optional[str] = None,
        symbol: Optional[str] = None,
    ) -> list[HoldingPoint]:
        """DailyHolding rows for the last 30 days, optionally filtered."""
        today = today or date.today()
        query = db.query(DailyHolding).filter(
            DailyHolding.holding_date >= today - timedelta(days=DAILY_WINDOW_DAYS),
            DailyHolding.holding_date <= today,
        )
        if account_id:
            query = query.filter(DailyHolding.account_id == account_id)
        if symbol:
            query = query.filter(DailyHolding.symbol == symbol)
        rows = query.order_by(DailyHolding.holding_date, DailyHolding.account_id, DailyHolding.symbol).all()
        return [
            HoldingPoint(
                date=r.holding_date,
                account_id=r.account_id,
                symbol=r.symbol,
                quantity=Decimal(r.quantity or 0),
                value_cents=r.value_cents,
            )
            for r in rows
        ]

    def get_current_holdings(self, db: Session) -> list[HoldingPoint]:
        """Live positions across every brokerage account.

        An account whose positions cannot be fetched is left out.

        Raises:
            ProviderError: The account list could not be fetched.
        """
        if self._brokerage_client is None:
            return []
        user = db.query(SnapTradeUser).first()
        if user is None:
            return []

        today = date.today()
        holdings = []
        for account in self._brokerage_client.list_accounts(user.user_id, user.user_secret):
            try:
                positions = self._brokerage_client.list_positions(user.user_id, user.user_secret, account.id)
            except ProviderError as e:
                logger.warning("Positions for account %s unavailable: %s", account.id, e)
                continue
            holdings.extend(
                HoldingPoint(
                    date=today,
                    account_id=account.id,
                    account_name=account.name,
                    symbol=p.symbol,
                    quantity=p.quantity,
                    value_cents=p.value_cents,
                )
                for p in positions
            )
        return holdings
