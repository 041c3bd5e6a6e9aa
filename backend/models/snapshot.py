"""Portfolio snapshot models at daily, monthly and yearly granularity."""

from decimal import Decimal

from sqlalchemy import BigInteger, Column, Date, DateTime, Integer, Numeric, String, UniqueConstraint

from database import Base
from models.utils import generate_uuid, utcnow


class DailySnapshot(Base):
    """Total brokerage value for one calendar day."""

    __tablename__ = "daily_snapshots"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    snapshot_date = Column(Date, unique=True, nullable=False, index=True)
    portfolio_value_cents = Column(BigInteger, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class DailyHolding(Base):
    """One position in one account on one day."""

    __tablename__ = "daily_holdings"
    __table_args__ = (
        UniqueConstraint(
            "holding_date", "account_id", "symbol",
            name="uix_daily_holding",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    holding_date = Column(Date, nullable=False, index=True)
    account_id = Column(String, nullable=False, index=True)
    symbol = Column(String, nullable=False, index=True)
    quantity = Column(Numeric(20, 8), nullable=False, default=Decimal("0"))
    value_cents = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)


class MonthlySnapshot(Base):
    """End-of-month value of one account.

    ``month`` is always the first day of the month. The portfolio total for a
    month is the sum over its accounts.
    """

    __tablename__ = "monthly_snapshots"
    __table_args__ = (
        UniqueConstraint("month", "account_id", name="uix_monthly_snapshot"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    month = Column(Date, nullable=False, index=True)
    account_id = Column(String, nullable=False, index=True)
    portfolio_value_cents = Column(BigInteger, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class YearlySnapshot(Base):
    """Year-end value of one account, rolled up from monthly rows."""

    __tablename__ = "yearly_snapshots"
    __table_args__ = (
        UniqueConstraint("year", "account_id", name="uix_yearly_snapshot"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    year = Column(Integer, nullable=False, index=True)
    account_id = Column(String, nullable=False)
    portfolio_value_cents = Column(BigInteger, nullable=False)
    created_at = Column(DateTime, default=utcnow)
