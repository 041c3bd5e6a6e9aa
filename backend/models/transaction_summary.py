"""TransactionMonthlySummary model - per-category monthly totals of archived transactions."""

from sqlalchemy import BigInteger, Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint

from database import Base
from models.utils import generate_uuid, utcnow


class TransactionMonthlySummary(Base):
    """Totals and counts of a month's transactions in one category.

    Written by retention before the detailed transactions are deleted.
    Inflows and outflows are kept apart so the cash-flow summary of a
    rolled-up month matches what it reported from the detail rows.
    A ``NULL`` category holds transactions that were never categorized.
    """

    __tablename__ = "transaction_monthly_summaries"
    __table_args__ = (
        UniqueConstraint("month", "category_id", name="uix_transaction_monthly_summary"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    month = Column(Date, nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    total_cents = Column(BigInteger, nullable=False, default=0)
    transaction_count = Column(Integer, nullable=False, default=0)
    # provider sign: inflows are the negative amounts, kept as a positive sum
    inflow_cents = Column(BigInteger, nullable=False, default=0)
    outflow_cents = Column(BigInteger, nullable=False, default=0)
    inflow_count = Column(Integer, nullable=False, default=0)
    outflow_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
