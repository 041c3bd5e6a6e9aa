"""Transaction model - bank/card transactions mirrored from the Plaid change feed."""

from sqlalchemy import BigInteger, Boolean, Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utcnow


class Transaction(Base):
    """A single bank transaction.

    ``amount_cents`` keeps the provider's sign convention: positive is money
    leaving the account, negative is money coming in. Rows are keyed by
    ``plaid_transaction_id``; a modification overwrites every field.
    """

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    plaid_transaction_id = Column(String, unique=True, index=True, nullable=False)
    item_id = Column(
        String,
        ForeignKey("plaid_items.item_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    plaid_account_id = Column(String, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    name = Column(String, nullable=False, default="")
    merchant_name = Column(String, nullable=True)
    provider_category = Column(String, nullable=True)  # provider's primary category label
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    pending = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    item = relationship("PlaidItem", back_populates="transactions")
    category = relationship("Category")
