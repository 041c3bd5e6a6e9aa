"""PlaidAccount model - a bank or credit account belonging to a PlaidItem."""

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utcnow


class PlaidAccount(Base):
    """An account discovered when a Plaid Item was linked.

    ``current_balance_cents`` follows Plaid's convention: for credit and loan
    accounts it is the amount owed.
    """

    __tablename__ = "plaid_accounts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    item_id = Column(
        String,
        ForeignKey("plaid_items.item_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    mask = Column(String, nullable=True)
    type = Column(String, nullable=False)  # depository | credit | loan | investment | other
    subtype = Column(String, nullable=True)
    current_balance_cents = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    item = relationship("PlaidItem", back_populates="accounts")
