"""PlaidItem model - one linked bank institution and its sync state."""

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utcnow


class PlaidItem(Base):
    """A Plaid Item representing a linked financial institution.

    ``transactions_cursor`` is the opaque position in the provider's change
    feed. ``None`` means the item has never completed a sync. The cursor only
    ever moves forward, and only together with clearing
    ``new_transactions_pending``.
    """

    __tablename__ = "plaid_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    item_id = Column(String, unique=True, index=True, nullable=False)
    access_token = Column(String, nullable=False)
    institution_id = Column(String, nullable=True)
    institution_name = Column(String, nullable=True)
    status = Column(String, nullable=False, default="OK")  # "OK" | "LOGIN_REQUIRED"
    last_error_code = Column(String, nullable=True)
    transactions_cursor = Column(String, nullable=True)
    new_transactions_pending = Column(Boolean, nullable=False, default=False)
    last_synced_at = Column(DateTime, nullable=True)
    last_updated = Column(DateTime, default=utcnow, onupdate=utcnow)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    accounts = relationship(
        "PlaidAccount",
        back_populates="item",
        cascade="all, delete-orphan",
    )
    transactions = relationship(
        "Transaction",
        back_populates="item",
        cascade="all, delete-orphan",
    )
