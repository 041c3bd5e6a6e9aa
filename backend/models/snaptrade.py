"""SnapTrade user and connection models."""

from sqlalchemy import Column, DateTime, String

from database import Base
from models.utils import generate_uuid, utcnow


class SnapTradeUser(Base):
    """The single registered SnapTrade user that owns every brokerage connection."""

    __tablename__ = "snaptrade_users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String, unique=True, nullable=False)
    user_secret = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class SnapTradeConnection(Base):
    """A brokerage authorization and its health status.

    Status escalates ``OK`` -> ``ACCOUNT_FETCH_ERROR`` -> ``CONNECTION_ERROR``
    on consecutive failures and resets to ``OK`` on any success.
    """

    __tablename__ = "snaptrade_connections"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    connection_id = Column(String, unique=True, index=True, nullable=False)
    brokerage = Column(String, nullable=False, default="Unknown")
    status = Column(String, nullable=False, default="OK")
    last_checked = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
