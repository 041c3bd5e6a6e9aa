"""Pydantic schemas for linking bank items and brokerage connections."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LinkTokenResponse(BaseModel):
    link_token: str


class ReconnectLinkTokenRequest(BaseModel):
    item_id: str = Field(min_length=1)


class ExchangeTokenRequest(BaseModel):
    """Public token and institution metadata returned by Link."""

    public_token: str = Field(min_length=1)
    institution_id: Optional[str] = None
    institution_name: Optional[str] = None


class ExchangeTokenResponse(BaseModel):
    item_id: str
    institution_name: Optional[str] = None
    accounts_linked: int = 0


class PlaidItemResponse(BaseModel):
    """A linked bank item. The access token is never returned."""

    item_id: str
    institution_id: Optional[str] = None
    institution_name: Optional[str] = None
    status: str
    last_error_code: Optional[str] = None
    new_transactions_pending: bool = False
    last_synced_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BrokerageConnectionResponse(BaseModel):
    connection_id: str
    brokerage: str
    status: str
    last_checked: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LinksResponse(BaseModel):
    plaid_items: list[PlaidItemResponse] = []
    snaptrade_connections: list[BrokerageConnectionResponse] = []


class ConnectUrlResponse(BaseModel):
    redirect_uri: str
