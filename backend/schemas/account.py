"""Pydantic schemas for the accounts overview."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class AccountResponse(BaseModel):
    """One bank or brokerage account. Liabilities have a negative balance."""

    provider: str
    account_id: str
    name: str
    type: str
    balance_cents: int
    is_liability: bool = False
    item_id: Optional[str] = None
    mask: Optional[str] = None
    subtype: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AccountsResponse(BaseModel):
    """Accounts plus the net worth breakdown (cash + investments - liabilities)."""

    accounts: list[AccountResponse]
    net_worth_cents: int
    cash_cents: int
    investments_cents: int
    liabilities_cents: int
    brokerage_unavailable: bool = False
