"""Account service - current balances across linked institutions and the net worth breakdown."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from integrations.exceptions import ProviderError
from integrations.provider_protocol import BrokerageAccount, BrokerageProviderClient
from models import PlaidAccount, SnapTradeUser

logger = logging.getLogger(__name__)

LIABILITY_TYPES = frozenset({"credit", "loan"})


@dataclass
class AccountView:
    """One account as shown to the owner. Liabilities carry a negative balance."""

    provider: str
    account_id: str
    name: str
    type: str
    balance_cents: int
    is_liability: bool = False
    item_id: Optional[str] = None
    mask: Optional[str] = None
    subtype: Optional[str] = None


@dataclass
class NetWorth:
    """Accounts plus the cash / investments / liabilities breakdown in cents."""

    accounts: list[AccountView] = field(default_factory=list)
    cash_cents: int = 0
    investments_cents: int = 0
    liabilities_cents: int = 0
    brokerage_unavailable: bool = False

    @property
    def net_worth_cents(self) -> int:
        return self.cash_cents + self.investments_cents - self.liabilities_cents


def is_liability(account_type: Optional[str]) -> bool:
    return account_type in LIABILITY_TYPES


def mask_from_number(number: Optional[str]) -> Optional[str]:
    """Last four characters of an account number, if it has that many."""
    if number and len(number) >= 4:
        return number[-4:]
    return None


class AccountService:
    """Builds the accounts overview.

    Bank accounts are read from the store (balances as of the last link).
    Brokerage accounts are listed live; if the brokerage provider is
    unavailable the overview is returned without them.
    """

    def __init__(self, brokerage_client: Optional[BrokerageProviderClient] = None):
        self._brokerage_client = brokerage_client

    def get_net_worth(self, db: Session) -> NetWorth:
        result = NetWorth()

        for account in db.query(PlaidAccount).order_by(PlaidAccount.name).all():
            raw = account.current_balance_cents or 0
            liability = is_liability(account.type)
            if liability:
                result.liabilities_cents += raw
            else:
                # Everything that is not owed counts as cash, including
                # bank-side investment accounts.
                result.cash_cents += raw
            result.accounts.append(
                AccountView(
                    provider="plaid",
                    account_id=account.account_id,
                    name=account.name,
                    type=account.type,
                    balance_cents=-raw if liability else raw,
                    is_liability=liability,
                    item_id=account.item_id,
                    mask=account.mask,
                    subtype=account.subtype,
                )
            )

        for account in self._brokerage_accounts(db, result):
            result.investments_cents += account.balance_cents
            result.accounts.append(
                AccountView(
                    provider="snaptrade",
                    account_id=account.id,
                    name=account.name,
                    type="investment",
                    balance_cents=account.balance_cents,
                    mask=mask_from_number(account.number),
                )
            )

        return result

    def _brokerage_accounts(self, db: Session, result: NetWorth) -> list[BrokerageAccount]:
        if self._brokerage_client is None:
            return []
        user = db.query(SnapTradeUser).first()
        if user is None:
            return []
        try:
            return self._brokerage_client.list_accounts(user.user_id, user.user_secret)
        except ProviderError as e:
            logger.warning("Brokerage accounts unavailable: %s", e)
            result.brokerage_unavailable = True
            return []
