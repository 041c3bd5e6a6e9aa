"""Provider capability interfaces.

Two capabilities are consumed by the services: a bank provider that exposes
a cursor-based transaction change feed (Plaid), and a brokerage provider
that exposes connections, accounts with balances, and positions
(SnapTrade). Services depend only on these protocols so tests can swap in
in-memory fakes.

All money crosses this boundary as integer cents.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol


# ------------------------------------------------------------------
# Bank provider value types
# ------------------------------------------------------------------


@dataclass
class BankTransaction:
    """A transaction as delivered by the change feed (added or modified)."""

    transaction_id: str
    account_id: str
    date: date
    amount_cents: int  # provider sign: positive = outflow
    name: str
    merchant_name: str | None = None
    primary_category: str | None = None  # provider's primary category label
    pending: bool = False


@dataclass
class TransactionsSyncPage:
    """One page of the change feed.

    ``next_cursor`` is the position after this page; ``has_more`` tells the
    caller to request again with it.
    """

    added: list[BankTransaction] = field(default_factory=list)
    modified: list[BankTransaction] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)  # transaction ids
    next_cursor: str = ""
    has_more: bool = False


@dataclass
class BankAccount:
    """An account belonging to a linked bank item."""

    account_id: str
    name: str
    type: str
    mask: str | None = None
    subtype: str | None = None
    current_balance_cents: int = 0


@dataclass
class TokenExchangeResult:
    """Outcome of exchanging a Link public token."""

    access_token: str
    item_id: str


@dataclass
class ItemStatus:
    """Provider-side state of a linked item.

    ``error_code`` is None when the provider reports the item healthy.
    """

    item_id: str
    error_code: str | None = None
    error_type: str | None = None


# ------------------------------------------------------------------
# Brokerage provider value types
# ------------------------------------------------------------------


@dataclass
class BrokerageConnection:
    """A brokerage authorization held by the aggregator."""

    id: str
    brokerage_name: str
    brokerage_slug: str | None = None
    created_at: datetime | None = None
    disabled: bool = False


@dataclass
class BrokerageAccount:
    """A brokerage account and its total balance."""

    id: str
    name: str
    number: str | None = None
    institution: str | None = None
    connection_id: str | None = None
    balance_cents: int = 0
    currency: str = "USD"


@dataclass
class BrokeragePosition:
    """One position in a brokerage account."""

    account_id: str
    symbol: str
    quantity: Decimal
    value_cents: int


@dataclass
class BrokerageUser:
    """Credentials returned when registering an aggregator user."""

    user_id: str
    user_secret: str


# ------------------------------------------------------------------
# Capability protocols
# ------------------------------------------------------------------


class BankProviderClient(Protocol):
    """Capability interface for a bank-transactions provider."""

    @property
    def provider_name(self) -> str:
        """Return the provider name for logging and error messages."""
        ...

    def is_configured(self) -> bool:
        """Check if the provider is properly configured with credentials."""
        ...

    def create_link_token(self, user_id: str, access_token: str | None = None) -> str:
        """Create a Link token; passing an access token opens update mode."""
        ...

    def exchange_public_token(self, public_token: str) -> TokenExchangeResult:
        """Exchange a Link public token for a permanent access credential."""
        ...

    def get_accounts(self, access_token: str) -> list[BankAccount]:
        """Fetch the accounts and balances of one item."""
        ...

    def sync_transactions(self, access_token: str, cursor: str) -> TransactionsSyncPage:
        """Fetch one page of changes after ``cursor`` (empty = from the start)."""
        ...

    def get_item_status(self, access_token: str) -> ItemStatus:
        """Report the provider-side error state of an item."""
        ...

    def remove_item(self, access_token: str) -> None:
        """Revoke the item's access credential at the provider."""
        ...


class BrokerageProviderClient(Protocol):
    """Capability interface for a brokerage-holdings provider."""

    @property
    def provider_name(self) -> str:
        """Return the provider name for logging and error messages."""
        ...

    def is_configured(self) -> bool:
        """Check if the provider is properly configured with credentials."""
        ...

    def register_user(self, user_id: str) -> BrokerageUser:
        """Register the owner with the aggregator and return its secret."""
        ...

    def generate_connection_portal_url(self, user_id: str, user_secret: str) -> str:
        """Return a URL the owner opens to connect a brokerage."""
        ...

    def list_connections(self, user_id: str, user_secret: str) -> list[BrokerageConnection]:
        """List brokerage authorizations."""
        ...

    def list_accounts(self, user_id: str, user_secret: str) -> list[BrokerageAccount]:
        """List accounts with their total balances."""
        ...

    def list_positions(
        self, user_id: str, user_secret: str, account_id: str
    ) -> list[BrokeragePosition]:
        """List the positions held in one account."""
        ...

    def remove_connection(self, user_id: str, user_secret: str, connection_id: str) -> None:
        """Delete a brokerage authorization."""
        ...
