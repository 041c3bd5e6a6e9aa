"""SnapTrade API client wrapper.

This module implements the BrokerageProviderClient protocol for SnapTrade:
user registration, the connection portal, brokerage authorizations,
accounts with balances, and per-account positions.

SDK responses may be a list, a dict, or an object with a ``body``
attribute depending on the SDK version, and individual records may be
dicts or attribute objects. The helpers below accept all of them.
"""

import logging
from decimal import Decimal

import urllib3
from snaptrade_client import SnapTrade
from snaptrade_client.exceptions import ApiException

from config import settings
from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
)
from integrations.parsing_utils import (
    get_field,
    parse_iso_datetime,
    position_value_cents,
    to_cents,
    to_decimal,
)
from integrations.provider_protocol import (
    BrokerageAccount,
    BrokerageConnection,
    BrokeragePosition,
    BrokerageUser,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "SnapTrade"


def _body(response):
    """Unwrap an SDK response into its payload."""
    if isinstance(response, (dict, list)):
        return response
    return getattr(response, "body", response)


class SnapTradeClient:
    """Wrapper around the SnapTrade SDK.

    Implements the BrokerageProviderClient protocol. User credentials are
    passed per call because they live in the database, not in settings.
    """

    def __init__(
        self,
        client_id: str | None = None,
        consumer_key: str | None = None,
    ):
        """Initialize the client with API credentials.

        Args:
            client_id: SnapTrade client ID (defaults to settings)
            consumer_key: SnapTrade consumer key (defaults to settings)
        """
        self._client_id = client_id or settings.SNAPTRADE_CLIENT_ID
        self._consumer_key = consumer_key or settings.SNAPTRADE_CONSUMER_KEY

        self.client = SnapTrade(
            consumer_key=self._consumer_key,
            client_id=self._client_id,
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name for logging and error messages."""
        return PROVIDER_NAME

    def is_configured(self) -> bool:
        """Check if SnapTrade API credentials are configured."""
        return bool(self._client_id and self._consumer_key)

    def _check_credentials(self) -> None:
        """Raise an error if credentials are not configured."""
        if not self.is_configured():
            raise ProviderAuthError(
                "SnapTrade API credentials not configured. "
                "Set SNAPTRADE_CLIENT_ID and SNAPTRADE_CONSUMER_KEY in .env or the keychain",
                provider_name=PROVIDER_NAME,
            )

    def _call(self, operation: str, fn, **kwargs):
        """Invoke one SDK method, translating SDK errors."""
        self._check_credentials()
        try:
            return _body(fn(**kwargs))
        except ApiException as exc:
            status = getattr(exc, "status", None)
            if status in (401, 403):
                raise ProviderAuthError(
                    f"SnapTrade {operation} rejected credentials (HTTP {status})",
                    provider_name=PROVIDER_NAME,
                ) from exc
            raise ProviderAPIError(
                f"SnapTrade {operation} failed (HTTP {status}): {getattr(exc, 'reason', '')}",
                provider_name=PROVIDER_NAME,
                status_code=status,
                error_code=f"HTTP_{status}" if status else None,
            ) from exc
        except urllib3.exceptions.HTTPError as exc:
            raise ProviderConnectionError(
                f"SnapTrade {operation} failed: {exc}",
                provider_name=PROVIDER_NAME,
            ) from exc

    # ------------------------------------------------------------------
    # Users & connection portal
    # ------------------------------------------------------------------

    def register_user(self, user_id: str) -> BrokerageUser:
        """Register a SnapTrade user and return its secret."""
        body = self._call(
            "user registration",
            self.client.authentication.register_snap_trade_user,
            user_id=user_id,
        )
        user_secret = get_field(body, "userSecret") or get_field(body, "user_secret")
        if not user_secret:
            raise ProviderDataError(
                "SnapTrade registration response has no userSecret",
                provider_name=PROVIDER_NAME,
            )
        return BrokerageUser(user_id=user_id, user_secret=user_secret)

    def generate_connection_portal_url(self, user_id: str, user_secret: str) -> str:
        """Return the read-only connection portal URL for the user."""
        body = self._call(
            "login",
            self.client.authentication.login_snap_trade_user,
            user_id=user_id,
            user_secret=user_secret,
            connection_type="read",
        )
        redirect_uri = (
            get_field(body, "redirectURI")
            or get_field(body, "redirect_uri")
            or get_field(body, "loginRedirectURI")
        )
        if not redirect_uri:
            raise ProviderDataError(
                "SnapTrade login response has no redirect URI",
                provider_name=PROVIDER_NAME,
            )
        return redirect_uri

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def list_connections(self, user_id: str, user_secret: str) -> list[BrokerageConnection]:
        """List the user's brokerage authorizations."""
        authorizations = self._call(
            "list connections",
            self.client.connections.list_brokerage_authorizations,
            user_id=user_id,
            user_secret=user_secret,
        )

        result = []
        for auth in authorizations or []:
            conn_id = get_field(auth, "id")
            if not conn_id:
                continue
            brokerage = get_field(auth, "brokerage")
            result.append(BrokerageConnection(
                id=str(conn_id),
                brokerage_name=self._extract_brokerage_name(auth, brokerage),
                brokerage_slug=get_field(brokerage, "slug") if not isinstance(brokerage, str) else None,
                created_at=parse_iso_datetime(get_field(auth, "created_date")),
                disabled=bool(get_field(auth, "disabled", False)),
            ))
        return result

    def remove_connection(self, user_id: str, user_secret: str, connection_id: str) -> None:
        """Delete a brokerage authorization."""
        self._call(
            "remove connection",
            self.client.connections.remove_brokerage_authorization,
            authorization_id=connection_id,
            user_id=user_id,
            user_secret=user_secret,
        )

    @staticmethod
    def _extract_brokerage_name(auth, brokerage) -> str:
        """Extract brokerage name from various response formats."""
        if isinstance(brokerage, str) and brokerage:
            return brokerage
        name = get_field(brokerage, "display_name") or get_field(brokerage, "name")
        if name:
            return str(name)
        return get_field(auth, "name") or "Unknown"

    # ------------------------------------------------------------------
    # Accounts & positions
    # ------------------------------------------------------------------

    def list_accounts(self, user_id: str, user_secret: str) -> list[BrokerageAccount]:
        """List accounts with their total balance in cents."""
        accounts = self._call(
            "list accounts",
            self.client.account_information.list_user_accounts,
            user_id=user_id,
            user_secret=user_secret,
        )

        result = []
        for account in accounts or []:
            acc_id = get_field(account, "id")
            if not acc_id:
                continue
            balance_cents, currency = self._extract_balance(get_field(account, "balance"))
            authorization = get_field(account, "brokerage_authorization")
            connection_id = authorization if isinstance(authorization, str) else get_field(authorization, "id")
            result.append(BrokerageAccount(
                id=str(acc_id),
                name=get_field(account, "name") or "Unknown Account",
                number=get_field(account, "number"),
                institution=get_field(account, "institution_name"),
                connection_id=str(connection_id) if connection_id else None,
                balance_cents=balance_cents,
                currency=currency,
            ))
        return result

    @staticmethod
    def _extract_balance(balance) -> tuple[int, str]:
        """Return (total balance cents, currency) from ``account.balance``.

        ``balance.total`` is either a bare number or ``{amount, currency}``.
        A missing balance counts as zero.
        """
        total = get_field(balance, "total")
        if total is None:
            return 0, "USD"
        if isinstance(total, (int, float, str, Decimal)):
            return to_cents(total), "USD"
        return to_cents(get_field(total, "amount")), get_field(total, "currency") or "USD"

    def list_positions(
        self, user_id: str, user_secret: str, account_id: str
    ) -> list[BrokeragePosition]:
        """List the positions held in one account."""
        positions = self._call(
            "list positions",
            self.client.account_information.get_user_account_positions,
            user_id=user_id,
            user_secret=user_secret,
            account_id=account_id,
        )
        if isinstance(positions, dict):
            positions = positions.get("positions") or []

        result = []
        for position in positions or []:
            units = get_field(position, "units")
            price = get_field(position, "price")
            result.append(BrokeragePosition(
                account_id=account_id,
                symbol=self._extract_symbol(get_field(position, "symbol")),
                quantity=to_decimal(units) or Decimal("0"),
                value_cents=position_value_cents(price, units),
            ))
        return result

    def _extract_symbol(self, symbol_data) -> str:
        """Extract the ticker from the nested ``position.symbol.symbol.symbol`` shape."""
        if symbol_data is None:
            return "UNKNOWN"
        if isinstance(symbol_data, str):
            return symbol_data or "UNKNOWN"
        inner = get_field(symbol_data, "symbol")
        if inner is None:
            return get_field(symbol_data, "raw_symbol") or "UNKNOWN"
        return self._extract_symbol(inner)
