"""Plaid API client.

This module implements the BankProviderClient protocol via the plaid-python
SDK: Link token creation, public token exchange, account balances, the
``/transactions/sync`` change feed, item status and item removal.

SDK exceptions never leave this module. ``plaid.ApiException`` becomes
:class:`~integrations.exceptions.ProviderAPIError` carrying Plaid's
``error_code``; transport failures become
:class:`~integrations.exceptions.ProviderConnectionError`.
"""

import json
import logging

import urllib3
from plaid import ApiException, Environment
from plaid.api.plaid_api import PlaidApi
from plaid.api_client import ApiClient
from plaid.configuration import Configuration
from plaid.model.accounts_get_request import AccountsGetRequest
from plaid.model.country_code import CountryCode
from plaid.model.item_get_request import ItemGetRequest
from plaid.model.item_public_token_exchange_request import ItemPublicTokenExchangeRequest
from plaid.model.item_remove_request import ItemRemoveRequest
from plaid.model.link_token_create_request import LinkTokenCreateRequest
from plaid.model.link_token_create_request_user import LinkTokenCreateRequestUser
from plaid.model.products import Products
from plaid.model.transactions_sync_request import TransactionsSyncRequest

from config import settings
from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
)
from integrations.parsing_utils import get_field, parse_date, to_cents
from integrations.provider_protocol import (
    BankAccount,
    BankTransaction,
    ItemStatus,
    TokenExchangeResult,
    TransactionsSyncPage,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Plaid"

# Map PLAID_ENVIRONMENT setting to SDK host URLs.
# Plaid's Development environment is deprecated; only sandbox and production
# are supported.
_ENVIRONMENT_MAP: dict[str, str] = {
    "sandbox": Environment.Sandbox,
    "production": Environment.Production,
}


class PlaidClient:
    """Wrapper around the Plaid API.

    Implements the BankProviderClient protocol.
    """

    def __init__(
        self,
        client_id: str | None = None,
        secret: str | None = None,
        environment: str | None = None,
        webhook_url: str | None = None,
    ):
        self._client_id = client_id or settings.PLAID_CLIENT_ID
        self._secret = secret or settings.PLAID_SECRET
        self._environment = environment or settings.PLAID_ENVIRONMENT
        self._webhook_url = webhook_url if webhook_url is not None else settings.PLAID_WEBHOOK_URL

        # Lazily created on first use
        self._api: PlaidApi | None = None

    def _get_api(self) -> PlaidApi:
        """Return (and cache) a PlaidApi instance."""
        if self._api is None:
            env_key = self._environment.lower()
            host = _ENVIRONMENT_MAP.get(env_key)
            if host is None:
                logger.warning(
                    "Unknown PLAID_ENVIRONMENT=%r, falling back to sandbox. "
                    "Valid values: sandbox, production",
                    self._environment,
                )
                host = Environment.Sandbox
            logger.info(
                "Plaid API client: environment=%s, host=%s, client_id=<configured>",
                env_key,
                host,
            )
            configuration = Configuration(
                host=host,
                api_key={
                    "clientId": self._client_id,
                    "secret": self._secret,
                },
            )
            api_client = ApiClient(configuration)
            self._api = PlaidApi(api_client)
        return self._api

    @property
    def provider_name(self) -> str:
        """Return the provider name for logging and error messages."""
        return PROVIDER_NAME

    def is_configured(self) -> bool:
        """Check if Plaid credentials are configured."""
        return bool(self._client_id) and bool(self._secret)

    def _check_credentials(self) -> None:
        """Raise an error if credentials are not configured."""
        if not self.is_configured():
            raise ProviderAuthError(
                "Plaid API credentials not configured. "
                "Set PLAID_CLIENT_ID and PLAID_SECRET in .env or the keychain",
                provider_name=PROVIDER_NAME,
            )

    def _call(self, operation: str, method_name: str, request):
        """Invoke one PlaidApi method, translating SDK errors.

        Args:
            operation: Short label for log and error messages.
            method_name: Name of the PlaidApi method to call.
            request: The SDK request model.
        """
        self._check_credentials()
        api = self._get_api()
        try:
            return getattr(api, method_name)(request)
        except ApiException as exc:
            raise self._map_plaid_error(exc, operation) from exc
        except urllib3.exceptions.HTTPError as exc:
            raise ProviderConnectionError(
                f"Plaid {operation} failed: {exc}",
                provider_name=PROVIDER_NAME,
            ) from exc

    # ------------------------------------------------------------------
    # Link Token & Token Exchange
    # ------------------------------------------------------------------

    def create_link_token(self, user_id: str, access_token: str | None = None) -> str:
        """Create a Plaid Link token for the browser-based auth flow.

        Args:
            user_id: Stable identifier of the owner.
            access_token: When given, the token opens Link in update mode
                to repair the existing item instead of linking a new one.

        Returns:
            The link_token string to be passed to Plaid Link.
        """
        kwargs = {
            "user": LinkTokenCreateRequestUser(client_user_id=user_id),
            "client_name": "Ledgerline",
            "country_codes": [
                CountryCode(code.strip().upper())
                for code in settings.PLAID_COUNTRY_CODES.split(",")
                if code.strip()
            ],
            "language": "en",
        }
        if access_token:
            kwargs["access_token"] = access_token
        else:
            kwargs["products"] = [Products("transactions")]
        if self._webhook_url:
            kwargs["webhook"] = self._webhook_url

        response = self._call("link token create", "link_token_create", LinkTokenCreateRequest(**kwargs))
        link_token = response["link_token"]
        if not link_token:
            raise ProviderDataError("Plaid returned an empty link_token", provider_name=PROVIDER_NAME)
        return link_token

    def exchange_public_token(self, public_token: str) -> TokenExchangeResult:
        """Exchange a Plaid Link public_token for a permanent access_token."""
        response = self._call(
            "public token exchange",
            "item_public_token_exchange",
            ItemPublicTokenExchangeRequest(public_token=public_token),
        )
        access_token = response["access_token"]
        item_id = response["item_id"]
        if not access_token or not item_id:
            raise ProviderDataError(
                "Plaid exchange response is missing access_token or item_id",
                provider_name=PROVIDER_NAME,
            )
        return TokenExchangeResult(access_token=access_token, item_id=item_id)

    def remove_item(self, access_token: str) -> None:
        """Revoke an access token by calling Plaid's /item/remove endpoint."""
        self._call("item remove", "item_remove", ItemRemoveRequest(access_token=access_token))

    # ------------------------------------------------------------------
    # Accounts & item status
    # ------------------------------------------------------------------

    def get_accounts(self, access_token: str) -> list[BankAccount]:
        """Fetch accounts and current balances for one Item."""
        response = self._call("accounts get", "accounts_get", AccountsGetRequest(access_token=access_token))

        accounts: list[BankAccount] = []
        for acct in response.get("accounts", []) or []:
            account_id = get_field(acct, "account_id")
            if not account_id:
                continue
            balances = get_field(acct, "balances")
            subtype = get_field(acct, "subtype")
            accounts.append(BankAccount(
                account_id=account_id,
                name=get_field(acct, "name") or get_field(acct, "official_name") or "Plaid Account",
                mask=get_field(acct, "mask"),
                type=str(get_field(acct, "type") or "other"),
                subtype=str(subtype) if subtype is not None else None,
                current_balance_cents=to_cents(get_field(balances, "current")),
            ))
        return accounts

    def get_item_status(self, access_token: str) -> ItemStatus:
        """Return the Item's provider-side error state from /item/get."""
        response = self._call("item get", "item_get", ItemGetRequest(access_token=access_token))
        item = response["item"]
        error = get_field(item, "error")
        error_type = get_field(error, "error_type")
        return ItemStatus(
            item_id=get_field(item, "item_id") or "",
            error_code=get_field(error, "error_code") or None,
            error_type=str(error_type) if error_type else None,
        )

    # ------------------------------------------------------------------
    # Transactions change feed
    # ------------------------------------------------------------------

    def sync_transactions(self, access_token: str, cursor: str) -> TransactionsSyncPage:
        """Fetch one page of the /transactions/sync change feed.

        Args:
            access_token: The Item's access token.
            cursor: Position to resume from; empty string starts from the
                beginning of the Item's history.
        """
        if cursor:
            request = TransactionsSyncRequest(access_token=access_token, cursor=cursor)
        else:
            request = TransactionsSyncRequest(access_token=access_token)
        response = self._call("transactions sync", "transactions_sync", request)

        next_cursor = response.get("next_cursor")
        if next_cursor is None:
            raise ProviderDataError(
                "Plaid transactions sync response has no next_cursor",
                provider_name=PROVIDER_NAME,
            )

        return TransactionsSyncPage(
            added=[self._map_transaction(t) for t in response.get("added", []) or []],
            modified=[self._map_transaction(t) for t in response.get("modified", []) or []],
            removed=[
                get_field(t, "transaction_id")
                for t in response.get("removed", []) or []
                if get_field(t, "transaction_id")
            ],
            next_cursor=next_cursor,
            has_more=bool(response.get("has_more")),
        )

    @staticmethod
    def _map_transaction(txn) -> BankTransaction:
        """Map a Plaid transaction to a BankTransaction."""
        transaction_id = get_field(txn, "transaction_id")
        txn_date = parse_date(get_field(txn, "date"))
        if not transaction_id or txn_date is None:
            raise ProviderDataError(
                f"Plaid transaction is missing an id or date: {transaction_id!r}",
                provider_name=PROVIDER_NAME,
            )

        categories = get_field(txn, "category") or []
        primary_category = categories[0] if len(categories) > 0 else None

        return BankTransaction(
            transaction_id=transaction_id,
            account_id=get_field(txn, "account_id") or "",
            date=txn_date,
            amount_cents=to_cents(get_field(txn, "amount")),
            name=get_field(txn, "name") or "",
            merchant_name=get_field(txn, "merchant_name"),
            primary_category=primary_category,
            pending=bool(get_field(txn, "pending")),
        )

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _map_plaid_error(exc: ApiException, operation: str) -> ProviderAPIError:
        """Map a Plaid ApiException to a ProviderAPIError.

        Plaid reports failures as a JSON body with ``error_code`` and
        ``error_type``. A response without a parseable body gets the
        synthetic code ``HTTP_<status>``.
        """
        status = exc.status or 0
        message = f"Plaid {operation} failed with HTTP {status}"

        error_code = ""
        error_type = None
        try:
            body = json.loads(exc.body) if exc.body else {}
        except (TypeError, ValueError):
            body = {}
        if isinstance(body, dict):
            error_code = body.get("error_code") or ""
            error_type = body.get("error_type")
            error_message = body.get("error_message")
            if error_message:
                message = f"Plaid error ({error_code}): {error_message}"

        if not error_code:
            error_code = f"HTTP_{status}"

        return ProviderAPIError(
            message,
            provider_name=PROVIDER_NAME,
            status_code=status or None,
            error_code=error_code,
            error_type=error_type,
        )
