"""Connection health monitor for bank items and brokerage connections.

Bank items are either ``OK`` or ``LOGIN_REQUIRED``. Only failures that need
the owner to re-authenticate flip an item; transient provider trouble
(rate limits, institution outages, network errors) leaves it alone.

Brokerage connections escalate one step per failed check:
``OK`` -> ``ACCOUNT_FETCH_ERROR`` -> ``CONNECTION_ERROR``, and any
successful check resets them to ``OK``.

Store failures are not evidence about a connection and never change status.
"""

import logging
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderError,
)
from integrations.provider_protocol import BankProviderClient, BrokerageProviderClient
from models import PlaidItem, SnapTradeConnection, SnapTradeUser, utcnow

logger = logging.getLogger(__name__)


class BankItemStatus(str, Enum):
    OK = "OK"
    LOGIN_REQUIRED = "LOGIN_REQUIRED"


class BrokerageConnectionStatus(str, Enum):
    OK = "OK"
    ACCOUNT_FETCH_ERROR = "ACCOUNT_FETCH_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"


class BankOutcome(str, Enum):
    """What a bank operation tells us about the item's credential."""

    SUCCESS = "success"
    REAUTH_REQUIRED = "reauth_required"
    TRANSIENT = "transient"


class BrokerageOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


REAUTH_ERROR_CODES: frozenset[str] = frozenset(
    {
        "ITEM_LOGIN_REQUIRED",
        "INVALID_ACCESS_TOKEN",
        "ACCESS_TOKEN_EXPIRED",
        "ACCESS_TOKEN_INVALID",
        "ITEM_ERROR",
        "ITEM_LOCKED",
        "ITEM_NOT_SUPPORTED",
        "INVALID_CREDENTIALS",
        "INVALID_MFA",
        "USER_SETUP_REQUIRED",
        "PENDING_EXPIRATION",
        "ITEM_NOT_FOUND",
    }
)

TRANSIENT_ERROR_CODES: frozenset[str] = frozenset(
    {
        "RATE_LIMIT_EXCEEDED",
        "TRANSACTIONS_LIMIT",
        "ITEM_GET_LIMIT",
        "INSTITUTION_DOWN",
        "INSTITUTION_NOT_RESPONDING",
        "INSTITUTION_NOT_AVAILABLE",
        "INSTITUTION_NO_LONGER_SUPPORTED_TEMPORARILY",
        "INTERNAL_SERVER_ERROR",
        "PLANNED_MAINTENANCE",
        "PRODUCT_NOT_READY",
        "TRANSACTIONS_SYNC_MUTATION_DURING_PAGINATION",
        "TIMEOUT",
        "NETWORK_ERROR",
        "HTTP_429",
    }
)


def classify_bank_error_code(error_code: Optional[str]) -> BankOutcome:
    """Classify a provider error code.

    Unrecognised codes require re-authentication: a false alarm costs the
    owner one reconnect, a missed one hides a dead connection indefinitely.
    """
    code = (error_code or "").upper()
    if code in TRANSIENT_ERROR_CODES:
        return BankOutcome.TRANSIENT
    if code.startswith("HTTP_5"):
        return BankOutcome.TRANSIENT
    return BankOutcome.REAUTH_REQUIRED


def classify_bank_exception(exc: BaseException) -> Optional[BankOutcome]:
    """Classify an exception raised while talking to the bank provider.

    Returns:
        The outcome, or None when the exception is not a provider error
        (e.g. a database failure) and must not affect status.
    """
    if not isinstance(exc, ProviderError):
        return None
    if isinstance(exc, ProviderConnectionError):
        return BankOutcome.TRANSIENT
    if isinstance(exc, ProviderAuthError):
        return BankOutcome.REAUTH_REQUIRED
    if isinstance(exc, ProviderAPIError):
        if exc.error_code:
            return classify_bank_error_code(exc.error_code)
        return BankOutcome.TRANSIENT if exc.retriable else BankOutcome.REAUTH_REQUIRED
    # ProviderDataError and other provider failures say nothing about the credential
    return BankOutcome.TRANSIENT


def next_bank_status(current: BankItemStatus, outcome: BankOutcome) -> BankItemStatus:
    """Transition for a bank item."""
    if outcome == BankOutcome.SUCCESS:
        return BankItemStatus.OK
    if outcome == BankOutcome.REAUTH_REQUIRED:
        return BankItemStatus.LOGIN_REQUIRED
    return current


def next_brokerage_status(
    current: BrokerageConnectionStatus, outcome: BrokerageOutcome
) -> BrokerageConnectionStatus:
    """Transition for a brokerage connection (two strikes to CONNECTION_ERROR)."""
    if outcome == BrokerageOutcome.SUCCESS:
        return BrokerageConnectionStatus.OK
    if current == BrokerageConnectionStatus.OK:
        return BrokerageConnectionStatus.ACCOUNT_FETCH_ERROR
    return BrokerageConnectionStatus.CONNECTION_ERROR


def _has_usable_code(exc: BaseException) -> bool:
    """True when the exception already tells us which way to classify."""
    if isinstance(exc, (ProviderConnectionError, ProviderAuthError)):
        return True
    code = getattr(exc, "error_code", None)
    return bool(code) and not str(code).startswith("HTTP_")


class ConnectionHealthService:
    """Applies health transitions to stored bank items and brokerage connections."""

    def __init__(
        self,
        bank_client: Optional[BankProviderClient] = None,
        brokerage_client: Optional[BrokerageProviderClient] = None,
    ):
        self._bank_client = bank_client
        self._brokerage_client = brokerage_client

    # ------------------------------------------------------------------
    # Bank items
    # ------------------------------------------------------------------

    def _apply_bank_outcome(
        self, db: Session, item: PlaidItem, outcome: BankOutcome, error_code: Optional[str]
    ) -> BankItemStatus:
        current = BankItemStatus(item.status or BankItemStatus.OK.value)
        new_status = next_bank_status(current, outcome)
        if new_status != current:
            logger.info(
                "Item %s status %s -> %s (%s)",
                item.item_id, current.value, new_status.value, error_code or outcome.value,
            )
        item.status = new_status.value
        if outcome == BankOutcome.SUCCESS:
            item.last_error_code = None
        elif error_code:
            item.last_error_code = error_code
        item.last_updated = utcnow()
        db.flush()
        return new_status

    def record_bank_success(self, db: Session, item: PlaidItem) -> BankItemStatus:
        """Mark an item OK after any successful provider call."""
        return self._apply_bank_outcome(db, item, BankOutcome.SUCCESS, None)

    def evaluate_bank_failure(
        self, db: Session, item: PlaidItem, exc: BaseException
    ) -> Optional[BankItemStatus]:
        """Classify a failed bank operation and update the item.

        When the exception carries no provider error code, the item status
        endpoint is checked once to find out what the provider thinks.

        Returns:
            The item's status afterwards, or None if the failure was not a
            provider failure and the status was left untouched.
        """
        outcome = classify_bank_exception(exc)
        if outcome is None:
            logger.debug("Item %s: non-provider failure, status unchanged", item.item_id)
            return None

        error_code = getattr(exc, "error_code", None)
        if not _has_usable_code(exc) and self._bank_client is not None:
            outcome, error_code = self._check_item_status(item, outcome, error_code)

        return self._apply_bank_outcome(db, item, outcome, error_code)

    def _check_item_status(
        self, item: PlaidItem, fallback: BankOutcome, fallback_code: Optional[str]
    ) -> tuple[BankOutcome, Optional[str]]:
        """Ask the provider for the item's error state."""
        try:
            status = self._bank_client.get_item_status(item.access_token)
        except ProviderError as status_exc:
            status_outcome = classify_bank_exception(status_exc)
            logger.warning("Item %s: status check failed: %s", item.item_id, status_exc)
            return status_outcome or fallback, getattr(status_exc, "error_code", None) or fallback_code

        if status.error_code:
            return classify_bank_error_code(status.error_code), status.error_code
        # The item itself is healthy; the original failure was incidental.
        return BankOutcome.TRANSIENT, fallback_code

    # ------------------------------------------------------------------
    # Brokerage connections
    # ------------------------------------------------------------------

    def _set_connection_status(
        self,
        db: Session,
        connection: SnapTradeConnection,
        outcome: BrokerageOutcome,
    ) -> BrokerageConnectionStatus:
        current = BrokerageConnectionStatus(connection.status or BrokerageConnectionStatus.OK.value)
        new_status = next_brokerage_status(current, outcome)
        if new_status != current:
            logger.info(
                "Connection %s status %s -> %s",
                connection.connection_id, current.value, new_status.value,
            )
        connection.status = new_status.value
        connection.last_checked = utcnow()
        return new_status

    def record_brokerage_success(self, db: Session) -> dict[str, BrokerageConnectionStatus]:
        """Reset every stored connection to OK after a successful snapshot pass."""
        result = {}
        for connection in db.query(SnapTradeConnection).all():
            result[connection.connection_id] = self._set_connection_status(
                db, connection, BrokerageOutcome.SUCCESS
            )
        db.flush()
        return result

    def evaluate_brokerage_failure(
        self, db: Session, user: SnapTradeUser
    ) -> dict[str, BrokerageConnectionStatus]:
        """Check the brokerage provider after a failed snapshot pass.

        1. List connections. On failure every stored connection escalates.
        2. List accounts. On failure every listed connection escalates;
           listed connections not yet stored are inserted first.
        3. Both succeed: every listed connection is OK.

        Returns:
            Mapping of connection id to its new status.
        """
        if self._brokerage_client is None:
            raise ValueError("ConnectionHealthService has no brokerage client")

        stored = {c.connection_id: c for c in db.query(SnapTradeConnection).all()}

        try:
            listed = self._brokerage_client.list_connections(user.user_id, user.user_secret)
        except ProviderError as exc:
            logger.warning("Brokerage list connections failed: %s", exc)
            result = {
                conn_id: self._set_connection_status(db, conn, BrokerageOutcome.FAILURE)
                for conn_id, conn in stored.items()
            }
            db.flush()
            return result

        listed_rows = []
        for remote in listed:
            conn = stored.get(remote.id)
            if conn is None:
                conn = SnapTradeConnection(
                    connection_id=remote.id,
                    brokerage=remote.brokerage_name,
                    status=BrokerageConnectionStatus.OK.value,
                )
                db.add(conn)
                stored[remote.id] = conn
            listed_rows.append(conn)

        try:
            self._brokerage_client.list_accounts(user.user_id, user.user_secret)
            outcome = BrokerageOutcome.SUCCESS
        except ProviderError as exc:
            logger.warning("Brokerage list accounts failed: %s", exc)
            outcome = BrokerageOutcome.FAILURE

        result = {
            conn.connection_id: self._set_connection_status(db, conn, outcome)
            for conn in listed_rows
        }
        db.flush()
        return result
