"""Link management service - linking, listing and removing bank items and brokerage connections."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from config import settings
from integrations.exceptions import ProviderError
from integrations.provider_protocol import BankAccount, BankProviderClient, BrokerageProviderClient
from models import PlaidAccount, PlaidItem, SnapTradeConnection, SnapTradeUser, utcnow
from services.connection_health_service import BankItemStatus, BrokerageConnectionStatus

logger = logging.getLogger(__name__)


class LinkService:
    """Owns the lifecycle of linked institutions.

    Methods flush; the API layer commits.
    """

    def __init__(
        self,
        bank_client: Optional[BankProviderClient] = None,
        brokerage_client: Optional[BrokerageProviderClient] = None,
        owner_user_id: Optional[str] = None,
    ):
        self._bank_client = bank_client
        self._brokerage_client = brokerage_client
        self._owner_user_id = owner_user_id or settings.OWNER_USER_ID

    # ------------------------------------------------------------------
    # Bank items
    # ------------------------------------------------------------------

    def create_link_token(self) -> str:
        return self._bank_client.create_link_token(self._owner_user_id)

    def create_reconnect_link_token(self, db: Session, item_id: str) -> str:
        """Create an update-mode link token for an existing item.

        Raises:
            LookupError: The item is not linked.
        """
        item = self.get_item(db, item_id)
        if item is None:
            raise LookupError(f"Item not found: {item_id}")
        return self._bank_client.create_link_token(self._owner_user_id, access_token=item.access_token)

    @staticmethod
    def get_item(db: Session, item_id: str) -> Optional[PlaidItem]:
        return db.query(PlaidItem).filter(PlaidItem.item_id == item_id).first()

    @staticmethod
    def list_items(db: Session) -> list[PlaidItem]:
        return db.query(PlaidItem).order_by(PlaidItem.created_at).all()

    def exchange_public_token(
        self,
        db: Session,
        public_token: str,
        institution_id: Optional[str] = None,
        institution_name: Optional[str] = None,
    ) -> PlaidItem:
        """Exchange a Link public token and store the resulting item.

        Relinking an institution produces a new item id; the older item for
        the same institution is revoked at the provider when possible and
        deleted along with its accounts and transactions. The new item is marked pending so the next batch run
        performs its first sync.

        Raises:
            ProviderError: The exchange or the account fetch failed; nothing
                is written.
        """
        exchange = self._bank_client.exchange_public_token(public_token)
        accounts = self._bank_client.get_accounts(exchange.access_token)

        if institution_id:
            stale = (
                db.query(PlaidItem)
                .filter(
                    PlaidItem.institution_id == institution_id,
                    PlaidItem.item_id != exchange.item_id,
                )
                .all()
            )
            for old in stale:
                logger.info("Replacing item %s for institution %s", old.item_id, institution_id)
                self._revoke_replaced_item(old)
                db.delete(old)
            if stale:
                db.flush()

        item = self.get_item(db, exchange.item_id)
        if item is None:
            item = PlaidItem(item_id=exchange.item_id, access_token=exchange.access_token)
            db.add(item)
            logger.info("Created item %s for %s", exchange.item_id, institution_name)
        else:
            item.access_token = exchange.access_token
            logger.info("Updated item %s", exchange.item_id)

        if institution_id:
            item.institution_id = institution_id
        if institution_name:
            item.institution_name = institution_name
        item.status = BankItemStatus.OK.value
        item.last_error_code = None
        item.new_transactions_pending = True
        item.last_updated = utcnow()
        db.flush()

        self._upsert_accounts(db, item.item_id, accounts)
        return item

    @staticmethod
    def _upsert_accounts(db: Session, item_id: str, accounts: list[BankAccount]) -> None:
        existing = {
            row.account_id: row
            for row in db.query(PlaidAccount)
            .filter(PlaidAccount.account_id.in_([a.account_id for a in accounts]))
            .all()
        }
        for account in accounts:
            row = existing.get(account.account_id)
            if row is None:
                row = PlaidAccount(account_id=account.account_id)
                db.add(row)
            row.item_id = item_id
            row.name = account.name
            row.mask = account.mask
            row.type = account.type
            row.subtype = account.subtype
            row.current_balance_cents = account.current_balance_cents
        db.flush()

    def _revoke_replaced_item(self, old: PlaidItem) -> None:
        try:
            self._bank_client.remove_item(old.access_token)
        except ProviderError as exc:
            logger.warning("Could not revoke replaced item %s: %s", old.item_id, exc)

    def remove_item(self, db: Session, item_id: str) -> bool:
        """Revoke the item at the provider, then delete it locally.

        Returns:
            False when the item is unknown.

        Raises:
            ProviderError: The provider refused; the local row is kept.
        """
        item = self.get_item(db, item_id)
        if item is None:
            return False
        self._bank_client.remove_item(item.access_token)
        db.delete(item)
        db.flush()
        logger.info("Deleted item %s", item_id)
        return True

    # ------------------------------------------------------------------
    # Brokerage connections
    # ------------------------------------------------------------------

    @staticmethod
    def get_brokerage_user(db: Session) -> Optional[SnapTradeUser]:
        return db.query(SnapTradeUser).first()

    def get_or_register_user(self, db: Session) -> SnapTradeUser:
        """Return the brokerage user, registering the owner on first use."""
        user = self.get_brokerage_user(db)
        if user is not None:
            return user
        registered = self._brokerage_client.register_user(self._owner_user_id)
        user = SnapTradeUser(user_id=registered.user_id, user_secret=registered.user_secret)
        db.add(user)
        db.flush()
        logger.info("Registered brokerage user %s", registered.user_id)
        return user

    def connection_portal_url(self, db: Session) -> str:
        user = self.get_or_register_user(db)
        return self._brokerage_client.generate_connection_portal_url(user.user_id, user.user_secret)

    @staticmethod
    def list_connections(db: Session) -> list[SnapTradeConnection]:
        return db.query(SnapTradeConnection).order_by(SnapTradeConnection.created_at).all()

    def sync_connections(self, db: Session) -> list[SnapTradeConnection]:
        """Pull the provider's connection list into the store.

        New connections start OK; existing rows keep their health status and
        only get their brokerage name refreshed.
        """
        user = self.get_brokerage_user(db)
        if user is None:
            return []

        remote = self._brokerage_client.list_connections(user.user_id, user.user_secret)
        existing = {c.connection_id: c for c in db.query(SnapTradeConnection).all()}
        now = utcnow()
        synced = []
        for conn in remote:
            row = existing.get(conn.id)
            if row is None:
                row = SnapTradeConnection(
                    connection_id=conn.id, status=BrokerageConnectionStatus.OK.value
                )
                db.add(row)
            row.brokerage = conn.brokerage_name
            row.last_checked = now
            synced.append(row)
        db.flush()
        logger.info("Synced %d brokerage connections", len(synced))
        return synced

    def remove_connection(self, db: Session, connection_id: str) -> bool:
        """Remove a brokerage connection at the provider, then locally.

        Returns:
            False when the connection is not stored.
        """
        row = db.query(SnapTradeConnection).filter_by(connection_id=connection_id).first()
        if row is None:
            return False
        user = self.get_brokerage_user(db)
        if user is not None:
            self._brokerage_client.remove_connection(user.user_id, user.user_secret, connection_id)
        db.delete(row)
        db.flush()
        logger.info("Deleted brokerage connection %s", connection_id)
        return True
