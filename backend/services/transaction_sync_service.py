"""Cursor-based incremental transaction sync for one bank item."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from integrations.provider_protocol import BankProviderClient, BankTransaction, TransactionsSyncPage
from models import PlaidItem, Transaction, utcnow
from services.categorization_service import CategoryService, CategoryTable, RuleMatcher, resolve_category_id

logger = logging.getLogger(__name__)


class CursorConflictError(Exception):
    """The item's stored cursor changed while a sync was running."""

    def __init__(self, item_id: str, expected_cursor: Optional[str]):
        self.item_id = item_id
        self.expected_cursor = expected_cursor
        super().__init__(
            f"Cursor for item {item_id} changed during sync; expected {expected_cursor!r}"
        )


@dataclass
class ItemSyncResult:
    """Outcome of one successful item sync."""

    item_id: str
    pages: int = 0
    added: int = 0
    modified: int = 0
    removed: int = 0
    final_cursor: str = ""


class TransactionSyncService:
    """Drives the provider's change feed for one item at a time.

    Every page is applied and committed as soon as it arrives, but the item's
    cursor is only advanced after the last page, in one conditional update
    that also clears the pending flag. A failure on any page leaves the
    stored cursor where it was, so the next run re-reads from there; the
    already-applied pages are re-delivered and upserted again harmlessly.
    """

    def __init__(
        self,
        bank_client: BankProviderClient,
        category_service: Optional[CategoryService] = None,
    ):
        self._client = bank_client
        self._categories = category_service or CategoryService()

    def sync_item(self, db: Session, item: PlaidItem) -> ItemSyncResult:
        """Fetch and apply every pending change for ``item``.

        Args:
            db: Database session
            item: The item to sync; its in-memory cursor and pending flag are
                refreshed only after the stored row has been updated.

        Returns:
            Counts of applied changes and the cursor now stored.

        Raises:
            ProviderError: The provider failed on some page.
            CursorConflictError: Another writer moved the cursor meanwhile.
            SQLAlchemyError: The store rejected a write.
        """
        start_cursor = item.transactions_cursor
        cursor = start_cursor or ""
        result = ItemSyncResult(item_id=item.item_id)

        rules, table = self._categories.load_resolver_inputs(db)

        try:
            while True:
                page = self._client.sync_transactions(item.access_token, cursor)
                self._apply_page(db, item.item_id, page, rules, table)
                db.commit()

                result.pages += 1
                result.added += len(page.added)
                result.modified += len(page.modified)
                result.removed += len(page.removed)
                cursor = page.next_cursor

                logger.debug(
                    "Item %s page %d: %d added, %d modified, %d removed, has_more=%s",
                    item.item_id, result.pages, len(page.added), len(page.modified),
                    len(page.removed), page.has_more,
                )
                if not page.has_more:
                    break
        except Exception:
            db.rollback()
            logger.warning(
                "Item %s: sync aborted after %d page(s); cursor left at %r",
                item.item_id, result.pages, start_cursor,
            )
            raise

        self._advance_cursor(db, item, start_cursor, cursor)
        result.final_cursor = cursor
        logger.info(
            "Item %s: %d page(s), %d added, %d modified, %d removed",
            item.item_id, result.pages, result.added, result.modified, result.removed,
        )
        return result

    def _apply_page(
        self,
        db: Session,
        item_id: str,
        page: TransactionsSyncPage,
        rules: list[RuleMatcher],
        table: CategoryTable,
    ) -> None:
        """Upsert added and modified records, then delete removed ids."""
        # Later records win when the same id appears twice in one page.
        incoming: dict[str, BankTransaction] = {}
        for txn in list(page.added) + list(page.modified):
            incoming[txn.transaction_id] = txn

        if incoming:
            existing = {
                row.plaid_transaction_id: row
                for row in db.query(Transaction)
                .filter(Transaction.plaid_transaction_id.in_(list(incoming)))
                .all()
            }
            for txn_id, txn in incoming.items():
                category_id = resolve_category_id(
                    txn.name, txn.merchant_name, txn.primary_category, rules, table
                )
                row = existing.get(txn_id)
                if row is None:
                    row = Transaction(plaid_transaction_id=txn_id)
                    db.add(row)
                row.item_id = item_id
                row.plaid_account_id = txn.account_id
                row.date = txn.date
                row.amount_cents = txn.amount_cents
                row.name = txn.name
                row.merchant_name = txn.merchant_name
                row.provider_category = txn.primary_category
                row.category_id = category_id
                row.pending = txn.pending

            db.flush()

        if page.removed:
            db.query(Transaction).filter(
                Transaction.plaid_transaction_id.in_(list(page.removed))
            ).delete(synchronize_session=False)

    def _advance_cursor(
        self, db: Session, item: PlaidItem, expected: Optional[str], new_cursor: str
    ) -> None:
        """Store the new cursor and clear pending, only if nobody else moved it."""
        if expected is None:
            cursor_matches = PlaidItem.transactions_cursor.is_(None)
        else:
            cursor_matches = PlaidItem.transactions_cursor == expected

        now = utcnow()
        updated = (
            db.query(PlaidItem)
            .filter(PlaidItem.id == item.id, cursor_matches)
            .update(
                {
                    PlaidItem.transactions_cursor: new_cursor,
                    PlaidItem.new_transactions_pending: False,
                    PlaidItem.last_synced_at: now,
                },
                synchronize_session=False,
            )
        )
        if updated != 1:
            db.rollback()
            raise CursorConflictError(item.item_id, expected)
        db.commit()

        item.transactions_cursor = new_cursor
        item.new_transactions_pending = False
        item.last_synced_at = now
