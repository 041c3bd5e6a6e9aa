"""Batch service - the nightly entry point that sequences sync, snapshots and health checks."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from integrations.exceptions import ProviderError
from integrations.provider_protocol import BankProviderClient, BrokerageProviderClient
from models import PlaidItem, SnapTradeUser
from services.connection_health_service import ConnectionHealthService
from services.snapshot_service import SnapshotService
from services.transaction_sync_service import CursorConflictError, TransactionSyncService

logger = logging.getLogger(__name__)


class BatchInProgressError(ValueError):
    """Another batch run holds the lock."""

    def __init__(self):
        super().__init__("Batch run already in progress")


@dataclass
class BatchResult:
    """Summary returned to the caller of a batch run."""

    items_synced: int = 0
    items_failed: int = 0
    daily_snapshot_written: bool = False
    monthly_snapshots_written: int = 0
    errors: list[str] = field(default_factory=list)


class BatchService:
    """Runs one batch: bank item syncs, then the brokerage snapshot pass.

    Each bank item is synced independently; one item's failure is recorded
    and the remaining items still run. Health checks only run on the error
    path: a failed item gets a bank health evaluation, a failed snapshot
    pass gets the brokerage two-call status check. Store failures are not health
    evidence and abort the run.
    """

    # Class-level lock shared across all instances to prevent overlapping runs
    # against the same items. Works for a single-process deployment; multiple
    # workers would need a lock in the database instead.
    _batch_lock = threading.Lock()

    def __init__(
        self,
        bank_client: BankProviderClient,
        brokerage_client: Optional[BrokerageProviderClient] = None,
        health_service: Optional[ConnectionHealthService] = None,
    ):
        self._bank_client = bank_client
        self._brokerage_client = brokerage_client
        self._health = health_service or ConnectionHealthService(
            bank_client=bank_client, brokerage_client=brokerage_client
        )
        self._sync = TransactionSyncService(bank_client)

    @classmethod
    def is_batch_in_progress(cls) -> bool:
        """Check if a batch run is currently in progress."""
        acquired = cls._batch_lock.acquire(blocking=False)
        if acquired:
            cls._batch_lock.release()
            return False
        return True

    def run(
        self,
        db: Session,
        today: Optional[date] = None,
        item_ids: Optional[list[str]] = None,
        include_snapshots: bool = True,
    ) -> BatchResult:
        """Run one batch.

        Args:
            db: Database session
            today: Snapshot date (defaults to the local calendar date)
            item_ids: Sync exactly these items instead of the pending ones
            include_snapshots: Run the brokerage snapshot pass

        Returns:
            The run summary.

        Raises:
            BatchInProgressError: Another run holds the lock.
            SQLAlchemyError: The store failed; cursors and flags are unchanged
                for the item being processed.
        """
        if not self._batch_lock.acquire(blocking=False):
            raise BatchInProgressError()
        try:
            result = BatchResult()
            self._sync_items(db, self._select_items(db, item_ids), result)
            if include_snapshots:
                self._snapshot(db, today or date.today(), result)
            logger.info(
                "Batch complete: %d items synced, %d failed, daily=%s, monthly=%d",
                result.items_synced, result.items_failed,
                result.daily_snapshot_written, result.monthly_snapshots_written,
            )
            return result
        finally:
            self._batch_lock.release()

    @staticmethod
    def _select_items(db: Session, item_ids: Optional[list[str]]) -> list[PlaidItem]:
        query = db.query(PlaidItem)
        if item_ids is not None:
            query = query.filter(PlaidItem.item_id.in_(item_ids))
        else:
            query = query.filter(PlaidItem.new_transactions_pending.is_(True))
        return query.order_by(PlaidItem.created_at).all()

    def _sync_items(self, db: Session, items: list[PlaidItem], result: BatchResult) -> None:
        for item in items:
            try:
                self._sync.sync_item(db, item)
            except (ProviderError, CursorConflictError) as exc:
                result.items_failed += 1
                result.errors.append(f"item {item.item_id}: {exc}")
                logger.warning("Item %s sync failed: %s", item.item_id, exc)
                if isinstance(exc, ProviderError):
                    self._health.evaluate_bank_failure(db, item, exc)
                    db.commit()
                continue

            self._health.record_bank_success(db, item)
            db.commit()
            result.items_synced += 1

    def _snapshot(self, db: Session, today: date, result: BatchResult) -> None:
        if self._brokerage_client is None:
            logger.debug("No brokerage client; skipping snapshot pass")
            return
        user = db.query(SnapTradeUser).first()
        if user is None:
            logger.info("No brokerage user registered; skipping snapshot pass")
            return

        try:
            snapshot = SnapshotService(self._brokerage_client).write_daily_snapshots(db, user, today)
        except ProviderError as exc:
            db.rollback()
            result.errors.append(f"snapshot: {exc}")
            logger.warning("Snapshot pass failed: %s", exc)
            self._health.evaluate_brokerage_failure(db, user)
            db.commit()
            return

        result.daily_snapshot_written = snapshot.daily_written
        result.monthly_snapshots_written = snapshot.monthly_written
        if snapshot.complete:
            self._health.record_brokerage_success(db)
        else:
            result.errors.extend(f"positions {e}" for e in snapshot.position_errors)
            self._health.evaluate_brokerage_failure(db, user)
        db.commit()

    @staticmethod
    def mark_item_pending(db: Session, item_id: str) -> bool:
        """Flag an item for the next run. Never calls a provider.

        Returns:
            False when the item is unknown.
        """
        updated = (
            db.query(PlaidItem)
            .filter(PlaidItem.item_id == item_id)
            .update({PlaidItem.new_transactions_pending: True}, synchronize_session=False)
        )
        db.commit()
        return updated > 0
