"""Tests for the batch orchestrator."""

from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from integrations.exceptions import ProviderAPIError
from integrations.provider_protocol import TransactionsSyncPage
from models import DailySnapshot, MonthlySnapshot, PlaidItem, SnapTradeConnection, Transaction
from services.batch_service import BatchInProgressError, BatchService
from services.transaction_sync_service import TransactionSyncService
from tests.fixtures.mocks import (
    SAMPLE_BROKERAGE_ACCOUNTS,
    SAMPLE_BROKERAGE_CONNECTIONS,
    SAMPLE_BROKERAGE_POSITIONS,
    MockPlaidClient,
    MockSnapTradeClient,
    make_txn,
    provider_error,
)


class TokenFeedPlaidClient(MockPlaidClient):
    """Serves a different feed per access token; ``fail_tokens`` raise instead."""

    def __init__(self, feeds, fail_tokens=None):
        super().__init__()
        self.feeds = feeds
        self.fail_tokens = fail_tokens or {}

    def sync_transactions(self, access_token, cursor):
        self.sync_calls.append((access_token, cursor))
        if access_token in self.fail_tokens:
            raise self.fail_tokens[access_token]
        return self.feeds.get(access_token, TransactionsSyncPage(next_cursor=cursor))


def _add_item(db, item_id, pending=True):
    item = PlaidItem(item_id=item_id, access_token=f"access-{item_id}", status="OK", new_transactions_pending=pending)
    db.add(item)
    db.commit()
    return item


@pytest.fixture
def brokerage():
    return MockSnapTradeClient(
        connections=SAMPLE_BROKERAGE_CONNECTIONS,
        accounts=SAMPLE_BROKERAGE_ACCOUNTS,
        positions=SAMPLE_BROKERAGE_POSITIONS,
    )


class TestItemSync:
    def test_syncs_only_pending_items(self, db, categories):
        _add_item(db, "item_a")
        _add_item(db, "item_b", pending=False)
        client = TokenFeedPlaidClient({
            "access-item_a": TransactionsSyncPage(added=[make_txn("t1")], next_cursor="a1"),
        })

        result = BatchService(client).run(db, today=date(2026, 3, 10))

        assert result.items_synced == 1
        assert [token for token, _ in client.sync_calls] == ["access-item_a"]
        item_a = db.query(PlaidItem).filter_by(item_id="item_a").one()
        assert item_a.new_transactions_pending is False
        assert item_a.transactions_cursor == "a1"

    def test_one_item_failure_does_not_stop_others(self, db, categories):
        _add_item(db, "item_a")
        _add_item(db, "item_b")
        client = TokenFeedPlaidClient(
            {"access-item_b": TransactionsSyncPage(added=[make_txn("t1")], next_cursor="b1")},
            fail_tokens={"access-item_a": provider_error("ITEM_LOGIN_REQUIRED")},
        )

        result = BatchService(client).run(db)

        assert result.items_synced == 1
        assert result.items_failed == 1
        assert "item_a" in result.errors[0]

        item_a = db.query(PlaidItem).filter_by(item_id="item_a").one()
        assert item_a.status == "LOGIN_REQUIRED"
        assert item_a.new_transactions_pending is True
        assert item_a.transactions_cursor is None

        item_b = db.query(PlaidItem).filter_by(item_id="item_b").one()
        assert item_b.transactions_cursor == "b1"
        assert db.query(Transaction).count() == 1

    def test_transient_failure_keeps_item_ok(self, db, categories):
        _add_item(db, "item_a")
        client = TokenFeedPlaidClient({}, fail_tokens={"access-item_a": provider_error("INSTITUTION_DOWN", 503)})

        result = BatchService(client).run(db)

        assert result.items_failed == 1
        assert db.query(PlaidItem).one().status == "OK"

    def test_success_resets_login_required(self, db, categories):
        item = _add_item(db, "item_a")
        item.status = "LOGIN_REQUIRED"
        db.commit()

        BatchService(TokenFeedPlaidClient({})).run(db)

        assert db.query(PlaidItem).one().status == "OK"

    def test_explicit_item_ids_ignore_pending_flag(self, db, categories):
        _add_item(db, "item_a", pending=False)
        _add_item(db, "item_b")
        client = TokenFeedPlaidClient({})

        result = BatchService(client).run(db, item_ids=["item_a"], include_snapshots=False)

        assert result.items_synced == 1
        assert [token for token, _ in client.sync_calls] == ["access-item_a"]


class TestStoreFailure:
    def test_store_error_aborts_run_and_keeps_cursor(self, db, categories, snaptrade_user, brokerage):
        item = _add_item(db, "item_a")
        item.transactions_cursor = "a0"
        db.commit()
        client = TokenFeedPlaidClient({
            "access-item_a": TransactionsSyncPage(added=[make_txn("t1")], next_cursor="a1"),
        })
        disk_error = OperationalError("INSERT INTO transactions", {}, Exception("disk I/O error"))

        with patch.object(TransactionSyncService, "_apply_page", side_effect=disk_error):
            with pytest.raises(SQLAlchemyError):
                BatchService(client, brokerage).run(db, today=date(2026, 3, 31))

        db.expire_all()
        stored = db.query(PlaidItem).one()
        assert stored.transactions_cursor == "a0"
        assert stored.new_transactions_pending is True
        assert stored.status == "OK"
        assert client.status_calls == 0
        assert db.query(Transaction).count() == 0
        # the snapshot pass never ran
        assert db.query(DailySnapshot).count() == 0
        assert brokerage.calls == []
        assert BatchService.is_batch_in_progress() is False


class TestSnapshotPass:
    def test_writes_snapshots_and_resets_connections(self, db, categories, snaptrade_user, brokerage):
        db.add(SnapTradeConnection(connection_id="auth_fidelity", brokerage="Fidelity", status="ACCOUNT_FETCH_ERROR"))
        db.commit()

        result = BatchService(MockPlaidClient(), brokerage).run(db, today=date(2026, 3, 31))

        assert result.daily_snapshot_written is True
        assert result.monthly_snapshots_written == 2
        assert db.query(DailySnapshot).count() == 1
        assert db.query(MonthlySnapshot).count() == 2
        assert db.query(SnapTradeConnection).one().status == "OK"

    def test_account_list_failure_escalates_connections(self, db, categories, snaptrade_user):
        db.add(SnapTradeConnection(connection_id="auth_fidelity", brokerage="Fidelity", status="OK"))
        db.commit()
        brokerage = MockSnapTradeClient(
            connections=SAMPLE_BROKERAGE_CONNECTIONS,
            accounts_error=ProviderAPIError("down", "SnapTrade", 503),
        )
        service = BatchService(MockPlaidClient(), brokerage)

        result = service.run(db, today=date(2026, 3, 10))
        assert result.daily_snapshot_written is False
        assert result.errors[0].startswith("snapshot:")
        assert db.query(SnapTradeConnection).one().status == "ACCOUNT_FETCH_ERROR"

        service.run(db, today=date(2026, 3, 11))
        assert db.query(SnapTradeConnection).one().status == "CONNECTION_ERROR"

    def test_position_failure_still_writes_and_checks_health(self, db, categories, snaptrade_user, brokerage):
        brokerage.failing_accounts = {"brk_taxable"}

        result = BatchService(MockPlaidClient(), brokerage).run(db, today=date(2026, 3, 10))

        assert result.daily_snapshot_written is True
        assert any(e.startswith("positions brk_taxable") for e in result.errors)
        assert "list_connections" in brokerage.calls

    def test_skipped_without_brokerage_user(self, db, categories, brokerage):
        result = BatchService(MockPlaidClient(), brokerage).run(db, today=date(2026, 3, 31))

        assert result.daily_snapshot_written is False
        assert brokerage.calls == []

    def test_include_snapshots_false(self, db, categories, snaptrade_user, brokerage):
        BatchService(MockPlaidClient(), brokerage).run(db, include_snapshots=False)

        assert brokerage.calls == []


class TestBatchLock:
    def test_concurrent_run_rejected(self, db):
        service = BatchService(MockPlaidClient())
        with patch.object(BatchService, "_batch_lock") as mock_lock:
            mock_lock.acquire.return_value = False
            with pytest.raises(BatchInProgressError, match="already in progress"):
                service.run(db)

    def test_lock_released_after_error(self, db, categories):
        _add_item(db, "item_a")
        service = BatchService(MockPlaidClient())
        with patch.object(service, "_sync_items", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                service.run(db)

        assert BatchService.is_batch_in_progress() is False

    def test_in_progress_error_is_value_error(self):
        assert isinstance(BatchInProgressError(), ValueError)


class TestMarkItemPending:
    def test_sets_flag_without_provider_calls(self, db):
        _add_item(db, "item_a", pending=False)

        assert BatchService.mark_item_pending(db, "item_a") is True

        db.expire_all()
        assert db.query(PlaidItem).one().new_transactions_pending is True

    def test_unknown_item(self, db):
        assert BatchService.mark_item_pending(db, "nope") is False
