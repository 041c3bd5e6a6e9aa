"""Integration tests for the scheduled batch endpoints."""

from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from api.cron import get_cron_secret, get_retention_service
from integrations.provider_protocol import TransactionsSyncPage
from main import app
from models import DailyHolding, DailySnapshot, MonthlySnapshot, PlaidItem
from services.archive_service import ArchiveService
from services.batch_service import BatchService
from services.retention_service import RetentionService
from services.transaction_sync_service import TransactionSyncService
from tests.fixtures import add_daily
from tests.fixtures.mocks import make_txn
from utils.dates import add_months


class TestCronSecret:
    def test_rejects_missing_secret(self, client):
        response = client.post("/api/cron/daily-sync")
        assert response.status_code == 401

    def test_rejects_wrong_secret(self, client):
        response = client.post("/api/cron/daily-sync", headers={"X-Cron-Secret": "nope"})
        assert response.status_code == 401

    def test_accepts_secret_as_query_param(self, client, cron_headers):
        secret = cron_headers["X-Cron-Secret"]
        response = client.post(f"/api/cron/daily-sync?secret={secret}")
        assert response.status_code == 200

    def test_empty_configured_secret_rejects_everything(self, client):
        app.dependency_overrides[get_cron_secret] = lambda: ""
        response = client.post("/api/cron/daily-sync", headers={"X-Cron-Secret": ""})
        assert response.status_code == 401

    def test_retention_requires_secret(self, client):
        response = client.post("/api/cron/retention")
        assert response.status_code == 401


class TestDailySync:
    def test_syncs_pending_items_and_snapshots(self, client, cron_headers, db, plaid_item, snaptrade_user):
        response = client.post("/api/cron/daily-sync", headers=cron_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["items_synced"] == 1
        assert data["items_failed"] == 0
        assert data["daily_snapshot_written"] is True
        assert data["errors"] == []

        db.expire_all()
        item = db.query(PlaidItem).filter_by(item_id="item_chase").one()
        assert item.new_transactions_pending is False
        snapshot = db.query(DailySnapshot).filter_by(snapshot_date=date.today()).one()
        assert snapshot.portfolio_value_cents == 1_750_000
        assert db.query(DailyHolding).filter_by(holding_date=date.today()).count() == 3

    def test_no_pending_items_no_brokerage_user(self, client, cron_headers):
        response = client.post("/api/cron/daily-sync", headers=cron_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["items_synced"] == 0
        assert data["daily_snapshot_written"] is False

    def test_item_failure_is_reported_not_raised(self, client, cron_headers, db, plaid_item, mock_plaid_client):
        from tests.fixtures.mocks import provider_error

        mock_plaid_client.failures[""] = provider_error("ITEM_LOGIN_REQUIRED")
        response = client.post("/api/cron/daily-sync", headers=cron_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["items_failed"] == 1
        assert "item_chase" in data["errors"][0]

        db.expire_all()
        item = db.query(PlaidItem).filter_by(item_id="item_chase").one()
        assert item.status == "LOGIN_REQUIRED"
        assert item.new_transactions_pending is True

    def test_returns_409_when_batch_running(self, client, cron_headers):
        BatchService._batch_lock.acquire()
        try:
            response = client.post("/api/cron/daily-sync", headers=cron_headers)
        finally:
            BatchService._batch_lock.release()
        assert response.status_code == 409

    def test_store_failure_returns_500_and_keeps_item_state(
        self, client, cron_headers, db, plaid_item, snaptrade_user, mock_plaid_client
    ):
        plaid_item.transactions_cursor = "c0"
        db.commit()
        mock_plaid_client.pages["c0"] = TransactionsSyncPage(added=[make_txn("t1")], next_cursor="c1")
        disk_error = OperationalError("INSERT INTO transactions", {}, Exception("disk I/O error"))

        with patch.object(TransactionSyncService, "_apply_page", side_effect=disk_error):
            response = client.post("/api/cron/daily-sync", headers=cron_headers)

        assert response.status_code == 500
        assert response.json()["detail"].startswith("Batch run failed")

        db.expire_all()
        item = db.query(PlaidItem).filter_by(item_id="item_chase").one()
        assert item.transactions_cursor == "c0"
        assert item.new_transactions_pending is True
        assert item.status == "OK"
        assert mock_plaid_client.status_calls == 0
        assert db.query(DailySnapshot).count() == 0


class TestRetention:
    @pytest.fixture
    def archive_dir(self, tmp_path):
        app.dependency_overrides[get_retention_service] = lambda: RetentionService(
            archive=ArchiveService(tmp_path)
        )
        return tmp_path

    def test_rolls_old_daily_rows(self, client, cron_headers, db, archive_dir):
        old_day = add_months(date.today(), -3).replace(day=15)
        add_daily(db, old_day, [("brk_roth", "VTI", 900_000)])
        db.commit()

        response = client.post("/api/cron/retention", headers=cron_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["dry_run"] is False
        assert f"{old_day:%Y-%m}" in data["daily_months_rolled"]
        assert data["errors"] == []
        assert data["archives"]

        db.expire_all()
        assert db.query(DailySnapshot).filter_by(snapshot_date=old_day).count() == 0
        monthly = db.query(MonthlySnapshot).filter_by(month=old_day.replace(day=1)).one()
        assert monthly.portfolio_value_cents == 900_000
        assert len(list(archive_dir.iterdir())) >= 1

    def test_dry_run_writes_nothing(self, client, cron_headers, db, archive_dir):
        old_day = add_months(date.today(), -3).replace(day=15)
        add_daily(db, old_day, [("brk_roth", "VTI", 900_000)])
        db.commit()

        response = client.post("/api/cron/retention?dry_run=true", headers=cron_headers)
        assert response.status_code == 200
        assert response.json()["dry_run"] is True

        db.expire_all()
        assert db.query(DailySnapshot).filter_by(snapshot_date=old_day).count() == 1
        assert list(archive_dir.iterdir()) == []
