"""Integration tests for Plaid API endpoints."""

from datetime import date

from integrations.provider_protocol import TokenExchangeResult
from models import PlaidAccount, PlaidItem, Transaction
from tests.fixtures import add_transaction
from tests.fixtures.mocks import provider_error


class TestCreateLinkToken:
    def test_creates_link_token(self, client, mock_plaid_client):
        response = client.post("/api/plaid/link-token")
        assert response.status_code == 200
        assert response.json() == {"link_token": "link-sandbox-new"}
        assert mock_plaid_client.link_token_calls == [("ledgerline-owner", None)]

    def test_returns_400_when_not_configured(self, client, mock_plaid_client):
        mock_plaid_client.configured = False
        response = client.post("/api/plaid/link-token")
        assert response.status_code == 400

    def test_invalid_api_keys_returns_hint(self, client, mock_plaid_client):
        mock_plaid_client.link_token_error = provider_error("INVALID_API_KEYS")
        response = client.post("/api/plaid/link-token")
        assert response.status_code == 400
        assert "PLAID_ENVIRONMENT" in response.json()["detail"]

    def test_other_provider_failure_returns_502(self, client, mock_plaid_client):
        mock_plaid_client.link_token_error = provider_error("INTERNAL_SERVER_ERROR", status_code=500)
        response = client.post("/api/plaid/link-token")
        assert response.status_code == 502


class TestReconnectLinkToken:
    def test_uses_item_access_token(self, client, plaid_item, mock_plaid_client):
        response = client.post("/api/plaid/reconnect-link-token", json={"item_id": "item_chase"})
        assert response.status_code == 200
        assert response.json()["link_token"] == "link-sandbox-update"
        assert mock_plaid_client.link_token_calls == [("ledgerline-owner", "access-sandbox-chase")]

    def test_unknown_item_returns_404(self, client):
        response = client.post("/api/plaid/reconnect-link-token", json={"item_id": "item_missing"})
        assert response.status_code == 404


class TestExchangeToken:
    def test_exchanges_token_and_creates_item(self, client, db):
        response = client.post(
            "/api/plaid/exchange-token",
            json={
                "public_token": "public-sandbox-test",
                "institution_id": "ins_109508",
                "institution_name": "First Platypus Bank",
            },
        )
        assert response.status_code == 200
        assert response.json() == {
            "item_id": "item_new",
            "institution_name": "First Platypus Bank",
            "accounts_linked": 2,
        }

        item = db.query(PlaidItem).filter_by(item_id="item_new").one()
        assert item.access_token == "access-sandbox-new"
        assert item.status == "OK"
        assert item.new_transactions_pending is True
        assert db.query(PlaidAccount).filter_by(item_id="item_new").count() == 2

    def test_relink_replaces_item_for_same_institution(self, client, db, plaid_item, categories):
        add_transaction(db, "txn_old", 1500, date(2026, 3, 1))
        db.commit()

        response = client.post(
            "/api/plaid/exchange-token",
            json={"public_token": "public-sandbox-relink", "institution_id": "ins_3", "institution_name": "Chase"},
        )
        assert response.status_code == 200

        db.expire_all()
        assert db.query(PlaidItem).filter_by(item_id="item_chase").first() is None
        assert db.query(Transaction).count() == 0
        accounts = db.query(PlaidAccount).all()
        assert {a.item_id for a in accounts} == {"item_new"}

    def test_rejects_empty_public_token(self, client):
        response = client.post("/api/plaid/exchange-token", json={"public_token": ""})
        assert response.status_code == 422

    def test_provider_failure_writes_nothing(self, client, db, mock_plaid_client):
        def fail(public_token):
            raise provider_error("INVALID_PUBLIC_TOKEN")

        mock_plaid_client.exchange_public_token = fail
        response = client.post("/api/plaid/exchange-token", json={"public_token": "public-bad"})
        assert response.status_code == 502
        assert db.query(PlaidItem).count() == 0

    def test_same_item_id_updates_access_token(self, client, db, plaid_item, mock_plaid_client):
        mock_plaid_client.exchange_result = TokenExchangeResult(
            access_token="access-sandbox-rotated", item_id="item_chase"
        )
        response = client.post(
            "/api/plaid/exchange-token",
            json={"public_token": "public-sandbox-update", "institution_id": "ins_3"},
        )
        assert response.status_code == 200

        db.expire_all()
        item = db.query(PlaidItem).filter_by(item_id="item_chase").one()
        assert item.access_token == "access-sandbox-rotated"
        assert item.institution_name == "Chase"


class TestRemoveItem:
    def test_removes_item(self, client, db, plaid_item, mock_plaid_client):
        response = client.delete("/api/plaid/items/item_chase")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "item_id": "item_chase"}
        assert mock_plaid_client.removed_tokens == ["access-sandbox-chase"]

        db.expire_all()
        assert db.query(PlaidItem).count() == 0
        assert db.query(PlaidAccount).count() == 0

    def test_unknown_item_returns_404(self, client):
        response = client.delete("/api/plaid/items/item_missing")
        assert response.status_code == 404

    def test_provider_failure_keeps_local_item(self, client, db, plaid_item, mock_plaid_client):
        mock_plaid_client.remove_error = provider_error("INTERNAL_SERVER_ERROR", status_code=500)
        response = client.delete("/api/plaid/items/item_chase")
        assert response.status_code == 502

        db.expire_all()
        assert db.query(PlaidItem).filter_by(item_id="item_chase").one() is not None
