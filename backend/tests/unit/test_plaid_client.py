"""Unit tests for the PlaidClient bank provider."""

import json
from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import urllib3
from plaid import ApiException

from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
)
from integrations.plaid_client import PlaidClient


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_settings():
    """Fixture that mocks settings with configured Plaid credentials."""
    with patch("integrations.plaid_client.settings") as ms:
        ms.PLAID_CLIENT_ID = "test-client-id"
        ms.PLAID_SECRET = "test-secret"
        ms.PLAID_ENVIRONMENT = "sandbox"
        ms.PLAID_WEBHOOK_URL = ""
        ms.PLAID_COUNTRY_CODES = "US,CA"
        yield ms


@pytest.fixture
def mock_empty_settings():
    """Fixture that mocks settings with empty Plaid credentials."""
    with patch("integrations.plaid_client.settings") as ms:
        ms.PLAID_CLIENT_ID = ""
        ms.PLAID_SECRET = ""
        ms.PLAID_ENVIRONMENT = "sandbox"
        ms.PLAID_WEBHOOK_URL = ""
        yield ms


@pytest.fixture
def mock_plaid_api():
    """Fixture that provides a mocked PlaidApi."""
    with patch("integrations.plaid_client.PlaidApi") as MockCls:
        api_instance = MagicMock()
        MockCls.return_value = api_instance
        yield api_instance


def _api_exception(status, body=None):
    exc = ApiException(status=status, reason="error")
    exc.body = json.dumps(body) if body is not None else None
    return exc


def _plaid_txn(transaction_id, amount, **overrides):
    txn = {
        "transaction_id": transaction_id,
        "account_id": "acc_checking",
        "date": date(2026, 3, 2),
        "amount": amount,
        "name": "Blue Bottle Coffee",
        "merchant_name": "Blue Bottle",
        "category": ["Food and Drink", "Restaurants"],
        "pending": False,
    }
    txn.update(overrides)
    return txn


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestConfiguration:
    def test_configured(self, mock_settings):
        assert PlaidClient().is_configured() is True
        assert PlaidClient().provider_name == "Plaid"

    def test_not_configured(self, mock_empty_settings):
        assert PlaidClient().is_configured() is False

    def test_calls_fail_without_credentials(self, mock_empty_settings, mock_plaid_api):
        with pytest.raises(ProviderAuthError):
            PlaidClient().sync_transactions("access", "")
        mock_plaid_api.transactions_sync.assert_not_called()


# ---------------------------------------------------------------------------
# Link
# ---------------------------------------------------------------------------


class TestLinkToken:
    def test_new_link_requests_transactions_product(self, mock_settings, mock_plaid_api):
        mock_plaid_api.link_token_create.return_value = {"link_token": "link-sandbox-abc"}

        assert PlaidClient().create_link_token("owner") == "link-sandbox-abc"

        request = mock_plaid_api.link_token_create.call_args[0][0]
        assert request.user.client_user_id == "owner"
        assert [p.value for p in request.products] == ["transactions"]
        assert [c.value for c in request.country_codes] == ["US", "CA"]

    def test_update_mode_passes_access_token(self, mock_settings, mock_plaid_api):
        mock_plaid_api.link_token_create.return_value = {"link_token": "link-sandbox-update"}

        PlaidClient().create_link_token("owner", access_token="access-sandbox-1")

        request = mock_plaid_api.link_token_create.call_args[0][0]
        assert request.access_token == "access-sandbox-1"

    def test_empty_link_token(self, mock_settings, mock_plaid_api):
        mock_plaid_api.link_token_create.return_value = {"link_token": ""}
        with pytest.raises(ProviderDataError):
            PlaidClient().create_link_token("owner")

    def test_exchange_public_token(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_public_token_exchange.return_value = {
            "access_token": "access-sandbox-1",
            "item_id": "item_1",
        }

        result = PlaidClient().exchange_public_token("public-sandbox-1")

        assert (result.access_token, result.item_id) == ("access-sandbox-1", "item_1")


# ---------------------------------------------------------------------------
# Accounts and item status
# ---------------------------------------------------------------------------


class TestAccounts:
    def test_maps_balances_to_cents(self, mock_settings, mock_plaid_api):
        mock_plaid_api.accounts_get.return_value = {
            "accounts": [
                {
                    "account_id": "acc_checking",
                    "name": "Checking",
                    "mask": "0000",
                    "type": "depository",
                    "subtype": "checking",
                    "balances": {"current": 3200.505},
                },
                {
                    "account_id": "acc_credit",
                    "name": None,
                    "official_name": "Rewards Visa",
                    "type": "credit",
                    "subtype": None,
                    "balances": {"current": None},
                },
                {"name": "no id"},
            ]
        }

        accounts = PlaidClient().get_accounts("access")

        assert [a.account_id for a in accounts] == ["acc_checking", "acc_credit"]
        assert accounts[0].current_balance_cents == 320051
        assert accounts[1].name == "Rewards Visa"
        assert accounts[1].current_balance_cents == 0
        assert accounts[1].subtype is None

    def test_item_status_with_error(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_get.return_value = {
            "item": {
                "item_id": "item_1",
                "error": {"error_code": "ITEM_LOGIN_REQUIRED", "error_type": "ITEM_ERROR"},
            }
        }

        status = PlaidClient().get_item_status("access")

        assert status.error_code == "ITEM_LOGIN_REQUIRED"
        assert status.error_type == "ITEM_ERROR"

    def test_item_status_healthy(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_get.return_value = {"item": {"item_id": "item_1", "error": None}}

        status = PlaidClient().get_item_status("access")

        assert status.error_code is None
        assert status.error_type is None


# ---------------------------------------------------------------------------
# Transactions sync
# ---------------------------------------------------------------------------


class TestSyncTransactions:
    def test_maps_page(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.return_value = {
            "added": [_plaid_txn("t1", 4.5), _plaid_txn("t2", -2500.0, category=None, name="Payroll")],
            "modified": [_plaid_txn("t3", 12.0, pending=True)],
            "removed": [{"transaction_id": "t0"}],
            "next_cursor": "cursor-1",
            "has_more": True,
        }

        page = PlaidClient().sync_transactions("access", "")

        request = mock_plaid_api.transactions_sync.call_args[0][0]
        assert "cursor" not in request.to_dict()
        assert [t.transaction_id for t in page.added] == ["t1", "t2"]
        assert page.added[0].amount_cents == 450
        assert page.added[0].primary_category == "Food and Drink"
        assert page.added[1].amount_cents == -250000
        assert page.added[1].primary_category is None
        assert page.modified[0].pending is True
        assert page.removed == ["t0"]
        assert page.next_cursor == "cursor-1"
        assert page.has_more is True

    def test_passes_cursor(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.return_value = {"next_cursor": "cursor-2", "has_more": False}

        page = PlaidClient().sync_transactions("access", "cursor-1")

        request = mock_plaid_api.transactions_sync.call_args[0][0]
        assert request.cursor == "cursor-1"
        assert page.added == []
        assert page.has_more is False

    def test_missing_cursor_is_data_error(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.return_value = {"added": [], "has_more": False}
        with pytest.raises(ProviderDataError):
            PlaidClient().sync_transactions("access", "")

    def test_transaction_without_date_is_data_error(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.return_value = {
            "added": [_plaid_txn("t1", 1.0, date=None)],
            "next_cursor": "c",
        }
        with pytest.raises(ProviderDataError):
            PlaidClient().sync_transactions("access", "")


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    def test_plaid_error_body_keeps_code(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.side_effect = _api_exception(
            400,
            {
                "error_code": "ITEM_LOGIN_REQUIRED",
                "error_type": "ITEM_ERROR",
                "error_message": "the login details of this item have changed",
            },
        )

        with pytest.raises(ProviderAPIError) as exc_info:
            PlaidClient().sync_transactions("access", "")

        assert exc_info.value.error_code == "ITEM_LOGIN_REQUIRED"
        assert exc_info.value.error_type == "ITEM_ERROR"
        assert exc_info.value.status_code == 400
        assert "login details" in str(exc_info.value)

    def test_unparseable_body_gets_http_code(self, mock_settings, mock_plaid_api):
        exc = ApiException(status=503, reason="Service Unavailable")
        exc.body = "<html>oops</html>"
        mock_plaid_api.item_remove.side_effect = exc

        with pytest.raises(ProviderAPIError) as exc_info:
            PlaidClient().remove_item("access")

        assert exc_info.value.error_code == "HTTP_503"
        assert exc_info.value.retriable is True

    def test_transport_error(self, mock_settings, mock_plaid_api):
        mock_plaid_api.accounts_get.side_effect = urllib3.exceptions.MaxRetryError(None, "/accounts/get")

        with pytest.raises(ProviderConnectionError):
            PlaidClient().get_accounts("access")
