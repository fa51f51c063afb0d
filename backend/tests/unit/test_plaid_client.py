"""Unit tests for PlaidClient."""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from plaid import ApiException
from urllib3.exceptions import ProtocolError

from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
)
from integrations.plaid_client import SYNC_PAGE_SIZE, PlaidClient, to_payload
from integrations.transaction_provider import SyncPage


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
        ms.PLAID_CLIENT_NAME = "Ledgerlink"
        ms.PLAID_COUNTRY_CODES = ["US"]
        yield ms


@pytest.fixture
def mock_empty_settings():
    """Fixture that mocks settings with empty Plaid credentials."""
    with patch("integrations.plaid_client.settings") as ms:
        ms.PLAID_CLIENT_ID = ""
        ms.PLAID_SECRET = ""
        ms.PLAID_ENVIRONMENT = "sandbox"
        yield ms


@pytest.fixture
def mock_plaid_api():
    """Fixture that provides a mocked PlaidApi."""
    with patch("integrations.plaid_client.PlaidApi") as MockCls, patch(
        "integrations.plaid_client.ApiClient"
    ):
        api_instance = MagicMock()
        MockCls.return_value = api_instance
        yield api_instance


def _api_exception(status: int, body: str = "{}") -> ApiException:
    exc = ApiException(status=status, reason="Error")
    exc.body = body
    return exc


def _sync_response(next_cursor="cursor-1", has_more=False, added=None, modified=None, removed=None):
    return {
        "next_cursor": next_cursor,
        "has_more": has_more,
        "added": added or [],
        "modified": modified or [],
        "removed": removed or [],
    }


# ---------------------------------------------------------------------------
# Tests: Configuration
# ---------------------------------------------------------------------------


class TestPlaidClientConfig:
    def test_is_configured_with_credentials(self, mock_settings):
        client = PlaidClient()
        assert client.is_configured() is True

    def test_is_not_configured_without_credentials(self, mock_empty_settings):
        client = PlaidClient()
        assert client.is_configured() is False

    def test_explicit_credentials_override_settings(self, mock_empty_settings):
        client = PlaidClient(client_id="cid", secret="sec")
        assert client.is_configured() is True

    def test_provider_name(self, mock_settings):
        client = PlaidClient()
        assert client.provider_name == "Plaid"

    def test_api_created_lazily_and_cached(self, mock_settings):
        with patch("integrations.plaid_client.PlaidApi") as MockCls, patch(
            "integrations.plaid_client.ApiClient"
        ):
            client = PlaidClient()
            MockCls.assert_not_called()
            assert client._get_api() is client._get_api()
            MockCls.assert_called_once()


# ---------------------------------------------------------------------------
# Tests: Payload conversion
# ---------------------------------------------------------------------------


class TestToPayload:
    def test_dates_become_iso_strings(self):
        payload = to_payload({"transaction_id": "t1", "date": date(2026, 1, 15), "amount": 4.5})
        assert payload == {"transaction_id": "t1", "date": "2026-01-15", "amount": 4.5}

    def test_uses_to_dict_when_available(self):
        model = MagicMock()
        model.to_dict.return_value = {"transaction_id": "t1", "authorized_date": None}
        assert to_payload(model) == {"transaction_id": "t1", "authorized_date": None}

    def test_nested_values_are_converted(self):
        payload = to_payload({"location": {"city": "Austin"}, "counterparties": [{"name": "X"}]})
        assert payload["location"] == {"city": "Austin"}
        assert payload["counterparties"] == [{"name": "X"}]


# ---------------------------------------------------------------------------
# Tests: /transactions/sync
# ---------------------------------------------------------------------------


class TestSyncTransactions:
    def test_returns_sync_page(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.return_value = _sync_response(
            next_cursor="cursor-2",
            has_more=True,
            added=[{"transaction_id": "t1", "authorized_date": date(2026, 1, 15)}],
            modified=[{"transaction_id": "t2", "amount": 3.0}],
            removed=[{"transaction_id": "t3"}],
        )

        page = PlaidClient().sync_transactions("access-token", "cursor-1")

        assert isinstance(page, SyncPage)
        assert page.next_cursor == "cursor-2"
        assert page.has_more is True
        assert page.added == [{"transaction_id": "t1", "authorized_date": "2026-01-15"}]
        assert page.modified == [{"transaction_id": "t2", "amount": 3.0}]
        assert page.removed == [{"transaction_id": "t3"}]

    def test_passes_cursor_and_page_size(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.return_value = _sync_response()

        PlaidClient().sync_transactions("access-token", "cursor-1")

        request = mock_plaid_api.transactions_sync.call_args[0][0]
        assert request.access_token == "access-token"
        assert request.cursor == "cursor-1"
        assert request.count == SYNC_PAGE_SIZE

    def test_empty_cursor_omitted_from_request(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.return_value = _sync_response()

        PlaidClient().sync_transactions("access-token", "")

        request = mock_plaid_api.transactions_sync.call_args[0][0]
        assert "cursor" not in request.to_dict()

    def test_missing_fields_raise_data_error(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.return_value = {"added": []}

        with pytest.raises(ProviderDataError):
            PlaidClient().sync_transactions("access-token", "")

    def test_api_exception_is_mapped(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.side_effect = _api_exception(
            400, '{"error_code": "ITEM_LOGIN_REQUIRED", "error_message": "login needed"}'
        )

        with pytest.raises(ProviderAuthError, match="ITEM_LOGIN_REQUIRED"):
            PlaidClient().sync_transactions("access-token", "")

    def test_transport_error_is_connection_error(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.side_effect = ProtocolError("Connection aborted.")

        with pytest.raises(ProviderConnectionError) as exc_info:
            PlaidClient().sync_transactions("access-token", "")

        assert exc_info.value.retriable is True
        assert exc_info.value.provider_name == "Plaid"


# ---------------------------------------------------------------------------
# Tests: Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    def test_auth_error_401(self, mock_settings):
        exc = _api_exception(
            401, '{"error_code": "INVALID_ACCESS_TOKEN", "error_message": "invalid token"}'
        )

        error = PlaidClient()._map_plaid_error(exc)

        assert isinstance(error, ProviderAuthError)
        assert "invalid token" in str(error)

    def test_rate_limit_429(self, mock_settings):
        error = PlaidClient()._map_plaid_error(_api_exception(429))

        assert isinstance(error, ProviderAPIError)
        assert error.status_code == 429
        assert error.retriable is True

    def test_server_error_500(self, mock_settings):
        error = PlaidClient()._map_plaid_error(_api_exception(500))

        assert isinstance(error, ProviderAPIError)
        assert error.retriable is True

    def test_bad_request_keeps_error_code(self, mock_settings):
        exc = _api_exception(
            400, '{"error_code": "INVALID_FIELD", "error_message": "cursor is invalid"}'
        )

        error = PlaidClient()._map_plaid_error(exc)

        assert isinstance(error, ProviderAPIError)
        assert error.error_code == "INVALID_FIELD"
        assert error.retriable is False

    def test_non_json_body(self, mock_settings):
        error = PlaidClient()._map_plaid_error(_api_exception(502, "<html>Bad Gateway</html>"))

        assert isinstance(error, ProviderAPIError)
        assert error.error_code == ""
        assert error.status_code == 502


# ---------------------------------------------------------------------------
# Tests: Link token, exchange and accounts
# ---------------------------------------------------------------------------


class TestLinkFlow:
    def test_create_link_token(self, mock_settings, mock_plaid_api):
        mock_plaid_api.link_token_create.return_value = {"link_token": "link-sandbox-abc123"}

        token = PlaidClient().create_link_token("user-1")

        assert token == "link-sandbox-abc123"
        request = mock_plaid_api.link_token_create.call_args[0][0]
        assert request.user.client_user_id == "user-1"
        assert [p.value for p in request.products] == ["transactions"]

    def test_create_link_token_invalid_keys(self, mock_settings, mock_plaid_api):
        mock_plaid_api.link_token_create.side_effect = _api_exception(
            400, '{"error_code": "INVALID_API_KEYS", "error_message": "invalid client_id or secret"}'
        )

        with pytest.raises(ProviderAuthError, match="INVALID_API_KEYS"):
            PlaidClient().create_link_token("user-1")

    def test_exchange_public_token(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_public_token_exchange.return_value = {
            "access_token": "access-sandbox-xyz",
            "item_id": "item-sandbox-xyz",
            "request_id": "req-1",
        }

        result = PlaidClient().exchange_public_token("public-sandbox-test")

        assert result == {"access_token": "access-sandbox-xyz", "item_id": "item-sandbox-xyz"}

    def test_remove_item(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_remove.return_value = {"request_id": "req-1"}

        PlaidClient().remove_item("access-sandbox-xyz")

        call_args = mock_plaid_api.item_remove.call_args[0][0]
        assert call_args.access_token == "access-sandbox-xyz"

    def test_get_accounts(self, mock_settings, mock_plaid_api):
        mock_plaid_api.accounts_get.return_value = {
            "accounts": [
                {"account_id": "acc_1", "name": "Plaid Checking", "mask": "0000"},
            ],
        }

        accounts = PlaidClient().get_accounts("access-sandbox-xyz")

        assert accounts == [{"account_id": "acc_1", "name": "Plaid Checking", "mask": "0000"}]
