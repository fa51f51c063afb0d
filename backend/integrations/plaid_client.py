"""Plaid API client.

Wraps the plaid-python SDK for the calls this backend needs: Plaid Link
token creation, public-token exchange, item removal, the accounts snapshot
stored on each institution link, and cursor-based ``/transactions/sync``.

SDK responses are converted to plain JSON-safe dicts at this boundary so
the rest of the app never handles plaid model objects, and SDK/transport
failures are mapped onto the :mod:`integrations.exceptions` hierarchy.
"""

import json
import logging
from datetime import date, datetime
from typing import Any, Callable

from plaid import ApiException, Environment
from plaid.api.plaid_api import PlaidApi
from plaid.api_client import ApiClient
from plaid.configuration import Configuration
from plaid.model.accounts_get_request import AccountsGetRequest
from plaid.model.country_code import CountryCode
from plaid.model.item_public_token_exchange_request import ItemPublicTokenExchangeRequest
from plaid.model.item_remove_request import ItemRemoveRequest
from plaid.model.link_token_create_request import LinkTokenCreateRequest
from plaid.model.link_token_create_request_user import LinkTokenCreateRequestUser
from plaid.model.products import Products
from plaid.model.transactions_sync_request import TransactionsSyncRequest
from urllib3.exceptions import HTTPError as TransportError

from config import settings
from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
    ProviderError,
)
from integrations.transaction_provider import SyncPage

logger = logging.getLogger(__name__)

# Map PLAID_ENVIRONMENT setting to SDK host URLs.
# Plaid's Development environment is deprecated; only sandbox and production
# are supported.
_ENVIRONMENT_MAP: dict[str, str] = {
    "sandbox": Environment.Sandbox,
    "production": Environment.Production,
}

# Largest page size /transactions/sync accepts
SYNC_PAGE_SIZE = 500

_AUTH_ERROR_CODES = frozenset({
    "INVALID_ACCESS_TOKEN",
    "ITEM_LOGIN_REQUIRED",
    "INVALID_API_KEYS",
})


def _json_default(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def to_payload(model: Any) -> dict:
    """Convert a plaid model (or mapping) to a JSON-safe dict.

    Dates become ISO-8601 strings, matching what Plaid sends on the wire.
    """
    if hasattr(model, "to_dict"):
        raw = model.to_dict()
    else:
        raw = dict(model)
    return json.loads(json.dumps(raw, default=_json_default))


class PlaidClient:
    """Wrapper around the Plaid API.

    Implements the TransactionProvider protocol for cursor-based sync.
    """

    def __init__(
        self,
        client_id: str | None = None,
        secret: str | None = None,
        environment: str | None = None,
    ):
        self._client_id = client_id or settings.PLAID_CLIENT_ID
        self._secret = secret or settings.PLAID_SECRET
        self._environment = environment or settings.PLAID_ENVIRONMENT

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
        """Return the provider name used in errors and logs."""
        return "Plaid"

    def is_configured(self) -> bool:
        """Check if Plaid credentials are configured."""
        return bool(self._client_id) and bool(self._secret)

    def _call(self, method: Callable[[Any], Any], request: Any) -> Any:
        """Invoke an SDK method, translating failures into ProviderError subclasses."""
        try:
            return method(request)
        except ApiException as e:
            raise self._map_plaid_error(e) from e
        except (TransportError, OSError) as e:
            raise ProviderConnectionError(
                f"Could not reach Plaid: {e}", provider_name=self.provider_name
            ) from e

    # ------------------------------------------------------------------
    # Link Token & Token Exchange
    # ------------------------------------------------------------------

    def create_link_token(self, user_id: str) -> str:
        """Create a Plaid Link token for the browser-based auth flow.

        Args:
            user_id: Stable id of the signed-in user (``client_user_id``).

        Returns:
            The link_token string to be passed to Plaid Link.
        """
        api = self._get_api()
        request = LinkTokenCreateRequest(
            user=LinkTokenCreateRequestUser(client_user_id=user_id),
            client_name=settings.PLAID_CLIENT_NAME,
            products=[Products("transactions")],
            country_codes=[CountryCode(code) for code in settings.PLAID_COUNTRY_CODES],
            language="en",
        )
        response = self._call(api.link_token_create, request)
        return response["link_token"]

    def exchange_public_token(self, public_token: str) -> dict:
        """Exchange a Plaid Link public_token for a permanent access_token.

        Returns:
            Dict with ``access_token`` and ``item_id``.
        """
        api = self._get_api()
        request = ItemPublicTokenExchangeRequest(public_token=public_token)
        response = self._call(api.item_public_token_exchange, request)
        return {
            "access_token": response["access_token"],
            "item_id": response["item_id"],
        }

    def remove_item(self, access_token: str) -> None:
        """Revoke an access token by calling Plaid's /item/remove endpoint."""
        api = self._get_api()
        self._call(api.item_remove, ItemRemoveRequest(access_token=access_token))

    def get_accounts(self, access_token: str) -> list[dict]:
        """Fetch the accounts belonging to an Item as JSON-safe dicts."""
        api = self._get_api()
        response = self._call(api.accounts_get, AccountsGetRequest(access_token=access_token))
        return [to_payload(acct) for acct in response.get("accounts", []) or []]

    # ------------------------------------------------------------------
    # TransactionProvider protocol
    # ------------------------------------------------------------------

    def sync_transactions(self, access_token: str, cursor: str) -> SyncPage:
        """Fetch one page of ``/transactions/sync`` following ``cursor``.

        An empty cursor requests the Item's full history.
        """
        api = self._get_api()
        if cursor:
            request = TransactionsSyncRequest(
                access_token=access_token, cursor=cursor, count=SYNC_PAGE_SIZE
            )
        else:
            request = TransactionsSyncRequest(access_token=access_token, count=SYNC_PAGE_SIZE)
        response = self._call(api.transactions_sync, request)

        try:
            page = SyncPage(
                next_cursor=response["next_cursor"],
                has_more=bool(response["has_more"]),
                added=[to_payload(t) for t in response.get("added", []) or []],
                modified=[to_payload(t) for t in response.get("modified", []) or []],
                removed=[to_payload(t) for t in response.get("removed", []) or []],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderDataError(
                f"Malformed /transactions/sync response: {e}",
                provider_name=self.provider_name,
            ) from e

        logger.debug(
            "Plaid sync page: %d added, %d modified, %d removed, has_more=%s",
            len(page.added), len(page.modified), len(page.removed), page.has_more,
        )
        return page

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    def _map_plaid_error(self, exc: ApiException) -> ProviderError:
        """Map a Plaid ApiException to a ProviderError subclass."""
        status = exc.status or 0
        message = str(exc)

        # Try to extract error_code from the body
        error_code = ""
        try:
            body = json.loads(exc.body) if exc.body else {}
            error_code = body.get("error_code", "") or ""
            error_message = body.get("error_message", "")
            if error_message:
                message = f"Plaid error ({error_code}): {error_message}"
        except (TypeError, ValueError, AttributeError):
            logger.debug("Plaid error body is not JSON: %r", exc.body)

        if status in (401, 403) or error_code in _AUTH_ERROR_CODES:
            return ProviderAuthError(message, provider_name=self.provider_name)
        return ProviderAPIError(
            message,
            provider_name=self.provider_name,
            status_code=status or None,
            error_code=error_code,
        )
