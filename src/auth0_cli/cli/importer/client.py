"""Auth0 Management API client.

Wraps the few Management API v2 endpoints the import command needs:
- paginated listing of a collection (include_totals envelope)
- create / update (PATCH) / delete of a single resource
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from auth0_cli.cli.importer.settings import Auth0Settings

logger = logging.getLogger(__name__)


class ManagementAPIError(Exception):
    """Base exception for Management API errors."""

    def __init__(
        self, message: str, status_code: int | None = None, response: dict | None = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class ManagementAuthError(ManagementAPIError):
    """Authentication failed or the token lacks the required scopes."""

    pass


class ManagementNotFoundError(ManagementAPIError):
    """Resource not found."""

    pass


class ManagementConflictError(ManagementAPIError):
    """Resource already exists."""

    pass


class ResourceOperationError(ManagementAPIError):
    """A list/create/update/delete of one resource failed.

    The message names the operation and the resource; the underlying error is
    kept as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        resource: str,
        key: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, status_code=status_code)
        self.operation = operation
        self.resource = resource
        self.key = key


@dataclass
class TokenInfo:
    """OAuth token information."""

    access_token: str
    expires_at: float

    def is_valid(self, leeway: int = 30) -> bool:
        """Check if token is still valid."""
        return time.time() < (self.expires_at - leeway)


class ManagementClient:
    """Async client for the Auth0 Management API v2."""

    def __init__(
        self,
        settings: Auth0Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings
        self._transport = transport
        self._token: TokenInfo | None = None
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ManagementClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            timeout=self._settings.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def settings(self) -> Auth0Settings:
        """Get settings."""
        return self._settings

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def authenticate(self) -> None:
        """Obtain an access token.

        A pre-issued token wins; otherwise the client credentials grant is used.
        """
        if not self._settings.domain:
            raise ManagementAuthError(
                "No tenant domain provided. Use --domain, AUTH0_DOMAIN "
                "or the AUTH0_DOMAIN key of the config file"
            )

        if self._settings.has_access_token:
            # Expiry is unknown; trust it until the API says otherwise
            self._token = TokenInfo(
                access_token=self._settings.access_token or "",
                expires_at=float("inf"),
            )
            logger.debug("Using provided access token for %s", self._settings.domain)
        elif self._settings.has_client_credentials:
            await self._authenticate_client_credentials()
        else:
            raise ManagementAuthError(
                "No credentials provided. Use --client-id/--client-secret "
                "or --access-token"
            )

    async def _authenticate_client_credentials(self) -> None:
        """Authenticate using the client credentials grant."""
        data = {
            "grant_type": "client_credentials",
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "audience": self._settings.audience,
        }

        logger.debug("Authenticating with client credentials: %s", self._settings.client_id)

        try:
            response = await self._client.post(self._settings.token_url, json=data)
        except httpx.HTTPError as e:
            raise ManagementAuthError(f"Token request failed: {e}") from e

        if response.status_code != 200:
            raise ManagementAuthError(
                f"Client credentials authentication failed: {response.text}",
                status_code=response.status_code,
            )

        payload = response.json()
        self._token = TokenInfo(
            access_token=payload["access_token"],
            expires_at=time.time() + float(payload.get("expires_in", 86400)),
        )
        logger.info("Authenticated as client: %s", self._settings.client_id)

    async def _ensure_token(self) -> str:
        """Ensure we have a valid token."""
        if not self._token or not self._token.is_valid():
            await self.authenticate()
        return self._token.access_token

    async def _headers(self) -> dict[str, str]:
        """Get request headers with auth token."""
        token = await self._ensure_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    # -------------------------------------------------------------------------
    # HTTP helpers
    # -------------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        expected_status: list[int] | None = None,
    ) -> Any:
        """Send a request to the Management API."""
        url = f"{self._settings.api_url}{path}"
        headers = await self._headers()
        try:
            response = await self._client.request(
                method, url, headers=headers, params=params, json=json
            )
        except httpx.HTTPError as e:
            raise ManagementAPIError(f"{method} {path} failed: {e}") from e
        return self._handle_response(response, expected_status=expected_status)

    def _handle_response(
        self,
        response: httpx.Response,
        expected_status: list[int] | None = None,
    ) -> Any:
        """Handle API response."""
        expected = expected_status or [200]

        if response.status_code in expected:
            if response.status_code == 204 or not response.content:
                return None
            return response.json()

        body = _error_body(response)
        message = body.get("message") or response.text

        if response.status_code in (401, 403):
            raise ManagementAuthError(
                f"Not authorized ({response.status_code}): {message}",
                status_code=response.status_code,
                response=body,
            )

        if response.status_code == 404:
            raise ManagementNotFoundError(
                f"Resource not found: {response.request.url}",
                status_code=404,
                response=body,
            )

        if response.status_code == 409:
            raise ManagementConflictError(
                f"Resource already exists: {message}",
                status_code=409,
                response=body,
            )

        raise ManagementAPIError(
            f"Unexpected response {response.status_code}: {message}",
            status_code=response.status_code,
            response=body,
        )

    # -------------------------------------------------------------------------
    # Collections
    # -------------------------------------------------------------------------

    async def list_page(
        self,
        path: str,
        key: str,
        page: int,
        per_page: int,
    ) -> tuple[list[dict[str, Any]], bool]:
        """Fetch one page of a collection.

        Returns the items and whether another page follows.
        """
        params = {"page": page, "per_page": per_page, "include_totals": "true"}
        logger.debug("Listing %s page=%d per_page=%d", path, page, per_page)
        result = await self._request("GET", path, params=params)

        # Some endpoints ignore include_totals and return a bare list
        if isinstance(result, list):
            return result, False

        result = result or {}
        items = result.get(key) or []
        start = int(result.get("start", page * per_page))
        limit = int(result.get("limit", per_page))
        total = int(result.get("total", 0))
        return items, total > start + limit

    async def create(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a resource; returns it with the server-assigned fields."""
        logger.debug("Creating %s", path)
        result = await self._request("POST", path, json=payload, expected_status=[200, 201])
        return result or {}

    async def update(self, path: str, resource_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """PATCH a resource with only the changed fields."""
        logger.debug("Updating %s/%s fields=%s", path, resource_id, sorted(payload))
        result = await self._request(
            "PATCH", f"{path}/{resource_id}", json=payload, expected_status=[200]
        )
        return result or {}

    async def delete(self, path: str, resource_id: str) -> None:
        """Delete a resource."""
        logger.debug("Deleting %s/%s", path, resource_id)
        await self._request("DELETE", f"{path}/{resource_id}", expected_status=[200, 202, 204])


def _error_body(response: httpx.Response) -> dict[str, Any]:
    """Parse a Management API error body ({statusCode, error, message})."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
