"""Authenticated HTTP access to Google REST APIs.

The client owns the shared httpx connection pool and the token lookup, and
is handed to the server explicitly so tests and alternate callers can supply
their own storage or manager.
"""

import logging
from typing import Any

import httpx

from gdrive_mcp.auth import SERVICE_NAME, OAuthManager, TokenStatus, TokenStorage

logger = logging.getLogger(__name__)

DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
DOCS_API_BASE = "https://docs.googleapis.com/v1"


class GoogleApiClient:
    """Bearer-token HTTP client for Drive and Docs.

    Attributes:
        storage: TokenStorage the access token is read from.
        manager: OAuthManager used to refresh an expired token.
    """

    def __init__(
        self,
        storage: TokenStorage | None = None,
        manager: OAuthManager | None = None,
    ) -> None:
        self.storage = storage or TokenStorage()
        self.manager = manager or OAuthManager(storage=self.storage)
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client with connection pooling."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                http2=True,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                timeout=httpx.Timeout(30.0, connect=10.0),
            )
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client and release resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def get_access_token(self) -> str:
        """Get a valid access token, refreshing it if necessary.

        Raises:
            RuntimeError: If no usable token is stored or refresh fails.
        """
        status = self.storage.get_status(SERVICE_NAME)

        if status == TokenStatus.MISSING:
            raise RuntimeError(
                f"No OAuth token found for service '{SERVICE_NAME}'. "
                "Please authenticate first using: gdrive-mcp setup"
            )

        if status == TokenStatus.INVALID:
            raise RuntimeError(
                f"OAuth token for service '{SERVICE_NAME}' is invalid or corrupted. "
                "Please re-authenticate using: gdrive-mcp setup"
            )

        if status == TokenStatus.EXPIRED:
            logger.info("Token expired, attempting refresh...")
            token = await self.manager.refresh_if_needed()
            if token is None:
                raise RuntimeError(
                    "Token refresh failed. Please re-authenticate using: gdrive-mcp setup"
                )
            return token.access_token

        stored = self.storage.retrieve(SERVICE_NAME)
        if stored is None:
            raise RuntimeError("Unexpected error: token retrieval failed")

        return stored.token.access_token

    async def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated JSON request to a Google API.

        Returns:
            Decoded JSON response; an empty dict for an empty body.

        Raises:
            httpx.HTTPStatusError: If the API answers with an error status.
        """
        access_token = await self.get_access_token()
        client = await self._get_http_client()

        logger.debug(f"{method} {url}")
        response = await client.request(
            method=method,
            url=url,
            params=params,
            json=json_data,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )
        response.raise_for_status()
        if not response.content:
            return {}
        result: dict[str, Any] = response.json()
        return result

    async def batch_update_document(
        self,
        document_id: str,
        requests: list[dict[str, Any]],
        required_revision_id: str | None = None,
    ) -> dict[str, Any]:
        """Send a Docs batchUpdate.

        Args:
            document_id: Target document.
            requests: Request entries, applied in order by the service.
            required_revision_id: When set, the service rejects the update if
                the document changed since that revision was read.
        """
        body: dict[str, Any] = {"requests": requests}
        if required_revision_id:
            body["writeControl"] = {"requiredRevisionId": required_revision_id}

        url = f"{DOCS_API_BASE}/documents/{document_id}:batchUpdate"
        return await self.request("POST", url, json_data=body)
