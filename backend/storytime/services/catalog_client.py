"""Client-credentials exchange with the story catalog.

The frontend talks to the catalog (Spotify) directly with an app-level
bearer credential. This client obtains one using the process-wide client
id/secret. It holds no per-user state.
"""

from __future__ import annotations

from typing import Any

import httpx

from storytime.core.config import Settings
from storytime.core.exceptions import ServerError
from storytime.core.logging import get_logger

logger = get_logger(__name__)

CATALOG_FAILURE_MESSAGE = "Something went wrong, please try again later"


class CatalogCredentialClient:
    """Fetch short-lived client credentials from the catalog token endpoint."""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        token_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> CatalogCredentialClient:
        return cls(
            client_id=settings.CATALOG_CLIENT_ID,
            client_secret=settings.CATALOG_CLIENT_SECRET.get_secret_value(),
            token_url=settings.CATALOG_TOKEN_URL,
            timeout=settings.CATALOG_TIMEOUT_SECONDS,
        )

    async def fetch_client_token(self) -> dict[str, Any]:
        """Exchange client id/secret for an access token.

        Returns:
            The token endpoint's JSON body (``access_token``,
            ``token_type``, ``expires_in``).

        Raises:
            ServerError: For any transport, HTTP or payload failure.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    self._token_url,
                    data={"grant_type": "client_credentials"},
                    auth=(self._client_id, self._client_secret),
                )
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "Catalog credential exchange failed",
                extra={
                    "context": {
                        "action": "catalog_token",
                        "error_type": type(e).__name__,
                        "status": "failed",
                    }
                },
            )
            raise ServerError(CATALOG_FAILURE_MESSAGE) from e

        if not isinstance(body, dict) or "access_token" not in body:
            logger.warning(
                "Catalog credential exchange returned no access token",
                extra={"context": {"action": "catalog_token", "status": "failed"}},
            )
            raise ServerError(CATALOG_FAILURE_MESSAGE)

        return body


__all__ = [
    "CATALOG_FAILURE_MESSAGE",
    "CatalogCredentialClient",
]
