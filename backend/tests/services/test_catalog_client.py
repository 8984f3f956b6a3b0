"""Catalog client-credentials exchange tests."""

import base64

import httpx
import pytest

from storytime.core.exceptions import ServerError
from storytime.services.catalog_client import (
    CATALOG_FAILURE_MESSAGE,
    CatalogCredentialClient,
)

TOKEN_URL = "https://catalog.test/api/token"


def _client(handler) -> CatalogCredentialClient:
    return CatalogCredentialClient(
        client_id="client-id",
        client_secret="client-secret",
        token_url=TOKEN_URL,
        transport=httpx.MockTransport(handler),
    )


class TestFetchClientToken:
    """Test the client-credentials grant."""

    async def test_returns_token_body(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(
                200,
                json={"access_token": "abc", "token_type": "Bearer", "expires_in": 3600},
            )

        body = await _client(handler).fetch_client_token()

        assert body["access_token"] == "abc"
        assert body["expires_in"] == 3600

        request = captured[0]
        assert request.method == "POST"
        assert str(request.url) == TOKEN_URL
        assert request.content == b"grant_type=client_credentials"
        expected = base64.b64encode(b"client-id:client-secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"

    async def test_rejected_credentials(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_client"})

        with pytest.raises(ServerError) as exc_info:
            await _client(handler).fetch_client_token()

        assert exc_info.value.message == CATALOG_FAILURE_MESSAGE

    async def test_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(ServerError):
            await _client(handler).fetch_client_token()

    async def test_non_json_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>oops</html>")

        with pytest.raises(ServerError):
            await _client(handler).fetch_client_token()

    async def test_body_without_access_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"token_type": "Bearer"})

        with pytest.raises(ServerError):
            await _client(handler).fetch_client_token()
