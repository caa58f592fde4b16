from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json

import httpx
import pytest

from app.clients.docserver import DocumentServerClient, DocumentServerError
from app.utils.http import RetryConfig


def _client(handler, attempts: int = 2) -> DocumentServerClient:
    return DocumentServerClient(
        retry_config=RetryConfig(attempts=attempts, backoff_seconds=0),
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_get_server_version_sends_signed_command() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"error": 0, "version": "8.2.1"})

    response = await _client(handler).get_server_version(
        "https://docs.example.com", header="AuthorizationJwt", token="jwt-token"
    )

    assert response.version == "8.2.1"
    request = requests[0]
    assert request.url.path == "/command"
    assert "shardKey" in request.url.params
    assert request.headers["AuthorizationJwt"] == "jwt-token"
    assert json.loads(request.content) == {"c": "version", "token": "jwt-token"}


@pytest.mark.asyncio
async def test_get_server_version_retries_server_errors() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        if len(calls) == 1:
            return httpx.Response(502)
        return httpx.Response(200, json={"error": 0, "version": "9.0"})

    response = await _client(handler).get_server_version(
        "https://docs.example.com", header="Authorization", token="jwt"
    )

    assert response.version == "9.0"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_get_server_version_does_not_retry_client_errors() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(403)

    with pytest.raises(DocumentServerError):
        await _client(handler, attempts=3).get_server_version(
            "https://docs.example.com", header="Authorization", token="jwt"
        )
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_get_server_version_rejects_malformed_body() -> None:
    client = _client(lambda request: httpx.Response(200, content=b"<html></html>"))

    with pytest.raises(DocumentServerError):
        await client.get_server_version(
            "https://docs.example.com", header="Authorization", token="jwt"
        )
