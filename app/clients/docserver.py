"""
Client for the document server command service.

Only the version probe is needed: it proves that an address, JWT header and
secret configured for a board actually reach a compatible server.
"""

from __future__ import annotations

import secrets

import httpx
from pydantic import BaseModel, ValidationError

from app.utils.http import RetryConfig, request_with_retry


class DocumentServerError(Exception):
    """Raised when a document server is unreachable, misconfigured or too old."""


class ServerVersionResponse(BaseModel):
    error: int = 0
    version: str = ""


class DocumentServerClient:
    """Talks to customer-hosted document servers."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 3.0,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._retry = retry_config or RetryConfig(attempts=2)
        self._transport = transport

    async def get_server_version(
        self, address: str, *, header: str, token: str
    ) -> ServerVersionResponse:
        """Ask the document server at ``address`` for its version."""
        url = f"{address.rstrip('/')}/command"
        headers = {"Accept": "application/json"}
        if header:
            headers[header] = token

        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            try:
                response = await request_with_retry(
                    lambda: client.post(
                        url,
                        params={"shardKey": secrets.token_urlsafe(6)},
                        json={"c": "version", "token": token},
                        headers=headers,
                    ),
                    retry_config=self._retry,
                )
            except httpx.HTTPError as exc:
                raise DocumentServerError(
                    f"Failed to connect to document server: {exc}"
                ) from exc

        try:
            return ServerVersionResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise DocumentServerError("Failed to decode version response") from exc


__all__ = ["DocumentServerClient", "DocumentServerError", "ServerVersionResponse"]
