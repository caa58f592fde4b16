"""HTTP utilities providing retry/backoff semantics."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    attempts: int = 3
    backoff_seconds: float = 0.5


def _is_retryable(exc: httpx.HTTPError) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


async def request_with_retry(
    send: Callable[[], Awaitable[httpx.Response]],
    *,
    retry_config: RetryConfig | None = None,
) -> httpx.Response:
    """Await ``send`` until it yields a 2xx response or retries run out.

    Transport failures and 5xx answers are retried with linear backoff; 4xx
    answers are raised immediately.
    """
    config = retry_config or RetryConfig()
    attempt = 0

    while True:
        attempt += 1
        try:
            response = await send()
            response.raise_for_status()
            return response
        except httpx.HTTPError as exc:
            if attempt >= config.attempts or not _is_retryable(exc):
                raise
            logger.warning("Retrying HTTP request (attempt %s): %s", attempt, exc)
            await asyncio.sleep(config.backoff_seconds * attempt)


__all__ = ["RetryConfig", "request_with_retry"]
