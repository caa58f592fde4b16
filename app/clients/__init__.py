"""Expose constructed client wrappers."""

from .docserver import DocumentServerClient, DocumentServerError
from .miro_oauth import (
    MiroOAuthClient,
    OAuthClientError,
    OAuthTokenExchangeError,
    OAuthTokenRefreshError,
)
from .sqlite_cache import CacheError, SQLiteCache
from .sqlite_store import RecordNotFoundError, SQLiteStorage, StorageError

__all__ = [
    "CacheError",
    "DocumentServerClient",
    "DocumentServerError",
    "MiroOAuthClient",
    "OAuthClientError",
    "OAuthTokenExchangeError",
    "OAuthTokenRefreshError",
    "RecordNotFoundError",
    "SQLiteCache",
    "SQLiteStorage",
    "StorageError",
]
