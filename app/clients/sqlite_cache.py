"""SQLite-backed expiring cache."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Raised when the cache backend cannot be read or written."""


class SQLiteCache:
    """Byte-valued cache with per-entry expiry and a shared key prefix."""

    def __init__(
        self,
        db_path: str,
        *,
        key_prefix: str = "app:cache:",
        default_ttl_seconds: int = 300,
    ) -> None:
        self._db_path = Path(db_path)
        self._prefix = key_prefix
        self._default_ttl = default_ttl_seconds
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path, check_same_thread=False)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cache_entries (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    expires_at REAL NOT NULL
                )
                """
            )
        conn.close()

    def _build_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _get_sync(self, key: str) -> Optional[bytes]:
        now = time.time()
        conn = self._connect()
        try:
            with conn:
                row = conn.execute(
                    "SELECT value, expires_at FROM cache_entries WHERE key = ?",
                    (key,),
                ).fetchone()
                if row and row[1] <= now:
                    conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                    row = None
        finally:
            conn.close()
        if row is None:
            logger.debug("Cache miss", extra={"key": key})
            return None
        logger.debug("Cache hit", extra={"key": key})
        return bytes(row[0])

    def _set_sync(self, key: str, value: bytes, ttl_seconds: int) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO cache_entries (key, value, expires_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE
                    SET value = excluded.value, expires_at = excluded.expires_at
                    """,
                    (key, value, time.time() + ttl_seconds),
                )
        finally:
            conn.close()

    def _delete_sync(self, key: str) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
        finally:
            conn.close()

    async def get(self, key: str) -> Optional[bytes]:
        """Return the cached value, or ``None`` on a miss or expiry."""
        try:
            return await asyncio.to_thread(self._get_sync, self._build_key(key))
        except sqlite3.Error as exc:
            raise CacheError(f"Failed to get value from cache: {exc}") from exc

    async def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds or self._default_ttl
        try:
            await asyncio.to_thread(self._set_sync, self._build_key(key), value, ttl)
        except sqlite3.Error as exc:
            raise CacheError(f"Failed to set value in cache: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._delete_sync, self._build_key(key))
        except sqlite3.Error as exc:
            raise CacheError(f"Failed to delete key from cache: {exc}") from exc


__all__ = ["CacheError", "SQLiteCache"]
