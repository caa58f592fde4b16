from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import time

import pytest

from app.clients.sqlite_cache import SQLiteCache


@pytest.fixture()
def cache(tmp_path) -> SQLiteCache:
    return SQLiteCache(str(tmp_path / "cache.sqlite3"), key_prefix="test:", default_ttl_seconds=60)


@pytest.mark.asyncio
async def test_cache_set_get_delete(cache) -> None:
    assert await cache.get("settings:team:board") is None

    await cache.set("settings:team:board", b'{"address": ""}')
    assert await cache.get("settings:team:board") == b'{"address": ""}'

    await cache.delete("settings:team:board")
    assert await cache.get("settings:team:board") is None


@pytest.mark.asyncio
async def test_cache_entries_expire(cache, monkeypatch) -> None:
    await cache.set("key", b"value", ttl_seconds=5)
    started = time.time()

    monkeypatch.setattr(time, "time", lambda: started + 10)

    assert await cache.get("key") is None


@pytest.mark.asyncio
async def test_cache_prefix_isolates_namespaces(tmp_path) -> None:
    path = str(tmp_path / "cache.sqlite3")
    first = SQLiteCache(path, key_prefix="one:")
    second = SQLiteCache(path, key_prefix="two:")

    await first.set("key", b"first")

    assert await second.get("key") is None
    assert await first.get("key") == b"first"
