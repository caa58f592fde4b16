"""SQLite-backed generic record storage.

The engine knows nothing about any entity: table layout, SQL and row mapping
come from a :class:`StorageProcessor` supplied per entity. Each operation runs
in its own transaction on a worker thread so callers can ``await`` it. A
cancelled caller stops waiting, but the thread still finishes its transaction,
which commits or rolls back as a whole.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import (
    Any,
    Callable,
    Generic,
    Iterator,
    NamedTuple,
    Protocol,
    Sequence,
    Tuple,
    TypeVar,
)

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class StorageError(Exception):
    """Base class for storage failures."""


class RecordNotFoundError(StorageError):
    """Raised when no record exists for the requested key."""


class StoreUnavailableError(StorageError):
    """Raised when the database cannot be reached or is locked."""


class Statement(NamedTuple):
    query: str
    params: Tuple[Any, ...] = ()


Scanner = Callable[[sqlite3.Row], V]


class StorageProcessor(Protocol[K, V]):
    """Builds entity-specific SQL for :class:`SQLiteStorage`."""

    table_name: str
    schema: Sequence[str]

    def build_select_query(self, key: K) -> Tuple[Statement, Scanner[V]]: ...

    def build_insert_query(self, key: K, value: V) -> Sequence[Statement]: ...

    def build_update_query(self, key: K, value: V) -> Sequence[Statement]: ...

    def build_delete_query(self, key: K) -> Sequence[Statement]: ...


class Storage(Protocol[K, V]):
    """Persistence contract consumed by the service layer."""

    async def find(self, key: K) -> V: ...

    async def insert(self, key: K, value: V) -> V: ...

    async def update(self, key: K, value: V) -> V: ...

    async def delete(self, key: K) -> None: ...


class SQLiteStorage(Generic[K, V]):
    """Transactional key-value storage driven by a per-entity processor."""

    def __init__(
        self,
        db_path: str,
        processor: StorageProcessor[K, V],
        *,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._db_path = Path(db_path)
        self._processor = processor
        self._timeout = timeout_seconds
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                self._db_path,
                timeout=self._timeout,
                check_same_thread=False,
                isolation_level=None,
            )
        except sqlite3.OperationalError as exc:
            raise StoreUnavailableError(f"Cannot open database {self._db_path}") from exc
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self, *, write: bool) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._transaction(write=True) as conn:
            for ddl in self._processor.schema:
                conn.execute(ddl)

    def _run(self, operation: Callable[[], V], key: Any) -> V:
        try:
            return operation()
        except StorageError:
            raise
        except sqlite3.OperationalError as exc:
            logger.error(
                "Storage unavailable for %s",
                self._processor.table_name,
                extra={"key": key},
            )
            raise StoreUnavailableError(str(exc)) from exc
        except sqlite3.Error as exc:
            logger.error(
                "Storage failure for %s",
                self._processor.table_name,
                extra={"key": key},
            )
            raise StorageError(str(exc)) from exc

    def _find_sync(self, key: K) -> V:
        statement, scanner = self._processor.build_select_query(key)
        with self._transaction(write=False) as conn:
            row = conn.execute(statement.query, statement.params).fetchone()
        if row is None:
            logger.debug(
                "No record found in %s", self._processor.table_name, extra={"key": key}
            )
            raise RecordNotFoundError(f"No record in {self._processor.table_name}")
        return scanner(row)

    def _write_sync(
        self, statements: Sequence[Statement], key: K, *, require_existing: bool
    ) -> None:
        with self._transaction(write=True) as conn:
            for index, statement in enumerate(statements):
                cursor = conn.execute(statement.query, statement.params)
                if require_existing and index == 0 and cursor.rowcount == 0:
                    logger.debug(
                        "No record to modify in %s",
                        self._processor.table_name,
                        extra={"key": key},
                    )
                    raise RecordNotFoundError(
                        f"No record in {self._processor.table_name}"
                    )

    async def find(self, key: K) -> V:
        """Return the record stored under ``key``."""
        return await asyncio.to_thread(self._run, lambda: self._find_sync(key), key)

    async def insert(self, key: K, value: V) -> V:
        """Insert ``value`` or fully replace the record already under ``key``."""
        statements = self._processor.build_insert_query(key, value)
        await asyncio.to_thread(
            self._run,
            lambda: self._write_sync(statements, key, require_existing=False),
            key,
        )
        return value

    async def update(self, key: K, value: V) -> V:
        """Replace an existing record; never creates one."""
        statements = self._processor.build_update_query(key, value)
        await asyncio.to_thread(
            self._run,
            lambda: self._write_sync(statements, key, require_existing=True),
            key,
        )
        return value

    async def delete(self, key: K) -> None:
        """Remove the record stored under ``key``."""
        statements = self._processor.build_delete_query(key)
        await asyncio.to_thread(
            self._run,
            lambda: self._write_sync(statements, key, require_existing=True),
            key,
        )


__all__ = [
    "RecordNotFoundError",
    "SQLiteStorage",
    "Statement",
    "Storage",
    "StorageError",
    "StorageProcessor",
    "StoreUnavailableError",
]
