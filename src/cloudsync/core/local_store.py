"""
Async facade over the local embedded SQLite store.

``sqlite3`` is blocking, so every call is offloaded to a worker thread with
``asyncio.to_thread`` and the event loop stays free for remote I/O and the
export timer.

Two kinds of connection are used:

* a shared connection for short autocommit statements (status reads, job
  bookkeeping, exporter selects), serialised by an ``asyncio.Lock``;
* a dedicated connection per [transaction()][cloudsync.core.local_store.LocalStore.transaction],
  opened with ``BEGIN IMMEDIATE`` so the writer takes the lock up front.

The store runs in WAL journal mode by default, so exporter reads on the
shared connection proceed while an import transaction is writing, and a
short busy timeout bounds how long either side waits for the other.

Note:
    Because transactions use their own connection, the store must be a file
    path; ``:memory:`` databases are not shared between connections.

Examples:
    ```python
    store = LocalStore(LocalStoreConfig(path="shop.db"))

    async with store:
        rows = await store.fetch("SELECT * FROM products WHERE created_at > ?", since)

        async with store.transaction() as tx:
            await tx.execute("UPDATE products SET company = ? WHERE id = ?", "Acme", "p1")
    ```
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import AsyncIterator  # noqa: TC003
from contextlib import asynccontextmanager
from typing import Any, Literal

from pydantic import BaseModel, Field

from .exceptions import LocalStoreError
from .logger import Logger
from .yaml import load_yaml


class LocalStoreConfig(BaseModel):
    """Location and locking behaviour of the local SQLite store."""

    path: str = Field(default="cloudsync.db", min_length=1, description="SQLite database file")
    busy_timeout: float = Field(
        default=5.0, ge=0.0, description="Seconds to wait on a locked database"
    )
    journal_mode: Literal["wal", "delete", "truncate"] = Field(
        default="wal", description="SQLite journal mode"
    )


# ---------------------------------------------------------------------------
# Blocking helpers (always executed in a worker thread)
# ---------------------------------------------------------------------------


def _fetch(conn: sqlite3.Connection, query: str, args: tuple[Any, ...]) -> list[dict[str, Any]]:
    return [dict(row) for row in conn.execute(query, args).fetchall()]


def _fetchrow(
    conn: sqlite3.Connection, query: str, args: tuple[Any, ...]
) -> dict[str, Any] | None:
    row = conn.execute(query, args).fetchone()
    return dict(row) if row is not None else None


def _fetchval(conn: sqlite3.Connection, query: str, args: tuple[Any, ...]) -> Any:
    row = conn.execute(query, args).fetchone()
    return row[0] if row is not None else None


def _execute(conn: sqlite3.Connection, query: str, args: tuple[Any, ...]) -> int:
    return conn.execute(query, args).rowcount


class LocalTransaction:
    """Query methods bound to one open local transaction.

    Obtained from [LocalStore.transaction()][cloudsync.core.local_store.LocalStore.transaction];
    never constructed directly.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        return await asyncio.to_thread(_fetch, self._conn, query, args)

    async def fetchrow(self, query: str, *args: Any) -> dict[str, Any] | None:
        return await asyncio.to_thread(_fetchrow, self._conn, query, args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        return await asyncio.to_thread(_fetchval, self._conn, query, args)

    async def execute(self, query: str, *args: Any) -> int:
        return await asyncio.to_thread(_execute, self._conn, query, args)


class LocalStore:
    """Async interface to the local SQLite database.

    Rows are returned as ``dict`` objects preserving column order.
    ``sqlite3.Error`` raised by individual statements propagates unchanged so
    callers can decide whether it is a row-level or fatal failure; failures to
    open the store or to start a transaction raise
    [LocalStoreError][cloudsync.core.exceptions.LocalStoreError].
    """

    def __init__(self, config: LocalStoreConfig | None = None) -> None:
        self._config = config or LocalStoreConfig()
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._logger = Logger("local_store")

    @classmethod
    def from_yaml(cls, config_path: str) -> LocalStore:
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> LocalStore:
        return cls(LocalStoreConfig(**config_dict))

    @property
    def config(self) -> LocalStoreConfig:
        return self._config

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    # -------------------------------------------------------------------------
    # Connection Lifecycle
    # -------------------------------------------------------------------------

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._config.path,
            timeout=self._config.busy_timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout = {int(self._config.busy_timeout * 1000)}")
        return conn

    def _open_shared(self) -> sqlite3.Connection:
        conn = self._open()
        conn.execute(f"PRAGMA journal_mode = {self._config.journal_mode}")
        return conn

    async def connect(self) -> None:
        """Open the shared connection and apply the journal mode.

        Raises:
            LocalStoreError: If the database file cannot be opened.
        """
        async with self._lock:
            if self._conn is not None:
                return
            try:
                self._conn = await asyncio.to_thread(self._open_shared)
            except sqlite3.Error as e:
                self._logger.error("local_store_open_failed", path=self._config.path, error=str(e))
                raise LocalStoreError(f"Local store unavailable: {e}") from e
            self._logger.info("local_store_opened", path=self._config.path)

    async def close(self) -> None:
        """Close the shared connection. Idempotent."""
        async with self._lock:
            if self._conn is not None:
                try:
                    await asyncio.to_thread(self._conn.close)
                finally:
                    self._conn = None
                    self._logger.info("local_store_closed")

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise LocalStoreError("Local store not connected. Call connect() first.")
        return self._conn

    # -------------------------------------------------------------------------
    # Autocommit Query Methods
    # -------------------------------------------------------------------------

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        """Execute a query and return all rows."""
        async with self._lock:
            return await asyncio.to_thread(_fetch, self._require_conn(), query, args)

    async def fetchrow(self, query: str, *args: Any) -> dict[str, Any] | None:
        """Execute a query and return the first row, or None."""
        async with self._lock:
            return await asyncio.to_thread(_fetchrow, self._require_conn(), query, args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Execute a query and return the first column of the first row."""
        async with self._lock:
            return await asyncio.to_thread(_fetchval, self._require_conn(), query, args)

    async def execute(self, query: str, *args: Any) -> int:
        """Execute a statement and return the number of affected rows."""
        async with self._lock:
            return await asyncio.to_thread(_execute, self._require_conn(), query, args)

    async def executescript(self, script: str) -> None:
        """Run a multi-statement SQL script (schema bootstrap)."""
        async with self._lock:
            await asyncio.to_thread(self._require_conn().executescript, script)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LocalTransaction]:
        """Run a block inside one local write transaction.

        Commits on normal exit. Any exception raised inside the block rolls
        the whole transaction back and propagates.

        Raises:
            LocalStoreError: If the store cannot be opened or the write lock
                is not obtained within the busy timeout.
        """
        self._require_conn()
        async with self._write_lock:
            try:
                conn = await asyncio.to_thread(self._open)
            except sqlite3.Error as e:
                raise LocalStoreError(f"Unable to begin local transaction: {e}") from e
            try:
                await asyncio.to_thread(conn.execute, "BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                await asyncio.to_thread(conn.close)
                raise LocalStoreError(f"Unable to begin local transaction: {e}") from e

            try:
                yield LocalTransaction(conn)
            except BaseException:
                await asyncio.to_thread(conn.execute, "ROLLBACK")
                self._logger.warning("local_transaction_rolled_back")
                raise
            else:
                await asyncio.to_thread(conn.execute, "COMMIT")
            finally:
                await asyncio.to_thread(conn.close)

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> LocalStore:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"LocalStore(path={self._config.path}, connected={self.is_connected})"
