"""Bulk importer: remote PostgreSQL into the local store.

One import run:

1. rejects unknown conflict policies before any I/O;
2. opens a single remote connection (``statement_timeout`` from the pool
   config) and takes the advisory lock for the target;
3. opens one local write transaction;
4. walks the import tables in dependency order, skipping remote tables
   that cannot be read, and applies every remote row with a primary key
   according to the [ConflictPolicy][cloudsync.models.constants.ConflictPolicy];
5. commits, releases the lock and closes the connection.

Any failure before the commit rolls the local transaction back entirely;
the lock and connection are released on every path. Per-row write errors
are logged and the row is left out of the counters; they do not abort the
run.

In dry-run mode only ``remote_rows`` is computed and the local store is not
touched.

Examples:
    ```python
    importer = Importer(store)
    result = await importer.import_from_postgres(dsn, strategy="merge", dry_run=False)
    result.summary["products"].inserted
    ```
"""

from __future__ import annotations

import sqlite3
import time
from functools import partial
from typing import TYPE_CHECKING, Any

import asyncpg

from cloudsync.core.exceptions import CloudSyncError, ConfigurationError, SyncImportError
from cloudsync.core.logger import Logger
from cloudsync.core.pool import Pool, mask_dsn
from cloudsync.core.retry import retry_async
from cloudsync.core.yaml import load_yaml
from cloudsync.models.constants import PRIMARY_KEY, ConflictPolicy
from cloudsync.models.row import is_blank
from cloudsync.models.summary import ImportResult, TableSummary
from cloudsync.services.common.lock import AdvisoryLockManager
from cloudsync.services.common.queries import (
    find_local_row,
    get_local_columns,
    insert_local_row,
    update_local_row,
)
from cloudsync.services.common.remote import PostgresRemoteClient

from .configs import ImporterConfig


if TYPE_CHECKING:
    from collections.abc import Collection

    from cloudsync.core.local_store import LocalStore, LocalTransaction
    from cloudsync.models.row import Row, SqlValue


def parse_policy(strategy: str | ConflictPolicy) -> ConflictPolicy:
    """Resolve a strategy name.

    Raises:
        ConfigurationError: If the name is not ``skip``, ``overwrite`` or ``merge``.
    """
    try:
        return ConflictPolicy(strategy)
    except ValueError:
        allowed = ", ".join(p.value for p in ConflictPolicy)
        raise ConfigurationError(
            f"Unknown import strategy {strategy!r} (expected one of: {allowed})"
        ) from None


def merge_values(local: Row, remote: Row, columns: Collection[str]) -> dict[str, SqlValue]:
    """Columns a ``merge`` would fill: blank locally and non-blank remotely.

    Blank means null or the empty string. Non-blank local values are never
    replaced.
    """
    return {
        column: remote.get(column)
        for column in remote.columns
        if column in columns
        and column != PRIMARY_KEY
        and is_blank(local.get(column))
        and not is_blank(remote.get(column))
    }


class Importer:
    """Imports remote tables into the local store under a conflict policy.

    See Also:
        [ImporterConfig][cloudsync.services.importer.ImporterConfig]:
            Table list, fetch retry and pool settings.
    """

    def __init__(self, store: LocalStore, config: ImporterConfig | None = None) -> None:
        self._store = store
        self._config = config or ImporterConfig()
        self._logger = Logger("importer")

    @classmethod
    def from_yaml(cls, config_path: str, store: LocalStore) -> Importer:
        return cls.from_dict(load_yaml(config_path), store=store)

    @classmethod
    def from_dict(cls, data: dict[str, Any], store: LocalStore) -> Importer:
        return cls(store=store, config=ImporterConfig(**data))

    @property
    def config(self) -> ImporterConfig:
        return self._config

    async def import_from_postgres(
        self,
        connection_string: str,
        strategy: str | ConflictPolicy = ConflictPolicy.MERGE,
        dry_run: bool = True,
    ) -> ImportResult:
        """Import every configured table from ``connection_string``.

        Args:
            connection_string: Remote PostgreSQL DSN.
            strategy: ``skip``, ``overwrite`` or ``merge``.
            dry_run: Only count remote rows; write nothing locally.

        Returns:
            [ImportResult][cloudsync.models.summary.ImportResult] with one
            summary per table.

        Raises:
            ConfigurationError: Unknown strategy (raised before any I/O).
            ConnectionPoolError: Remote store unreachable.
            LockUnavailableError: Another instance is syncing this target.
            LocalStoreError: Local write transaction could not be started.
            SyncImportError: The run failed after the local transaction
                began; nothing was committed.
        """
        policy = parse_policy(strategy)
        started = time.monotonic()
        self._logger.info(
            "import_started", target=mask_dsn(connection_string), strategy=policy, dry_run=dry_run
        )

        pool = Pool(connection_string, self._config.pool)
        async with pool, pool.acquire() as conn:
            async with AdvisoryLockManager(conn, logger=self._logger).hold(connection_string):
                remote = PostgresRemoteClient(
                    conn, table_names=self._config.remote_table_names, logger=self._logger
                )
                if dry_run:
                    summary = await self._count_remote(remote)
                else:
                    summary = await self._apply_all(remote, policy)

        self._logger.info(
            "import_completed",
            strategy=policy,
            dry_run=dry_run,
            remote_rows=sum(s.remote_rows for s in summary.values()),
            inserted=sum(s.inserted for s in summary.values()),
            updated=sum(s.updated for s in summary.values()),
            skipped=sum(s.skipped for s in summary.values()),
            duration_s=round(time.monotonic() - started, 3),
        )
        return ImportResult(ok=True, dry_run=dry_run, strategy=policy, summary=summary)

    # -------------------------------------------------------------------------
    # Remote reads
    # -------------------------------------------------------------------------

    async def _count_remote(self, remote: PostgresRemoteClient) -> dict[str, TableSummary]:
        summary: dict[str, TableSummary] = {}
        for table in self._config.tables:
            count = await remote.count_rows(table)
            summary[table] = TableSummary(remote_rows=count or 0)
        return summary

    async def _fetch_table(self, remote: PostgresRemoteClient, table: str) -> list[Row] | None:
        if not await remote.table_exists(table):
            return None
        return await retry_async(
            partial(remote.fetch_rows, table),
            self._config.fetch_retry,
            retry_on=(asyncpg.QueryCanceledError, TimeoutError),
            logger=self._logger,
            event="table_fetch",
            table=table,
        )

    # -------------------------------------------------------------------------
    # Local writes
    # -------------------------------------------------------------------------

    async def _apply_all(
        self, remote: PostgresRemoteClient, policy: ConflictPolicy
    ) -> dict[str, TableSummary]:
        summary: dict[str, TableSummary] = {}
        try:
            async with self._store.transaction() as tx:
                for table in self._config.tables:
                    rows = await self._fetch_table(remote, table)
                    if rows is None:
                        summary[table] = TableSummary()
                        continue
                    counts = TableSummary(remote_rows=len(rows))
                    summary[table] = counts
                    await self._apply_table(tx, table, rows, policy, counts)
        except CloudSyncError:
            raise
        except Exception as e:
            self._logger.error("import_rolled_back", error=str(e), error_type=type(e).__name__)
            raise SyncImportError(f"Import aborted and rolled back: {e}") from e
        return summary

    async def _apply_table(
        self,
        tx: LocalTransaction,
        table: str,
        rows: list[Row],
        policy: ConflictPolicy,
        counts: TableSummary,
    ) -> None:
        local_columns = set(await get_local_columns(tx, table))
        if not local_columns:
            self._logger.warning("local_table_missing", table=table, remote_rows=len(rows))
            return

        for row in rows:
            if not row.has_primary_key:
                continue
            try:
                await self._apply_row(tx, row, policy, local_columns, counts)
            except sqlite3.Error as e:
                self._logger.warning(
                    "row_write_failed", table=table, id=str(row.primary_key), error=str(e)
                )

        self._logger.debug(
            "table_imported",
            table=table,
            remote_rows=counts.remote_rows,
            inserted=counts.inserted,
            updated=counts.updated,
            skipped=counts.skipped,
        )

    async def _apply_row(
        self,
        tx: LocalTransaction,
        row: Row,
        policy: ConflictPolicy,
        local_columns: Collection[str],
        counts: TableSummary,
    ) -> None:
        columns = [c for c in row.columns if c in local_columns]
        local = await find_local_row(tx, row.table, row.primary_key)

        if local is None:
            await insert_local_row(tx, row, columns)
            counts.inserted += 1
            return

        if policy is ConflictPolicy.SKIP:
            counts.skipped += 1
            return

        if policy is ConflictPolicy.OVERWRITE:
            values = {c: row.get(c) for c in columns if c != PRIMARY_KEY}
        else:
            values = merge_values(local, row, columns)

        if not values:
            counts.skipped += 1
            return

        await update_local_row(tx, row.table, row.primary_key, values)
        counts.updated += 1
