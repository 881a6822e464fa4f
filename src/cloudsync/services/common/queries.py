"""Local store queries for CloudSync services.

All SQL run against the local SQLite store is centralized here. Each
function accepts a [LocalStore][cloudsync.core.local_store.LocalStore] (or,
for the functions used inside an import, an open
[LocalTransaction][cloudsync.core.local_store.LocalTransaction]) and returns
typed results. Services import from this module instead of writing inline
SQL.

The functions are grouped into four categories:

- **Settings**: ``get_cloud_database_url``
- **Connections**: ``get_connection``, ``register_connection``
- **Job queue**: ``enqueue_job``, ``get_job``, ``claim_next_job``,
  ``complete_job``, ``fail_job``
- **Sync tables**: ``fetch_rows_since``, ``fetch_rows_by_ids``,
  ``fetch_all_rows``, ``get_local_columns``, ``find_local_row``,
  ``insert_local_row``, ``update_local_row``

See Also:
    [ensure_sync_schema()][cloudsync.services.common.schema.ensure_sync_schema]:
        Creates the tables the job and connection queries read.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from typing import TYPE_CHECKING, Any

from cloudsync.core.logger import Logger
from cloudsync.models.constants import CREATED_AT, PRIMARY_KEY, SETTINGS_ROW_ID, JobStatus
from cloudsync.models.row import Row, SqlValue
from cloudsync.models.sync_job import ConnectionDescriptor, SyncJob

from .configs import quote_ident
from .schema import LOCAL_NOW


if TYPE_CHECKING:
    from collections.abc import Sequence

    from cloudsync.core.local_store import LocalStore, LocalTransaction
    from cloudsync.models.constants import JobType

    LocalExecutor = LocalStore | LocalTransaction

logger = Logger("queries")

# SQLite's default SQLITE_MAX_VARIABLE_NUMBER is 999 on older builds.
_MAX_IN_PARAMS = 500


# =============================================================================
# Settings
# =============================================================================


async def get_cloud_database_url(store: LocalStore) -> str | None:
    """Remote connection string from the ``default`` settings row.

    Returns ``None`` (cloud sync disabled) when the settings table or row is
    missing or the value is empty.
    """
    try:
        value = await store.fetchval(
            "SELECT cloud_database_url FROM settings WHERE id = ?", SETTINGS_ROW_ID
        )
    except sqlite3.OperationalError as e:
        logger.debug("settings_unavailable", error=str(e))
        return None
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


# =============================================================================
# Connections
# =============================================================================


async def get_connection(store: LocalStore, connection_id: str) -> ConnectionDescriptor | None:
    """Resolve a connection descriptor by id, or ``None`` if unknown."""
    row = await store.fetchrow(
        "SELECT id, connection_string FROM cloud_connections WHERE id = ?", connection_id
    )
    if row is None or not row["connection_string"]:
        return None
    return ConnectionDescriptor.from_row(row)


async def register_connection(
    store: LocalStore, connection_id: str, connection_string: str
) -> ConnectionDescriptor:
    """Create or replace the connection descriptor ``connection_id``."""
    descriptor = ConnectionDescriptor(id=connection_id, connection_string=connection_string)
    await store.execute(
        f"""
        INSERT INTO cloud_connections (id, connection_string)
        VALUES (?, ?)
        ON CONFLICT (id) DO UPDATE SET
            connection_string = excluded.connection_string,
            updated_at = {LOCAL_NOW}
        """,
        descriptor.id,
        descriptor.connection_string,
    )
    return descriptor


# =============================================================================
# Job queue
# =============================================================================


_JOB_COLUMNS = (
    "id, job_type, connection_id, status, attempts, dry_run, details, last_error, "
    "created_at, updated_at"
)


async def enqueue_job(
    store: LocalStore,
    job_type: JobType | str,
    connection_id: str,
    *,
    dry_run: bool = True,
    strategy: str | None = None,
) -> SyncJob:
    """Append a ``pending`` job to the queue and return it.

    ``strategy`` is stored as ``{"strategy": ...}`` in ``details`` and only
    matters for import jobs.
    """
    job_id = uuid.uuid4().hex
    details = json.dumps({"strategy": strategy}) if strategy else None
    await store.execute(
        """
        INSERT INTO cloud_sync_jobs (id, job_type, connection_id, status, dry_run, details)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        job_id,
        str(job_type),
        connection_id,
        JobStatus.PENDING.value,
        int(dry_run),
        details,
    )
    job = await get_job(store, job_id)
    if job is None:  # pragma: no cover
        raise RuntimeError(f"enqueued job {job_id} not found")
    return job


async def get_job(store: LocalStore, job_id: str) -> SyncJob | None:
    row = await store.fetchrow(f"SELECT {_JOB_COLUMNS} FROM cloud_sync_jobs WHERE id = ?", job_id)
    return SyncJob.from_row(row) if row is not None else None


async def claim_next_job(store: LocalStore) -> SyncJob | None:
    """Take the oldest pending job and mark it ``running``.

    Selection and the status change happen in one local write transaction,
    so two workers sharing the store can never claim the same job.
    ``attempts`` is incremented on every claim.
    """
    async with store.transaction() as tx:
        row = await tx.fetchrow(
            """
            SELECT id FROM cloud_sync_jobs
            WHERE status = ?
            ORDER BY created_at ASC, rowid ASC
            LIMIT 1
            """,
            JobStatus.PENDING.value,
        )
        if row is None:
            return None
        await tx.execute(
            f"""
            UPDATE cloud_sync_jobs
            SET status = ?, attempts = attempts + 1, updated_at = {LOCAL_NOW}
            WHERE id = ?
            """,
            JobStatus.RUNNING.value,
            row["id"],
        )
        claimed = await tx.fetchrow(
            f"SELECT {_JOB_COLUMNS} FROM cloud_sync_jobs WHERE id = ?", row["id"]
        )
    return SyncJob.from_row(claimed) if claimed is not None else None


async def complete_job(store: LocalStore, job_id: str, details: dict[str, Any]) -> None:
    """Mark a job ``success`` and store its per-table summary as JSON."""
    await store.execute(
        f"""
        UPDATE cloud_sync_jobs
        SET status = ?, details = ?, last_error = NULL, updated_at = {LOCAL_NOW}
        WHERE id = ?
        """,
        JobStatus.SUCCESS.value,
        json.dumps(details),
        job_id,
    )


async def fail_job(store: LocalStore, job_id: str, error: str) -> None:
    """Mark a job ``failed`` with ``error`` as ``last_error``."""
    await store.execute(
        f"""
        UPDATE cloud_sync_jobs
        SET status = ?, last_error = ?, updated_at = {LOCAL_NOW}
        WHERE id = ?
        """,
        JobStatus.FAILED.value,
        error,
        job_id,
    )


# =============================================================================
# Sync tables
# =============================================================================


async def fetch_rows_since(store: LocalStore, table: str, since: str | int) -> list[Row]:
    """Rows created strictly after ``since``, newest first.

    A text ``since`` is compared with ``julianday()`` on both sides, so ISO
    8601 values with a ``T`` separator or a ``Z`` suffix order as instants
    rather than as strings. Numeric epochs compare directly.
    """
    created = quote_ident(CREATED_AT)
    condition = (
        f"julianday({created}) > julianday(?)" if isinstance(since, str) else f"{created} > ?"
    )
    records = await store.fetch(
        f"""
        SELECT * FROM {quote_ident(table)}
        WHERE {condition}
        ORDER BY {quote_ident(CREATED_AT)} DESC
        """,
        since,
    )
    return [Row(table=table, values=r) for r in records]


async def fetch_rows_by_ids(
    store: LocalStore, table: str, ids: Sequence[SqlValue]
) -> list[Row]:
    """Rows whose primary key is in ``ids``; unknown ids are ignored."""
    rows: list[Row] = []
    for start in range(0, len(ids), _MAX_IN_PARAMS):
        chunk = list(ids[start : start + _MAX_IN_PARAMS])
        placeholders = ", ".join("?" for _ in chunk)
        records = await store.fetch(
            f"SELECT * FROM {quote_ident(table)} WHERE {quote_ident(PRIMARY_KEY)} IN ({placeholders})",
            *chunk,
        )
        rows.extend(Row(table=table, values=r) for r in records)
    return rows


async def fetch_all_rows(store: LocalStore, table: str) -> list[Row]:
    records = await store.fetch(f"SELECT * FROM {quote_ident(table)}")
    return [Row(table=table, values=r) for r in records]


async def get_local_columns(executor: LocalExecutor, table: str) -> list[str]:
    """Column names of a local table in declaration order; empty if absent."""
    records = await executor.fetch(f"PRAGMA table_info({quote_ident(table)})")
    return [r["name"] for r in records]


async def find_local_row(executor: LocalExecutor, table: str, row_id: SqlValue) -> Row | None:
    record = await executor.fetchrow(
        f"SELECT * FROM {quote_ident(table)} WHERE {quote_ident(PRIMARY_KEY)} = ?", row_id
    )
    return Row(table=table, values=record) if record is not None else None


async def insert_local_row(executor: LocalExecutor, row: Row, columns: Sequence[str]) -> None:
    """Insert ``row`` restricted to ``columns``."""
    column_list = ", ".join(quote_ident(c) for c in columns)
    placeholders = ", ".join("?" for _ in columns)
    await executor.execute(
        f"INSERT INTO {quote_ident(row.table)} ({column_list}) VALUES ({placeholders})",
        *(row.get(c) for c in columns),
    )


async def update_local_row(
    executor: LocalExecutor, table: str, row_id: SqlValue, values: dict[str, SqlValue]
) -> int:
    """Set ``values`` on the row with primary key ``row_id``; returns rows affected."""
    if not values:
        return 0
    assignments = ", ".join(f"{quote_ident(c)} = ?" for c in values)
    return await executor.execute(
        f"UPDATE {quote_ident(table)} SET {assignments} WHERE {quote_ident(PRIMARY_KEY)} = ?",
        *values.values(),
        row_id,
    )
