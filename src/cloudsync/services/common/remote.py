"""Typed access to sync tables on the remote PostgreSQL store.

[PostgresRemoteClient][cloudsync.services.common.remote.PostgresRemoteClient]
wraps one live asyncpg connection for the duration of a sync operation. It
reads the remote column types once per table and builds an upsert that
casts every text parameter to the column's declared type, so values coming
from SQLite (text timestamps, ``0``/``1`` booleans, decimal strings) land
with the right types without a per-table schema in this package.

Local columns that the remote table lacks are dropped from the upsert.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import asyncpg

from cloudsync.core.exceptions import QueryError
from cloudsync.core.logger import Logger
from cloudsync.models.constants import CREATED_AT, PRIMARY_KEY
from cloudsync.models.row import Row, SqlValue

from .configs import quote_ident, validate_identifier


if TYPE_CHECKING:
    from collections.abc import Mapping


_COLUMN_TYPES_QUERY = """
SELECT a.attname AS column_name, format_type(a.atttypid, a.atttypmod) AS data_type
FROM pg_attribute a
JOIN pg_class c ON c.oid = a.attrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE c.relname = $1
  AND n.nspname = current_schema()
  AND a.attnum > 0
  AND NOT a.attisdropped
ORDER BY a.attnum
"""


_EPOCH_TEXT = re.compile(r"-?\d+(?:\.\d+)?")


def _is_temporal(pg_type: str) -> bool:
    return pg_type == "date" or pg_type.startswith("timestamp")


def to_text_param(
    value: SqlValue, pg_type: str, *, epoch_scale: int | None = None
) -> str | bytes | None:
    """Render a local value as the parameter for a ``$n::text::<type>`` cast.

    ``bytea`` columns take raw bytes instead of text. With ``epoch_scale``
    set, numbers bound for ``date`` or ``timestamp`` columns are read as
    epoch values (``value / epoch_scale`` seconds, numeric text included)
    and rendered as UTC ISO 8601 text, which PostgreSQL accepts where a
    bare integer is rejected.

    Raises:
        TypeError: If binary data targets a non-binary column.
    """
    if value is None:
        return None
    if pg_type == "bytea":
        return value if isinstance(value, bytes) else str(value).encode("utf-8")
    if isinstance(value, bytes):
        raise TypeError(f"binary value for non-bytea column of type {pg_type}")
    if epoch_scale and _is_temporal(pg_type) and not isinstance(value, bool):
        if isinstance(value, str) and _EPOCH_TEXT.fullmatch(value):
            value = float(value)
        if isinstance(value, int | float):
            moment = datetime.fromtimestamp(value / epoch_scale, tz=UTC)
            return moment.date().isoformat() if pg_type == "date" else moment.isoformat()
    if isinstance(value, bool) or (pg_type == "boolean" and isinstance(value, int)):
        return "true" if value else "false"
    return str(value)


def build_upsert_query(table: str, columns: list[str], column_types: Mapping[str, str]) -> str:
    """Build ``INSERT ... ON CONFLICT (id) DO UPDATE`` for ``columns``.

    Every column except the primary key and ``created_at`` is refreshed on
    conflict. The statement returns ``true`` when the row was inserted and
    ``false`` when an existing row was updated.
    """
    placeholders = []
    for index, column in enumerate(columns, start=1):
        pg_type = column_types[column]
        if pg_type == "bytea":
            placeholders.append(f"${index}::bytea")
        else:
            placeholders.append(f"${index}::text::{pg_type}")

    column_list = ", ".join(quote_ident(c) for c in columns)
    updates = [
        f"{quote_ident(c)} = EXCLUDED.{quote_ident(c)}"
        for c in columns
        if c not in (PRIMARY_KEY, CREATED_AT)
    ]
    if updates:
        conflict = f"DO UPDATE SET {', '.join(updates)}"
    else:
        conflict = "DO NOTHING"

    return (
        f"INSERT INTO {quote_ident(table)} ({column_list}) "
        f"VALUES ({', '.join(placeholders)}) "
        f"ON CONFLICT ({quote_ident(PRIMARY_KEY)}) {conflict} "
        "RETURNING (xmax = 0) AS inserted"
    )


class PostgresRemoteClient:
    """Sync-table operations on one remote connection.

    Args:
        conn: Live asyncpg connection, typically the one holding the
            advisory lock.
        table_names: Optional mapping of local table name to remote table
            name; tables not listed keep their local name.
        epoch_scale: Set when the local store keeps timestamps as epoch
            numbers: ``1`` for seconds, ``1000`` for milliseconds.
    """

    def __init__(
        self,
        conn: asyncpg.Connection[Any],
        *,
        table_names: Mapping[str, str] | None = None,
        logger: Logger | None = None,
        epoch_scale: int | None = None,
    ) -> None:
        self._conn = conn
        self._table_names = dict(table_names or {})
        self._epoch_scale = epoch_scale
        self._logger = logger or Logger("remote")
        self._column_types: dict[str, dict[str, str]] = {}
        self._queries: dict[tuple[str, tuple[str, ...]], tuple[str, list[str]]] = {}

    @property
    def connection(self) -> asyncpg.Connection[Any]:
        return self._conn

    def remote_name(self, table: str) -> str:
        return validate_identifier(self._table_names.get(table, table))

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    async def column_types(self, table: str) -> dict[str, str]:
        """Remote column name to SQL type, cached for the client's lifetime.

        Returns an empty mapping when the remote table does not exist.
        """
        remote = self.remote_name(table)
        if remote not in self._column_types:
            records = await self._conn.fetch(_COLUMN_TYPES_QUERY, remote)
            self._column_types[remote] = {r["column_name"]: r["data_type"] for r in records}
        return self._column_types[remote]

    async def table_exists(self, table: str) -> bool:
        """Probe the table with ``SELECT 1 ... LIMIT 1``.

        Any server-side error (missing table, missing privilege) counts as
        absent; connection failures propagate.
        """
        query = f"SELECT 1 FROM {quote_ident(self.remote_name(table))} LIMIT 1"
        try:
            await self._conn.fetchval(query)
        except asyncpg.PostgresError as e:
            self._logger.info("remote_table_unavailable", table=table, error=str(e))
            return False
        return True

    async def count_rows(self, table: str) -> int | None:
        """Row count of the remote table, or ``None`` if it is unavailable."""
        if not await self.table_exists(table):
            return None
        count = await self._conn.fetchval(
            f"SELECT count(*) FROM {quote_ident(self.remote_name(table))}"
        )
        return int(count or 0)

    async def fetch_rows(self, table: str) -> list[Row]:
        """Every row of the remote table, normalised for the local store."""
        records = await self._conn.fetch(f"SELECT * FROM {quote_ident(self.remote_name(table))}")
        return [Row.from_record(table, record) for record in records]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def _prepare(self, row: Row) -> tuple[str, list[str]]:
        key = (row.table, row.columns)
        cached = self._queries.get(key)
        if cached is not None:
            return cached

        remote = self.remote_name(row.table)
        types = await self.column_types(row.table)
        if not types:
            raise QueryError(f"Remote table {remote} does not exist")
        if PRIMARY_KEY not in types:
            raise QueryError(f"Remote table {remote} has no {PRIMARY_KEY} column")

        columns = [c for c in row.columns if c in types]
        dropped = [c for c in row.columns if c not in types]
        if dropped:
            self._logger.debug("remote_columns_missing", table=remote, columns=",".join(dropped))

        prepared = (build_upsert_query(remote, columns, types), columns)
        self._queries[key] = prepared
        return prepared

    async def upsert(self, row: Row) -> bool:
        """Insert or update one row by primary key.

        Returns:
            ``True`` if the row was inserted, ``False`` if it already
            existed and was updated (or left alone when there was nothing
            to update).

        Raises:
            QueryError: If the remote table or its ``id`` column is missing.
        """
        query, columns = await self._prepare(row)
        types = self._column_types[self.remote_name(row.table)]
        params = [
            to_text_param(row.get(c), types[c], epoch_scale=self._epoch_scale) for c in columns
        ]
        inserted = await self._conn.fetchval(query, *params)
        return bool(inserted)
