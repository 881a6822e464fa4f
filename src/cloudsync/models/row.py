"""Opaque keyed row shared by the local and remote stores.

A [Row][cloudsync.models.row.Row] is an ordered mapping of column name to a
tagged SQL value plus the table it belongs to. The engine never interprets
domain columns; it only relies on the primary key ``id`` and, for
incremental export, on ``created_at``.

Remote driver values that SQLite cannot store natively are normalised by
[to_sql_value()][cloudsync.models.row.to_sql_value] before they reach the
local store.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from decimal import Decimal
from types import MappingProxyType
from typing import TYPE_CHECKING, Any
from uuid import UUID

from .constants import PRIMARY_KEY


if TYPE_CHECKING:
    from collections.abc import Mapping


SqlValue = None | str | int | float | bool | bytes


def to_sql_value(value: Any) -> SqlValue:
    """Normalise a driver value to one of the tagged SQL value kinds.

    * aware datetimes are converted to UTC and rendered without offset as
      ``YYYY-MM-DD HH:MM:SS[.ffffff]``, the format used for ``created_at``
      comparisons in the local store;
    * dates and times use ISO format;
    * ``Decimal`` and ``UUID`` become strings;
    * JSON containers are serialised with ``json.dumps``;
    * ``memoryview`` and ``bytearray`` become ``bytes``.

    Raises:
        TypeError: If the value has no tagged representation.
    """
    if value is None or isinstance(value, (str, bool, int, float, bytes)):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC).replace(tzinfo=None)
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"unsupported column value type: {type(value).__name__}")


def is_blank(value: SqlValue) -> bool:
    """True for null and the empty string, the two values a merge may fill."""
    return value is None or value == ""


@dataclass(frozen=True, slots=True)
class Row:
    """One row of a sync table.

    Attributes:
        table: Table the row belongs to.
        values: Read-only ordered mapping of column name to value.

    Examples:
        ```python
        row = Row.from_record("products", {"id": "p1", "company": "Acme"})
        row.primary_key        # 'p1'
        row.columns            # ('id', 'company')
        ```
    """

    table: str
    values: Mapping[str, SqlValue]

    def __post_init__(self) -> None:
        if not self.table:
            raise ValueError("table must not be empty")
        normalised = {str(k): to_sql_value(v) for k, v in self.values.items()}
        object.__setattr__(self, "values", MappingProxyType(normalised))

    @classmethod
    def from_record(cls, table: str, record: Mapping[str, Any]) -> Row:
        """Build a row from a driver record (``asyncpg.Record`` or ``dict``)."""
        return cls(table=table, values=dict(record.items()))

    @property
    def primary_key(self) -> SqlValue:
        return self.values.get(PRIMARY_KEY)

    @property
    def has_primary_key(self) -> bool:
        return not is_blank(self.primary_key)

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self.values)

    def get(self, column: str) -> SqlValue:
        return self.values.get(column)
