"""Shared configuration models for CloudSync services.

Table names end up inside SQL text on both stores, so every table list is
validated against a conservative identifier pattern before it is accepted
and quoted with [quote_ident()][cloudsync.services.common.configs.quote_ident]
when used.

Examples:
    ```yaml
    transfer:
      batch_size: 100
      retry:
        max_attempts: 3
        delay: 2.0
    ```
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

from cloudsync.core.retry import RetryPolicy


_IDENTIFIER_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")


def validate_identifier(name: str) -> str:
    """Return ``name`` if it is a safe lowercase SQL identifier.

    Raises:
        ValueError: If the name would need escaping.
    """
    if not _IDENTIFIER_PATTERN.match(name):
        raise ValueError(f"invalid identifier (must match [a-z_][a-z0-9_]*): {name!r}")
    return name


def quote_ident(name: str) -> str:
    """Double-quote an identifier for use in SQL text on either store."""
    return '"' + name.replace('"', '""') + '"'


def validate_table_list(tables: list[str]) -> list[str]:
    if not tables:
        raise ValueError("tables list must not be empty")
    invalid = [name for name in tables if not _IDENTIFIER_PATTERN.match(name)]
    if invalid:
        raise ValueError(
            f"invalid table names (must match [a-z_][a-z0-9_]*): {', '.join(invalid)}"
        )
    if len(set(tables)) != len(tables):
        raise ValueError("tables list must not contain duplicates")
    return tables


class TransferConfig(BaseModel):
    """Row-by-row transfer settings.

    ``batch_size`` only slices the input for progress logging; rows are
    still written one at a time and a batch has no transactional meaning.
    """

    batch_size: int = Field(default=100, ge=1, le=10_000, description="Rows per batch")
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
