"""Importer configuration models.

The importer is not a loop service; it runs on demand from a job or the
CLI, so its config does not extend ``BaseServiceConfig``.

See Also:
    [Importer][cloudsync.services.importer.Importer]: The class that
        consumes this configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from cloudsync.core.pool import PoolConfig, PoolLimitsConfig
from cloudsync.core.retry import RetryPolicy
from cloudsync.models.constants import IMPORT_TABLES
from cloudsync.services.common.configs import validate_identifier, validate_table_list


def _single_connection_pool() -> PoolConfig:
    return PoolConfig(limits=PoolLimitsConfig(min_size=1, max_size=1))


class ImporterConfig(BaseModel):
    """Bulk import configuration.

    ``pool.server_settings.statement_timeout`` bounds every remote
    statement, including the full-table fetches (60 s by default).

    ``remote_table_names`` is empty by default, so the importer reads each
    table under its local name. The shipped exporter config writes
    ``sale_items`` to ``sales_items``; add the same mapping here to import
    those rows back.

    Examples:
        ```yaml
        tables: [products, variants, colors]
        remote_table_names:
          sale_items: sales_items
        fetch_retry:
          max_attempts: 2
          delay: 5.0
        ```
    """

    tables: list[str] = Field(
        default_factory=lambda: list(IMPORT_TABLES),
        description="Remote tables to import, parents before children",
    )
    fetch_retry: RetryPolicy = Field(
        default_factory=lambda: RetryPolicy(max_attempts=2, delay=2.0),
        description="Retries for a full-table fetch that hit the statement timeout",
    )
    remote_table_names: dict[str, str] = Field(
        default_factory=dict,
        description="Local table name to remote table name, where they differ",
    )
    pool: PoolConfig = Field(default_factory=_single_connection_pool)

    @field_validator("tables")
    @classmethod
    def validate_tables(cls, v: list[str]) -> list[str]:
        return validate_table_list(v)

    @field_validator("remote_table_names")
    @classmethod
    def validate_remote_table_names(cls, v: dict[str, str]) -> dict[str, str]:
        for local, remote in v.items():
            validate_identifier(local)
            validate_identifier(remote)
        return v
