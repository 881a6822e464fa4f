"""Exporter service configuration models.

See Also:
    [Exporter][cloudsync.services.exporter.Exporter]: The service class
        that consumes these configurations.
    [BaseServiceConfig][cloudsync.core.base_service.BaseServiceConfig]:
        Base class providing ``interval``, ``max_consecutive_failures``,
        and ``metrics`` fields.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator

from cloudsync.core.base_service import BaseServiceConfig
from cloudsync.core.pool import PoolConfig
from cloudsync.models.constants import EXPORT_TABLES
from cloudsync.services.common.configs import (
    TransferConfig,
    validate_identifier,
    validate_table_list,
)


_EPOCH_SCALES = {"epoch_seconds": 1, "epoch_millis": 1000}


class ExporterConfig(BaseServiceConfig):
    """Exporter service configuration.

    Examples:
        ```yaml
        interval: 300
        initial_delay: 30
        remote_table_names:
          sale_items: sales_items
        transfer:
          batch_size: 100
          retry: {max_attempts: 3, delay: 2.0}
        ```
    """

    interval: float = Field(
        default=300.0,
        ge=1.0,
        description="Seconds between incremental export passes",
    )
    initial_delay: float = Field(
        default=30.0,
        ge=0.0,
        description="Seconds before the first pass after start()",
    )
    tables: list[str] = Field(
        default_factory=lambda: list(EXPORT_TABLES),
        description="Local tables to export, parents before children",
    )
    remote_table_names: dict[str, str] = Field(
        default_factory=dict,
        description="Local table name to remote table name, where they differ",
    )
    created_at_format: Literal["iso", "epoch_seconds", "epoch_millis"] = Field(
        default="iso",
        description=(
            "How the local store encodes created_at. iso values are compared as"
            " instants, so space or T separators and a Z suffix all work; epoch"
            " values are sent to timestamp columns as UTC ISO text"
        ),
    )
    watermark_overlap: float = Field(
        default=0.0,
        ge=0.0,
        description="Seconds subtracted from the watermark when selecting rows",
    )
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    pool: PoolConfig = Field(default_factory=PoolConfig)

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

    @property
    def epoch_scale(self) -> int | None:
        """Divisor turning a numeric ``created_at`` into seconds; ``None`` for ``iso``."""
        return _EPOCH_SCALES.get(self.created_at_format)
