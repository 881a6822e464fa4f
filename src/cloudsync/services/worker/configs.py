"""Worker service configuration models.

See Also:
    [Worker][cloudsync.services.worker.Worker]: The service class that
        consumes these configurations.
    [BaseServiceConfig][cloudsync.core.base_service.BaseServiceConfig]:
        Base class providing ``interval``, ``max_consecutive_failures``,
        and ``metrics`` fields.
"""

from __future__ import annotations

from pydantic import ConfigDict, Field

from cloudsync.core.base_service import BaseServiceConfig
from cloudsync.services.exporter.configs import ExporterConfig
from cloudsync.services.importer.configs import ImporterConfig


class WorkerConfig(BaseServiceConfig):
    """Worker service configuration.

    ``export`` and ``import`` configure the operations a job dispatches to;
    the exporter's scheduling fields are ignored here.

    Examples:
        ```yaml
        interval: 10
        max_jobs_per_cycle: 5
        import:
          tables: [products, variants]
        ```
    """

    interval: float = Field(
        default=10.0,
        ge=1.0,
        description="Seconds between queue polls",
    )
    max_jobs_per_cycle: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Jobs drained per cycle before waiting for the next poll",
    )
    export: ExporterConfig = Field(default_factory=ExporterConfig)
    import_: ImporterConfig = Field(default_factory=ImporterConfig, alias="import")

    model_config = ConfigDict(populate_by_name=True)
