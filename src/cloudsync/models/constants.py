"""Shared constants for the models layer.

Enumerations and fixed table sets used by the core and services layers.
Keeping them here avoids circular imports between the exporter, importer
and worker.

See Also:
    [SyncJob][cloudsync.models.sync_job.SyncJob]: Uses
        [JobType][cloudsync.models.constants.JobType] and
        [JobStatus][cloudsync.models.constants.JobStatus].
    [Importer][cloudsync.services.importer.Importer]: Applies a
        [ConflictPolicy][cloudsync.models.constants.ConflictPolicy] per row.
"""

from __future__ import annotations

from enum import StrEnum


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics.

    Attributes:
        EXPORTER: Timer-driven incremental export
            ([Exporter][cloudsync.services.exporter.Exporter]).
        WORKER: Sync job queue consumer
            ([Worker][cloudsync.services.worker.Worker]).
    """

    EXPORTER = "exporter"
    WORKER = "worker"


class JobType(StrEnum):
    """Kinds of work a sync job can request."""

    EXPORT = "export"
    IMPORT = "import"


class JobStatus(StrEnum):
    """Sync job lifecycle: ``pending -> running -> success | failed``.

    ``success`` and ``failed`` are terminal. A failed job is never retried
    automatically; a new job must be enqueued.
    """

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.FAILED)


class ConflictPolicy(StrEnum):
    """How an import treats a remote row whose primary key already exists locally.

    Attributes:
        SKIP: Leave the local row untouched.
        OVERWRITE: Replace every local column with the remote value.
        MERGE: Copy a remote value only into local columns that are null or
            the empty string, and only when the remote value is neither.
    """

    SKIP = "skip"
    OVERWRITE = "overwrite"
    MERGE = "merge"


PRIMARY_KEY = "id"
CREATED_AT = "created_at"

# Dependency order: parents before children.
EXPORT_TABLES: tuple[str, ...] = (
    "products",
    "variants",
    "colors",
    "sales",
    "sale_items",
    "payment_history",
    "returns",
    "stock_in_history",
)

IMPORT_TABLES: tuple[str, ...] = (
    "products",
    "variants",
    "colors",
    "sales",
    "sale_items",
    "stock_in_history",
    "payment_history",
    "returns",
    "return_items",
    "customer_accounts",
    "settings",
)

SETTINGS_ROW_ID = "default"
EXPORT_HISTORY_SIZE = 10
