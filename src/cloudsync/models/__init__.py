"""Pure data containers with zero I/O.

The models layer has no dependencies on any other CloudSync package, only
the Python standard library. Frozen dataclasses validate in
``__post_init__`` so invalid instances never escape the constructor.

Attributes:
    Row: Opaque keyed row with driver values normalised to SQL tags.
    SyncJob: One row of the local ``cloud_sync_jobs`` queue.
    ConnectionDescriptor: Registered remote target resolved by id.
    TableSummary: Per-table ``remote_rows``/``inserted``/``updated``/``skipped``.
    ExportRunRecord: One entry of the exporter's bounded run history.
    ImportResult: Result of a bulk import.
    ExportResult: Result of a full export.
    JobOutcome: What the worker did with a claimed job.
"""

from .constants import (
    CREATED_AT,
    EXPORT_HISTORY_SIZE,
    EXPORT_TABLES,
    IMPORT_TABLES,
    PRIMARY_KEY,
    SETTINGS_ROW_ID,
    ConflictPolicy,
    JobStatus,
    JobType,
    ServiceName,
)
from .row import Row, SqlValue, is_blank, to_sql_value
from .summary import (
    ExportResult,
    ExportRunRecord,
    ImportResult,
    JobOutcome,
    TableSummary,
    summaries_to_dict,
)
from .sync_job import ConnectionDescriptor, SyncJob


__all__ = [
    "CREATED_AT",
    "EXPORT_HISTORY_SIZE",
    "EXPORT_TABLES",
    "IMPORT_TABLES",
    "PRIMARY_KEY",
    "SETTINGS_ROW_ID",
    "ConflictPolicy",
    "ConnectionDescriptor",
    "ExportResult",
    "ExportRunRecord",
    "ImportResult",
    "JobOutcome",
    "JobStatus",
    "JobType",
    "Row",
    "ServiceName",
    "SqlValue",
    "SyncJob",
    "TableSummary",
    "is_blank",
    "summaries_to_dict",
    "to_sql_value",
]
