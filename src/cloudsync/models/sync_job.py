"""Sync job and connection descriptor rows.

Pure data containers for the local ``cloud_sync_jobs`` and
``cloud_connections`` tables. They carry no I/O; reading and writing them is
done by [queries][cloudsync.services.common.queries].

See Also:
    [Worker][cloudsync.services.worker.Worker]: Claims and completes
        [SyncJob][cloudsync.models.sync_job.SyncJob] rows.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .constants import ConflictPolicy, JobStatus


if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True)
class ConnectionDescriptor:
    """A registered remote target, resolved by id.

    The connection string is the only place credentials live, so it is
    excluded from ``repr()``.
    """

    id: str
    connection_string: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("id must not be empty")
        if not self.connection_string:
            raise ValueError("connection_string must not be empty")

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> ConnectionDescriptor:
        return cls(id=str(row["id"]), connection_string=str(row["connection_string"]))


@dataclass(frozen=True, slots=True)
class SyncJob:
    """One row of ``cloud_sync_jobs``.

    ``job_type`` is kept as the raw stored string rather than a
    [JobType][cloudsync.models.constants.JobType] so that rows with an
    unrecognised type can still be loaded and marked failed.

    Attributes:
        id: Job identifier.
        job_type: ``export``, ``import``, or anything else (rejected later).
        connection_id: Id of the [ConnectionDescriptor][cloudsync.models.sync_job.ConnectionDescriptor].
        status: Current [JobStatus][cloudsync.models.constants.JobStatus].
        attempts: Number of times a worker picked the job up.
        dry_run: When true the operation must not write to the target store.
        details: Raw JSON text: the request options while pending, the
            per-table summary once finished.
        last_error: Message of the failure that ended the job, if any.
        created_at: Local timestamp text, used for FIFO ordering.
        updated_at: Local timestamp text of the last status change.
    """

    id: str
    job_type: str
    connection_id: str
    status: JobStatus
    attempts: int = 0
    dry_run: bool = True
    details: str | None = None
    last_error: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", JobStatus(self.status))
        object.__setattr__(self, "dry_run", bool(self.dry_run))
        if self.attempts < 0:
            raise ValueError(f"attempts must be >= 0, got {self.attempts}")

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> SyncJob:
        return cls(
            id=str(row["id"]),
            job_type=str(row["job_type"]),
            connection_id=str(row["connection_id"]),
            status=row["status"],
            attempts=int(row["attempts"] or 0),
            dry_run=bool(row["dry_run"]),
            details=row.get("details"),
            last_error=row.get("last_error"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def requested_policy(self) -> ConflictPolicy | str:
        """Conflict policy requested in ``details``.

        Malformed JSON, a non-object document, or a missing or non-string
        ``strategy`` all fall back to
        [ConflictPolicy.MERGE][cloudsync.models.constants.ConflictPolicy].
        A string that names no known policy is returned unchanged so the
        importer can reject it.
        """
        if not self.details:
            return ConflictPolicy.MERGE
        try:
            parsed = json.loads(self.details)
        except ValueError:
            return ConflictPolicy.MERGE
        if not isinstance(parsed, dict):
            return ConflictPolicy.MERGE
        strategy = parsed.get("strategy")
        if not isinstance(strategy, str) or not strategy:
            return ConflictPolicy.MERGE
        try:
            return ConflictPolicy(strategy)
        except ValueError:
            return strategy
