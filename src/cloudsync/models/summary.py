"""Result containers returned by the exporter, importer and worker.

All of them serialise to plain dictionaries with ``to_dict()`` so they can
be written to a job's ``details`` column or printed as JSON by the CLI.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from .constants import ConflictPolicy, JobStatus


if TYPE_CHECKING:
    from datetime import datetime


@dataclass(slots=True)
class TableSummary:
    """Per-table counters for one sync operation.

    Attributes:
        remote_rows: Rows present in the remote table (before an export,
            or fetched during an import).
        inserted: Rows written that did not exist in the target.
        updated: Existing target rows that were changed.
        skipped: Rows deliberately left alone (policy, nothing to merge,
            missing primary key on export, exhausted retries).
    """

    remote_rows: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def summaries_to_dict(summary: dict[str, TableSummary]) -> dict[str, dict[str, int]]:
    return {table: counts.to_dict() for table, counts in summary.items()}


@dataclass(frozen=True, slots=True)
class ExportRunRecord:
    """Outcome of one incremental export pass, kept in a bounded history.

    ``records_exported`` counts rows written before a failure too, so a
    failed record still reports partial progress.
    """

    timestamp: datetime
    success: bool
    records_exported: int
    duration: float
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
            "records_exported": self.records_exported,
            "duration": round(self.duration, 3),
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True, slots=True)
class ExportResult:
    """Outcome of a full, job-driven export."""

    ok: bool
    dry_run: bool
    summary: dict[str, TableSummary] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "dry_run": self.dry_run, "summary": summaries_to_dict(self.summary)}


@dataclass(frozen=True, slots=True)
class ImportResult:
    """Outcome of a committed (or dry-run) bulk import."""

    ok: bool
    dry_run: bool
    strategy: ConflictPolicy
    summary: dict[str, TableSummary] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "dry_run": self.dry_run,
            "strategy": str(self.strategy),
            "summary": summaries_to_dict(self.summary),
        }


@dataclass(frozen=True, slots=True)
class JobOutcome:
    """What [Worker.process_next_job()][cloudsync.services.worker.Worker.process_next_job] did with one job.

    Exactly one of ``summary`` (on success) or ``error`` (on failure) is set.
    """

    job_id: str
    status: JobStatus
    summary: dict[str, TableSummary] | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.status is JobStatus.SUCCESS and self.error is not None:
            raise ValueError("a successful outcome cannot carry an error")
        if self.status is JobStatus.FAILED and self.error is None:
            raise ValueError("a failed outcome must carry an error")

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.SUCCESS
