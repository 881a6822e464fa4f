"""
Unit tests for models.summary module.

Tests:
- TableSummary counters and serialisation
- ExportRunRecord serialisation with and without an error
- ImportResult/ExportResult dictionaries
- JobOutcome consistency checks
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from cloudsync.models.constants import ConflictPolicy, JobStatus
from cloudsync.models.summary import (
    ExportResult,
    ExportRunRecord,
    ImportResult,
    JobOutcome,
    TableSummary,
    summaries_to_dict,
)


class TestTableSummary:
    """TableSummary."""

    def test_defaults_are_zero(self) -> None:
        assert TableSummary().to_dict() == {
            "remote_rows": 0,
            "inserted": 0,
            "updated": 0,
            "skipped": 0,
        }

    def test_summaries_to_dict(self) -> None:
        result = summaries_to_dict({"products": TableSummary(remote_rows=3, inserted=1)})
        assert result["products"]["remote_rows"] == 3
        assert result["products"]["inserted"] == 1


class TestExportRunRecord:
    """ExportRunRecord.to_dict()."""

    def test_success_has_no_error_key(self) -> None:
        record = ExportRunRecord(
            timestamp=datetime(2024, 1, 1, tzinfo=UTC),
            success=True,
            records_exported=4,
            duration=0.12345,
        )
        data = record.to_dict()
        assert data == {
            "timestamp": "2024-01-01T00:00:00+00:00",
            "success": True,
            "records_exported": 4,
            "duration": 0.123,
        }

    def test_failure_keeps_partial_count(self) -> None:
        record = ExportRunRecord(
            timestamp=datetime(2024, 1, 1, tzinfo=UTC),
            success=False,
            records_exported=2,
            duration=1.0,
            error="connection reset",
        )
        assert record.to_dict()["error"] == "connection reset"
        assert record.to_dict()["records_exported"] == 2


class TestResults:
    """ImportResult and ExportResult."""

    def test_import_result_to_dict(self) -> None:
        result = ImportResult(
            ok=True,
            dry_run=False,
            strategy=ConflictPolicy.OVERWRITE,
            summary={"products": TableSummary(remote_rows=2, updated=2)},
        )
        assert result.to_dict() == {
            "ok": True,
            "dry_run": False,
            "strategy": "overwrite",
            "summary": {"products": {"remote_rows": 2, "inserted": 0, "updated": 2, "skipped": 0}},
        }

    def test_export_result_to_dict(self) -> None:
        result = ExportResult(ok=True, dry_run=True, summary={"sales": TableSummary(remote_rows=9)})
        assert result.to_dict()["summary"]["sales"]["remote_rows"] == 9


class TestJobOutcome:
    """JobOutcome consistency."""

    def test_success(self) -> None:
        outcome = JobOutcome(job_id="j1", status=JobStatus.SUCCESS, summary={})
        assert outcome.succeeded

    def test_failure_requires_error(self) -> None:
        with pytest.raises(ValueError, match="must carry an error"):
            JobOutcome(job_id="j1", status=JobStatus.FAILED)

    def test_success_rejects_error(self) -> None:
        with pytest.raises(ValueError, match="cannot carry an error"):
            JobOutcome(job_id="j1", status=JobStatus.SUCCESS, error="boom")

    def test_failed_outcome(self) -> None:
        outcome = JobOutcome(job_id="j1", status=JobStatus.FAILED, error="boom")
        assert not outcome.succeeded
