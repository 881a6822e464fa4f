"""Worker service for CloudSync.

Drains the local ``cloud_sync_jobs`` queue. Each job is claimed atomically
(``pending -> running``, ``attempts + 1``), its connection descriptor is
resolved, and it is dispatched to a full export or a bulk import. The job
always ends ``success`` (with the per-table summary as ``details``) or
``failed`` (with ``last_error``); the worker never leaves a job
``running`` and never retries one on its own.

See Also:
    [WorkerConfig][cloudsync.services.worker.WorkerConfig]:
        Configuration model for this service.
    [enqueue_job()][cloudsync.services.common.queries.enqueue_job]:
        Producer side of the queue.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, ClassVar

from cloudsync.core.base_service import BaseService
from cloudsync.core.exceptions import ConfigurationError
from cloudsync.models.constants import JobStatus, JobType, ServiceName
from cloudsync.models.summary import JobOutcome, summaries_to_dict
from cloudsync.services.common.queries import (
    claim_next_job,
    complete_job,
    fail_job,
    get_connection,
)
from cloudsync.services.exporter import Exporter
from cloudsync.services.importer import Importer

from .configs import WorkerConfig


if TYPE_CHECKING:
    from cloudsync.core.local_store import LocalStore
    from cloudsync.models.summary import TableSummary
    from cloudsync.models.sync_job import SyncJob


CONNECTION_NOT_FOUND = "Connection not found"
UNKNOWN_JOB_TYPE = "Unknown job type"


class Worker(BaseService[WorkerConfig]):
    """Sync job queue consumer.

    See Also:
        [WorkerConfig][cloudsync.services.worker.WorkerConfig]:
            Configuration model for this service.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.WORKER
    CONFIG_CLASS: ClassVar[type[WorkerConfig]] = WorkerConfig

    def __init__(
        self,
        store: LocalStore,
        config: WorkerConfig | None = None,
        *,
        exporter: Exporter | None = None,
        importer: Importer | None = None,
    ) -> None:
        super().__init__(store=store, config=config)
        self._exporter = exporter or Exporter(store, self._config.export)
        self._importer = importer or Importer(store, self._config.import_)

    async def run(self) -> None:
        """Process jobs until the queue is empty or ``max_jobs_per_cycle`` is reached."""
        processed = 0
        failed = 0
        while processed < self._config.max_jobs_per_cycle and self.is_running:
            outcome = await self.process_next_job()
            if outcome is None:
                break
            processed += 1
            if not outcome.succeeded:
                failed += 1

        self.set_gauge("jobs_processed", processed)
        if processed:
            self._logger.info("cycle_completed", processed=processed, failed=failed)

    async def process_next_job(self) -> JobOutcome | None:
        """Claim and execute the oldest pending job.

        Returns:
            ``None`` when no job is pending, otherwise the
            [JobOutcome][cloudsync.models.summary.JobOutcome]. Failures of the
            job itself are recorded on the job, never raised.
        """
        job = await claim_next_job(self._store)
        if job is None:
            return None

        self._logger.info(
            "job_started",
            job_id=job.id,
            job_type=job.job_type,
            dry_run=job.dry_run,
            attempts=job.attempts,
        )

        try:
            summary = await self._execute(job)
            await complete_job(self._store, job.id, summaries_to_dict(summary))
        except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
            await self._record_failure(job, "Interrupted")
            raise
        except Exception as e:  # Error boundary: every job failure ends on the job row
            error = str(e) or type(e).__name__
            await self._record_failure(job, error)
            self.inc_counter("jobs_failed")
            self._logger.error(
                "job_failed", job_id=job.id, job_type=job.job_type, error=error
            )
            return JobOutcome(job_id=job.id, status=JobStatus.FAILED, error=error)

        self.inc_counter("jobs_succeeded")
        self._logger.info("job_completed", job_id=job.id, job_type=job.job_type)
        return JobOutcome(job_id=job.id, status=JobStatus.SUCCESS, summary=summary)

    async def _record_failure(self, job: SyncJob, error: str) -> None:
        """Mark ``job`` failed; a store error here is logged, never raised."""
        try:
            await fail_job(self._store, job.id, error)
        except Exception as e:
            self._logger.error(
                "job_state_write_failed", job_id=job.id, error=str(e), job_error=error
            )

    async def _execute(self, job: SyncJob) -> dict[str, TableSummary]:
        if job.job_type not in (JobType.EXPORT, JobType.IMPORT):
            raise ConfigurationError(UNKNOWN_JOB_TYPE)

        descriptor = await get_connection(self._store, job.connection_id)
        if descriptor is None:
            raise LookupError(CONNECTION_NOT_FOUND)

        if job.job_type == JobType.EXPORT:
            export_result = await self._exporter.export_all(
                descriptor.connection_string, dry_run=job.dry_run
            )
            return export_result.summary

        import_result = await self._importer.import_from_postgres(
            descriptor.connection_string,
            strategy=job.requested_policy(),
            dry_run=job.dry_run,
        )
        return import_result.summary
