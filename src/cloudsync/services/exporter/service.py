"""Exporter service for CloudSync.

Pushes local rows to the remote store in two modes:

* **Incremental** ([run_once()][cloudsync.services.exporter.Exporter.run_once],
  driven by [start()][cloudsync.services.exporter.Exporter.start] or
  ``run_forever()``): every export table is scanned for rows created after
  the in-memory watermark and upserted one row at a time. The watermark
  moves to the pass's start time only when the whole pass succeeds. Rows
  that exhaust their retries inside a successful pass are remembered by
  primary key and attempted again on the next pass.
* **Full** ([export_all()][cloudsync.services.exporter.Exporter.export_all],
  used by export jobs): every local row of every export table, under the
  remote advisory lock, with a per-table summary.

The remote target for incremental passes is read from the local settings
row on every pass; when it is absent cloud sync is disabled and the pass is
a no-op. The exporter never raises to its caller: outcomes are visible only
through [status()][cloudsync.services.exporter.Exporter.status].

See Also:
    [ExporterConfig][cloudsync.services.exporter.ExporterConfig]:
        Configuration model for this service.
    [transfer()][cloudsync.services.common.transfer.transfer]: Per-row
        retry used for every table.

Examples:
    ```python
    from cloudsync.core import LocalStore
    from cloudsync.services import Exporter

    store = LocalStore.from_yaml("config/store.yaml")
    exporter = Exporter.from_yaml("config/services/exporter.yaml", store=store)

    async with store, exporter:
        exporter.start()
        ...
        await exporter.stop()
    ```
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, ClassVar

from cloudsync.core.base_service import BaseService
from cloudsync.core.exceptions import QueryError
from cloudsync.core.pool import Pool
from cloudsync.models.constants import EXPORT_HISTORY_SIZE, ServiceName
from cloudsync.models.summary import ExportResult, ExportRunRecord, TableSummary
from cloudsync.services.common.lock import AdvisoryLockManager
from cloudsync.services.common.queries import (
    fetch_all_rows,
    fetch_rows_by_ids,
    fetch_rows_since,
    get_cloud_database_url,
)
from cloudsync.services.common.remote import PostgresRemoteClient
from cloudsync.services.common.transfer import transfer

from .configs import ExporterConfig


if TYPE_CHECKING:
    from cloudsync.core.local_store import LocalStore
    from cloudsync.models.row import Row, SqlValue


EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def format_watermark(moment: datetime, created_at_format: str) -> str | int:
    """Render ``moment`` in the encoding the local ``created_at`` columns use."""
    if created_at_format == "epoch_seconds":
        return int(moment.timestamp())
    if created_at_format == "epoch_millis":
        return int(moment.timestamp() * 1000)
    return moment.astimezone(UTC).replace(tzinfo=None).isoformat(sep=" ")


def _count_upsert(summary: TableSummary, _row: Row, inserted: bool) -> None:
    if inserted:
        summary.inserted += 1
    else:
        summary.updated += 1


class Exporter(BaseService[ExporterConfig]):
    """Local-to-remote export service.

    State is process-local and never persisted: after a restart the
    watermark is back at the epoch and the first pass re-sends everything,
    which the idempotent upsert absorbs.

    See Also:
        [ExporterConfig][cloudsync.services.exporter.ExporterConfig]:
            Configuration model for this service.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.EXPORTER
    CONFIG_CLASS: ClassVar[type[ExporterConfig]] = ExporterConfig

    def __init__(self, store: LocalStore, config: ExporterConfig | None = None) -> None:
        super().__init__(store=store, config=config)
        self._watermark: datetime = EPOCH
        self._is_exporting = False
        self._history: deque[ExportRunRecord] = deque(maxlen=EXPORT_HISTORY_SIZE)
        self._retry_ids: dict[str, set[SqlValue]] = {}
        self._timer_task: asyncio.Task[None] | None = None
        self._next_run_at: float | None = None

    @property
    def watermark(self) -> datetime:
        return self._watermark

    @property
    def is_exporting(self) -> bool:
        return self._is_exporting

    @property
    def history(self) -> list[ExportRunRecord]:
        return list(self._history)

    @property
    def pending_retries(self) -> dict[str, int]:
        """Number of rows per table waiting to be retried on the next pass."""
        return {table: len(ids) for table, ids in self._retry_ids.items() if ids}

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """One incremental pass; used by ``run_forever()`` and ``--once``."""
        await self.run_once()
        if self._timer_task is not None:
            self._next_run_at = time.monotonic() + self._config.interval

    def start(self) -> None:
        """Schedule the first pass after ``initial_delay``, then one every ``interval``.

        Calling ``start()`` while already scheduled is a no-op.
        """
        if self._timer_task is not None and not self._timer_task.done():
            self._logger.debug("export_timer_already_running")
            return
        self._shutdown_event.clear()
        self._next_run_at = time.monotonic() + self._config.initial_delay
        self._timer_task = asyncio.create_task(self._timer_loop(), name="cloudsync-exporter")
        self._logger.info(
            "export_timer_started",
            initial_delay_s=self._config.initial_delay,
            interval_s=self._config.interval,
        )

    async def _timer_loop(self) -> None:
        if await self.wait(self._config.initial_delay):
            return
        await self.run_forever()

    async def stop(self) -> None:
        """Cancel future passes and wait for an in-flight pass to finish."""
        self.request_shutdown()
        task, self._timer_task = self._timer_task, None
        self._next_run_at = None
        if task is not None:
            await task
            self._logger.info("export_timer_stopped")

    def status(self) -> dict[str, Any]:
        """Snapshot for status endpoints.

        Returns:
            ``is_exporting``, ``last_export_time`` (the watermark, ISO 8601,
            ``None`` before the first successful pass), ``stats`` (up to the
            last ten run records, oldest first) and ``next_export_in``
            (seconds until the next scheduled pass, ``None`` when the timer
            is not running).
        """
        next_export_in: float | None = None
        if self._next_run_at is not None:
            next_export_in = round(max(0.0, self._next_run_at - time.monotonic()), 3)
        return {
            "is_exporting": self._is_exporting,
            "last_export_time": None if self._watermark == EPOCH else self._watermark.isoformat(),
            "stats": [record.to_dict() for record in self._history],
            "next_export_in": next_export_in,
        }

    # -------------------------------------------------------------------------
    # Incremental export
    # -------------------------------------------------------------------------

    async def run_once(self) -> ExportRunRecord | None:
        """Run one incremental pass unless one is already in progress.

        Returns:
            The appended [ExportRunRecord][cloudsync.models.summary.ExportRunRecord],
            or ``None`` when the pass was skipped (already exporting, or
            cloud sync disabled).
        """
        if self._is_exporting:
            self._logger.info("export_already_running")
            return None

        self._is_exporting = True
        self.set_gauge("is_exporting", 1)
        started = time.monotonic()
        export_time = datetime.now(UTC)
        totals: dict[str, TableSummary] = {}
        failures: dict[str, set[SqlValue]] = {}

        try:
            url = await get_cloud_database_url(self._store)
            if url is None:
                self._logger.debug("cloud_sync_disabled")
                return None

            self._logger.info("export_started", since=self._watermark.isoformat())
            pool = Pool(url, self._config.pool)
            async with pool, pool.acquire() as conn:
                remote = PostgresRemoteClient(
                    conn,
                    table_names=self._config.remote_table_names,
                    epoch_scale=self._config.epoch_scale,
                    logger=self._logger,
                )
                for table in self._config.tables:
                    totals[table] = TableSummary()
                    await self._export_increment(remote, table, totals[table], failures)

            exported = sum(s.inserted + s.updated for s in totals.values())
            self._watermark = export_time
            self._retry_ids = failures
            record = ExportRunRecord(
                timestamp=export_time,
                success=True,
                records_exported=exported,
                duration=time.monotonic() - started,
            )
            self.inc_counter("records_exported", exported)
            self._logger.info(
                "export_completed",
                records_exported=exported,
                pending_retries=sum(len(ids) for ids in failures.values()),
                duration_s=round(record.duration, 3),
            )

        except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
            raise

        except Exception as e:  # Error boundary: failures surface only via run records
            for table, ids in failures.items():
                self._retry_ids.setdefault(table, set()).update(ids)
            record = ExportRunRecord(
                timestamp=export_time,
                success=False,
                records_exported=sum(s.inserted + s.updated for s in totals.values()),
                duration=time.monotonic() - started,
                error=str(e),
            )
            self.inc_counter("export_failures")
            self._logger.error("export_failed", error=str(e), error_type=type(e).__name__)

        finally:
            self._is_exporting = False
            self.set_gauge("is_exporting", 0)

        self._history.append(record)
        return record

    async def _export_increment(
        self,
        remote: PostgresRemoteClient,
        table: str,
        summary: TableSummary,
        failures: dict[str, set[SqlValue]],
    ) -> None:
        since = self._watermark - timedelta(seconds=self._config.watermark_overlap)
        if self._watermark == EPOCH:
            since = EPOCH
        rows = await fetch_rows_since(
            self._store, table, format_watermark(since, self._config.created_at_format)
        )

        retry_ids = self._retry_ids.get(table)
        if retry_ids:
            seen = {row.primary_key for row in rows}
            retried = await fetch_rows_by_ids(self._store, table, list(retry_ids))
            rows.extend(row for row in retried if row.primary_key not in seen)

        keyed = [row for row in rows if row.has_primary_key]
        if len(keyed) < len(rows):
            summary.skipped += len(rows) - len(keyed)
            self._logger.warning(
                "rows_without_primary_key", table=table, count=len(rows) - len(keyed)
            )
        if not keyed:
            return

        if not await remote.column_types(table):
            raise QueryError(f"Remote table {remote.remote_name(table)} does not exist")

        def record_failure(row: Row, _error: BaseException) -> None:
            summary.skipped += 1
            failures.setdefault(table, set()).add(row.primary_key)

        await transfer(
            keyed,
            remote.upsert,
            batch_size=self._config.transfer.batch_size,
            retry=self._config.transfer.retry,
            table=table,
            on_success=lambda row, inserted: _count_upsert(summary, row, inserted),
            on_failure=record_failure,
            logger=self._logger,
        )
        self._logger.debug(
            "table_exported",
            table=table,
            rows=len(keyed),
            inserted=summary.inserted,
            updated=summary.updated,
            skipped=summary.skipped,
        )

    # -------------------------------------------------------------------------
    # Full export
    # -------------------------------------------------------------------------

    async def export_all(self, connection_string: str, dry_run: bool = False) -> ExportResult:
        """Export every local row of every export table to ``connection_string``.

        Holds the remote advisory lock for the whole run. ``remote_rows`` is
        the remote row count before anything is written; in dry-run mode it
        is the only counter filled and the remote store is not written.
        Remote tables that do not exist yield a zero summary.

        Raises:
            LockUnavailableError: If another instance holds the lock.
            ConnectionPoolError: If the remote store is unreachable.
        """
        summary: dict[str, TableSummary] = {}
        self._logger.info("full_export_started", dry_run=dry_run)

        pool = Pool(connection_string, self._config.pool)
        async with pool, pool.acquire() as conn:
            async with AdvisoryLockManager(conn, logger=self._logger).hold(connection_string):
                remote = PostgresRemoteClient(
                    conn,
                    table_names=self._config.remote_table_names,
                    epoch_scale=self._config.epoch_scale,
                    logger=self._logger,
                )
                for table in self._config.tables:
                    counts = TableSummary()
                    summary[table] = counts
                    remote_rows = await remote.count_rows(table)
                    if remote_rows is None:
                        self._logger.warning("remote_table_missing", table=table)
                        continue
                    counts.remote_rows = remote_rows
                    if dry_run:
                        continue
                    await self._export_table(remote, table, counts)

        exported = sum(s.inserted + s.updated for s in summary.values())
        if not dry_run:
            self.inc_counter("records_exported", exported)
        self._logger.info("full_export_completed", dry_run=dry_run, records_exported=exported)
        return ExportResult(ok=True, dry_run=dry_run, summary=summary)

    async def _export_table(
        self, remote: PostgresRemoteClient, table: str, counts: TableSummary
    ) -> None:
        rows = await fetch_all_rows(self._store, table)
        keyed = [row for row in rows if row.has_primary_key]
        counts.skipped += len(rows) - len(keyed)

        def record_failure(_row: Row, _error: BaseException) -> None:
            counts.skipped += 1

        await transfer(
            keyed,
            remote.upsert,
            batch_size=self._config.transfer.batch_size,
            retry=self._config.transfer.retry,
            table=table,
            on_success=lambda row, inserted: _count_upsert(counts, row, inserted),
            on_failure=record_failure,
            logger=self._logger,
        )
