"""
Unit tests for services.exporter.service module.

Tests:
- format_watermark() encodings and per-format row selection
- Incremental passes: disabled sync, watermark advance, idempotence
- Row failures kept for the next pass, connection loss fails the pass
- Concurrent pass guard and bounded history
- Timer start/stop and status()
- Full export: summary, dry run, lock exclusivity, missing tables
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from cloudsync.core.exceptions import LockUnavailableError
from cloudsync.core.local_store import LocalStore
from cloudsync.models.constants import EXPORT_HISTORY_SIZE
from cloudsync.services.common.lock import lock_key_for
from cloudsync.services.exporter import EPOCH, Exporter, format_watermark


PRODUCTS = [
    {"id": "p1", "name": "Shirt", "price": 9.5, "created_at": "2024-01-01 10:00:00"},
    {"id": "p2", "name": "Jeans", "price": 30.0, "created_at": "2024-01-01 11:00:00"},
    {"id": "p3", "name": "Socks", "price": 2.0, "created_at": "2024-01-01 12:00:00"},
]


class TestFormatWatermark:
    """format_watermark() encodings."""

    moment = datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC)

    def test_iso(self) -> None:
        assert format_watermark(self.moment, "iso") == "2024-01-01 10:00:00"

    def test_epoch_seconds(self) -> None:
        assert format_watermark(self.moment, "epoch_seconds") == 1704103200

    def test_epoch_millis(self) -> None:
        assert format_watermark(self.moment, "epoch_millis") == 1704103200000

    def test_epoch_iso(self) -> None:
        assert format_watermark(EPOCH, "iso") == "1970-01-01 00:00:00"


class TestCreatedAtFormats:
    """Row selection and remote timestamps per ``created_at_format``."""

    @pytest.mark.parametrize(
        ("created_at_format", "created_at"),
        [("epoch_seconds", 1704103200), ("epoch_millis", 1704103200000)],
    )
    async def test_epoch_rows_sent_as_timestamps(
        self,
        local_store: LocalStore,
        exporter_config,
        remote_db,
        cloud_settings,
        insert_rows,
        created_at_format: str,
        created_at: int,
    ) -> None:
        config = exporter_config.model_copy(update={"created_at_format": created_at_format})
        exporter = Exporter(store=local_store, config=config)
        await insert_rows("products", {"id": "p1", "name": "Shirt", "created_at": created_at})

        record = await exporter.run_once()

        assert record is not None
        assert record.success is True
        assert remote_db.rows("products")[0]["created_at"] == "2024-01-01T10:00:00+00:00"

        remote_db.upserts.clear()
        await exporter.run_once()
        assert remote_db.upserts == []

    async def test_iso_t_separator_not_resent(
        self, exporter: Exporter, remote_db, cloud_settings, insert_rows
    ) -> None:
        created_at = (datetime.now(UTC) - timedelta(seconds=1)).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
        await insert_rows("products", {"id": "p1", "name": "Shirt", "created_at": created_at})

        await exporter.run_once()
        assert remote_db.upserts == [("products", "p1")]

        remote_db.upserts.clear()
        await exporter.run_once()
        assert remote_db.upserts == []


class TestIncrementalExport:
    """run_once() behaviour."""

    async def test_disabled_without_settings(self, exporter: Exporter, remote_db) -> None:
        assert await exporter.run_once() is None
        assert exporter.history == []
        assert remote_db.sessions == 0
        assert exporter.watermark == EPOCH

    async def test_first_pass_exports_everything(
        self, exporter: Exporter, remote_db, cloud_settings, insert_rows
    ) -> None:
        await insert_rows("products", *PRODUCTS)
        await insert_rows("variants", {"id": "v1", "product_id": "p1", "created_at": "2024-01-02"})

        record = await exporter.run_once()

        assert record is not None
        assert record.success is True
        assert record.records_exported == 4
        assert sorted(r["id"] for r in remote_db.rows("products")) == ["p1", "p2", "p3"]
        assert remote_db.rows("variants")[0]["product_id"] == "p1"
        assert exporter.watermark == record.timestamp
        assert remote_db.dsns == [cloud_settings]

    async def test_second_pass_exports_nothing_new(
        self, exporter: Exporter, remote_db, cloud_settings, insert_rows
    ) -> None:
        await insert_rows("products", *PRODUCTS)
        await exporter.run_once()
        upserts = len(remote_db.upserts)

        record = await exporter.run_once()

        assert record is not None
        assert record.success is True
        assert record.records_exported == 0
        assert len(remote_db.upserts) == upserts

    async def test_rows_without_primary_key_skipped(
        self, exporter: Exporter, remote_db, cloud_settings, insert_rows
    ) -> None:
        await insert_rows(
            "products",
            {"id": "p1", "created_at": "2024-01-01"},
            {"id": "", "created_at": "2024-01-01"},
        )

        record = await exporter.run_once()

        assert record is not None
        assert record.records_exported == 1
        assert [r["id"] for r in remote_db.rows("products")] == ["p1"]

    async def test_exhausted_row_retried_next_pass(
        self, exporter: Exporter, remote_db, cloud_settings, insert_rows
    ) -> None:
        await insert_rows("products", *PRODUCTS)
        remote_db.row_failures[("products", "p2")] = 3

        first = await exporter.run_once()

        assert first is not None
        assert first.success is True
        assert first.records_exported == 2
        assert exporter.pending_retries == {"products": 1}

        second = await exporter.run_once()

        assert second is not None
        assert second.records_exported == 1
        assert "p2" in remote_db.tables["products"]
        assert exporter.pending_retries == {}

    async def test_connection_loss_fails_pass_and_keeps_watermark(
        self, exporter: Exporter, remote_db, cloud_settings, insert_rows
    ) -> None:
        await insert_rows("products", *PRODUCTS)
        remote_db.drop_connection_after = 1

        record = await exporter.run_once()

        assert record is not None
        assert record.success is False
        assert record.records_exported == 1
        assert "connection was closed" in (record.error or "")
        assert exporter.watermark == EPOCH
        assert exporter.is_exporting is False

        remote_db.drop_connection_after = None
        retry = await exporter.run_once()
        assert retry is not None
        assert retry.success is True
        assert len(remote_db.rows("products")) == 3

    async def test_unreachable_remote_fails_pass(
        self, exporter: Exporter, remote_db, cloud_settings
    ) -> None:
        remote_db.unreachable = True

        record = await exporter.run_once()

        assert record is not None
        assert record.success is False
        assert record.records_exported == 0

    async def test_missing_remote_table_fails_pass(
        self, exporter: Exporter, remote_db, cloud_settings, insert_rows
    ) -> None:
        del remote_db.tables["variants"]
        del remote_db.column_types["variants"]
        await insert_rows("variants", {"id": "v1", "created_at": "2024-01-01"})

        record = await exporter.run_once()

        assert record is not None
        assert record.success is False
        assert "does not exist" in (record.error or "")
        assert exporter.watermark == EPOCH

    async def test_concurrent_pass_skipped(
        self, exporter: Exporter, remote_db, cloud_settings, insert_rows
    ) -> None:
        await insert_rows("products", *PRODUCTS)

        first, second = await asyncio.gather(exporter.run_once(), exporter.run_once())

        assert first is not None
        assert second is None
        assert len(exporter.history) == 1

    async def test_history_bounded(self, exporter: Exporter, remote_db, cloud_settings) -> None:
        for _ in range(EXPORT_HISTORY_SIZE + 2):
            await exporter.run_once()

        assert len(exporter.history) == EXPORT_HISTORY_SIZE

    async def test_remote_table_names_applied(
        self, local_store: LocalStore, exporter_config, remote_db, cloud_settings, insert_rows
    ) -> None:
        remote_db.create_table("catalog_products", dict(remote_db.column_types["products"]))
        config = exporter_config.model_copy(
            update={"remote_table_names": {"products": "catalog_products"}}
        )
        await insert_rows("products", PRODUCTS[0])

        await Exporter(store=local_store, config=config).run_once()

        assert [r["id"] for r in remote_db.rows("catalog_products")] == ["p1"]
        assert remote_db.rows("products") == []


class TestStatusAndTimer:
    """status(), start() and stop()."""

    async def test_status_before_any_pass(self, exporter: Exporter) -> None:
        assert exporter.status() == {
            "is_exporting": False,
            "last_export_time": None,
            "stats": [],
            "next_export_in": None,
        }

    async def test_status_after_pass(self, exporter: Exporter, remote_db, cloud_settings) -> None:
        record = await exporter.run_once()
        assert record is not None

        status = exporter.status()

        assert status["last_export_time"] == record.timestamp.isoformat()
        assert status["stats"] == [record.to_dict()]

    async def test_start_schedules_and_stop_cancels(self, exporter: Exporter) -> None:
        exporter.start()
        exporter.start()

        next_in = exporter.status()["next_export_in"]
        assert next_in is not None
        assert 0 < next_in <= 60.0

        await exporter.stop()

        assert exporter.status()["next_export_in"] is None
        assert exporter.history == []

    async def test_stop_without_start(self, exporter: Exporter) -> None:
        await exporter.stop()
        assert exporter.status()["next_export_in"] is None


class TestFullExport:
    """export_all()."""

    async def test_summary_per_table(
        self, exporter: Exporter, remote_db, insert_rows, dsn: str
    ) -> None:
        await insert_rows("products", *PRODUCTS)
        remote_db.tables["products"]["p1"] = {"id": "p1", "name": "Old"}

        result = await exporter.export_all(dsn)

        assert result.ok is True
        assert result.summary["products"].to_dict() == {
            "remote_rows": 1,
            "inserted": 2,
            "updated": 1,
            "skipped": 0,
        }
        assert result.summary["variants"].remote_rows == 0
        assert remote_db.tables["products"]["p1"]["name"] == "Shirt"
        assert remote_db.held_locks == {}

    async def test_repeat_export_converges(
        self, exporter: Exporter, remote_db, insert_rows, dsn: str
    ) -> None:
        await insert_rows("products", *PRODUCTS)

        await exporter.export_all(dsn)
        snapshot = [dict(r) for r in remote_db.rows("products")]
        second = await exporter.export_all(dsn)

        assert second.summary["products"].inserted == 0
        assert second.summary["products"].updated == 3
        assert remote_db.rows("products") == snapshot

    async def test_dry_run_writes_nothing(
        self, exporter: Exporter, remote_db, insert_rows, dsn: str
    ) -> None:
        await insert_rows("products", *PRODUCTS)
        remote_db.tables["products"]["x"] = {"id": "x"}

        result = await exporter.export_all(dsn, dry_run=True)

        assert result.dry_run is True
        assert result.summary["products"].to_dict() == {
            "remote_rows": 1,
            "inserted": 0,
            "updated": 0,
            "skipped": 0,
        }
        assert remote_db.upserts == []

    async def test_missing_remote_table_zero_summary(
        self, exporter: Exporter, remote_db, insert_rows, dsn: str
    ) -> None:
        del remote_db.tables["variants"]
        del remote_db.column_types["variants"]
        await insert_rows("variants", {"id": "v1"})

        result = await exporter.export_all(dsn)

        assert result.summary["variants"].to_dict() == {
            "remote_rows": 0,
            "inserted": 0,
            "updated": 0,
            "skipped": 0,
        }

    async def test_lock_held_elsewhere(
        self, exporter: Exporter, remote_db, insert_rows, dsn: str
    ) -> None:
        await insert_rows("products", *PRODUCTS)
        remote_db.hold_lock(lock_key_for(dsn))

        with pytest.raises(LockUnavailableError, match="advisory lock"):
            await exporter.export_all(dsn)

        assert remote_db.upserts == []

    async def test_pk_less_rows_counted_as_skipped(
        self, exporter: Exporter, remote_db, insert_rows, dsn: str
    ) -> None:
        await insert_rows("products", {"id": ""}, {"id": "p1"})

        result = await exporter.export_all(dsn)

        assert result.summary["products"].skipped == 1
        assert result.summary["products"].inserted == 1
