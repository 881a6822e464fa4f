"""Shared fixtures for the exporter service tests."""

from __future__ import annotations

import pytest

from cloudsync.core.local_store import LocalStore
from cloudsync.core.pool import PoolConfig
from cloudsync.core.retry import RetryPolicy
from cloudsync.services.common.configs import TransferConfig
from cloudsync.services.exporter import Exporter, ExporterConfig


@pytest.fixture
def exporter_config(fast_retry: RetryPolicy, fast_pool: PoolConfig) -> ExporterConfig:
    return ExporterConfig(
        tables=["products", "variants"],
        initial_delay=60.0,
        transfer=TransferConfig(batch_size=2, retry=fast_retry),
        pool=fast_pool,
    )


@pytest.fixture
def exporter(local_store: LocalStore, exporter_config: ExporterConfig) -> Exporter:
    return Exporter(store=local_store, config=exporter_config)
