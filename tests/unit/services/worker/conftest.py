"""Shared fixtures for the worker service tests."""

from __future__ import annotations

import pytest

from cloudsync.core.local_store import LocalStore
from cloudsync.core.pool import PoolConfig
from cloudsync.core.retry import RetryPolicy
from cloudsync.services.common.configs import TransferConfig
from cloudsync.services.exporter import ExporterConfig
from cloudsync.services.importer import ImporterConfig
from cloudsync.services.worker import Worker, WorkerConfig


@pytest.fixture
def worker_config(fast_retry: RetryPolicy, fast_pool: PoolConfig) -> WorkerConfig:
    return WorkerConfig(
        max_jobs_per_cycle=2,
        export=ExporterConfig(
            tables=["products", "variants"],
            transfer=TransferConfig(retry=fast_retry),
            pool=fast_pool,
        ),
        import_=ImporterConfig(
            tables=["products", "variants"], fetch_retry=fast_retry, pool=fast_pool
        ),
    )


@pytest.fixture
def worker(local_store: LocalStore, worker_config: WorkerConfig) -> Worker:
    return Worker(store=local_store, config=worker_config)
