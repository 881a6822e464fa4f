"""Shared fixtures for the importer tests."""

from __future__ import annotations

import pytest

from cloudsync.core.local_store import LocalStore
from cloudsync.core.pool import PoolConfig
from cloudsync.core.retry import RetryPolicy
from cloudsync.services.importer import Importer, ImporterConfig


@pytest.fixture
def importer_config(fast_retry: RetryPolicy, fast_pool: PoolConfig) -> ImporterConfig:
    return ImporterConfig(tables=["products", "variants"], fetch_retry=fast_retry, pool=fast_pool)


@pytest.fixture
def importer(local_store: LocalStore, importer_config: ImporterConfig) -> Importer:
    return Importer(store=local_store, config=importer_config)
