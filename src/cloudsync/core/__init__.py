"""Core layer providing the foundation for all CloudSync services.

Depends only on ``cloudsync.models`` and is depended upon by
``cloudsync.services``.

Attributes:
    LocalStore: Async facade over the local SQLite store.
        See [LocalStore][cloudsync.core.local_store.LocalStore].
    Pool: Async PostgreSQL connection pool for one remote target.
        See [Pool][cloudsync.core.pool.Pool].
    BaseService: Abstract generic base class with lifecycle management,
        factory methods and Prometheus metrics integration.
    Logger: Structured logger supporting key=value and JSON output modes.
    RetryPolicy: Fixed-delay retry settings consumed by
        [retry_async()][cloudsync.core.retry.retry_async].
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.

Examples:
    ```python
    from cloudsync.core import LocalStore, LocalStoreConfig, Pool

    async with LocalStore(LocalStoreConfig(path="shop.db")) as store:
        rows = await store.fetch("SELECT * FROM products")
    ```
"""

from .base_service import (
    BaseService,
    BaseServiceConfig,
    ConfigT,
)
from .local_store import LocalStore, LocalStoreConfig, LocalTransaction
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .pool import (
    Pool,
    PoolConfig,
    PoolLimitsConfig,
    PoolRetryConfig,
    PoolTimeoutsConfig,
    ServerSettingsConfig,
    mask_dsn,
)
from .retry import RetryPolicy, retry_async
from .yaml import load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "ConfigT",
    "LocalStore",
    "LocalStoreConfig",
    "LocalTransaction",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "Pool",
    "PoolConfig",
    "PoolLimitsConfig",
    "PoolRetryConfig",
    "PoolTimeoutsConfig",
    "RetryPolicy",
    "ServerSettingsConfig",
    "StructuredFormatter",
    "format_kv_pairs",
    "load_yaml",
    "mask_dsn",
    "retry_async",
    "start_metrics_server",
]
