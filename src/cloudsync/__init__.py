r"""CloudSync -- bidirectional sync between a local SQLite store and PostgreSQL.

Keeps an embedded local store and a remote PostgreSQL database eventually
consistent: a timer-driven incremental export pushes new local rows, an
on-demand bulk import pulls remote rows under a conflict policy, and a job
queue worker runs either on request.

Imports flow strictly downward:

```text
            services         Exporter, Importer, Worker
               |
              core           LocalStore, Pool, BaseService, retry, logging
               |
             models          Pure dataclasses and enums (zero I/O)
```

Note:
    Top-level imports (``from cloudsync import Exporter``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("cloudsync")

__all__ = [
    "BaseService",
    "ConflictPolicy",
    "Exporter",
    "ExporterConfig",
    "ImportResult",
    "Importer",
    "ImporterConfig",
    "LocalStore",
    "LocalStoreConfig",
    "Logger",
    "Pool",
    "PoolConfig",
    "Row",
    "SyncJob",
    "Worker",
    "WorkerConfig",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("cloudsync.core", "BaseService"),
    "LocalStore": ("cloudsync.core", "LocalStore"),
    "LocalStoreConfig": ("cloudsync.core", "LocalStoreConfig"),
    "Logger": ("cloudsync.core", "Logger"),
    "Pool": ("cloudsync.core", "Pool"),
    "PoolConfig": ("cloudsync.core", "PoolConfig"),
    "ConflictPolicy": ("cloudsync.models", "ConflictPolicy"),
    "ImportResult": ("cloudsync.models", "ImportResult"),
    "Row": ("cloudsync.models", "Row"),
    "SyncJob": ("cloudsync.models", "SyncJob"),
    "Exporter": ("cloudsync.services", "Exporter"),
    "ExporterConfig": ("cloudsync.services", "ExporterConfig"),
    "Importer": ("cloudsync.services", "Importer"),
    "ImporterConfig": ("cloudsync.services", "ImporterConfig"),
    "Worker": ("cloudsync.services", "Worker"),
    "WorkerConfig": ("cloudsync.services", "WorkerConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'cloudsync' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
