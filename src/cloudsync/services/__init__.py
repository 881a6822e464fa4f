"""Sync services plus shared utilities.

Services are the top layer, depending on
[cloudsync.core][cloudsync.core] and [cloudsync.models][cloudsync.models].

```text
Worker --export job--> Exporter.export_all
       --import job--> Importer.import_from_postgres
Exporter (timer) -----> incremental export
```

Attributes:
    Exporter: Incremental local-to-remote export on a timer, plus the full
        export used by export jobs.
    Importer: On-demand bulk import from the remote store under a conflict
        policy, all-or-nothing per run.
    Worker: Consumer of the local ``cloud_sync_jobs`` queue.

See Also:
    [BaseService][cloudsync.core.base_service.BaseService]: Abstract base
        class of the loop services.
    [common][cloudsync.services.common]: Locking, transfer, remote access
        and local queries shared by all services.
"""

from .exporter import Exporter, ExporterConfig
from .importer import Importer, ImporterConfig
from .worker import Worker, WorkerConfig


__all__ = [
    "Exporter",
    "ExporterConfig",
    "Importer",
    "ImporterConfig",
    "Worker",
    "WorkerConfig",
]
