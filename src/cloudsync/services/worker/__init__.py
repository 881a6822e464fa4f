"""Worker service package.

Re-exports all public symbols::

    from cloudsync.services.worker import Worker, WorkerConfig
"""

from .configs import WorkerConfig
from .service import CONNECTION_NOT_FOUND, UNKNOWN_JOB_TYPE, Worker


__all__ = [
    "CONNECTION_NOT_FOUND",
    "UNKNOWN_JOB_TYPE",
    "Worker",
    "WorkerConfig",
]
