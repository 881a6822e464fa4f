"""CloudSync exception hierarchy.

Typed exceptions let each layer decide what is recoverable. Row-level
failures are retried and then dropped by
[transfer()][cloudsync.services.common.transfer.transfer]; connection-level
failures propagate and end the current operation.

Exception hierarchy:

```text
CloudSyncError (base -- never raised directly)
├── ConfigurationError       -- bad YAML, unknown policy, missing settings
├── DatabaseError            -- remote or local store failures
│   ├── ConnectionPoolError  -- remote unreachable, pool exhausted, network blip
│   ├── QueryError           -- bad SQL, constraint violation
│   └── LocalStoreError      -- local SQLite store unavailable or locked
├── LockUnavailableError     -- advisory lock held by another instance
└── SyncImportError          -- bulk import aborted and rolled back
```

See Also:
    [Pool][cloudsync.core.pool.Pool]: Raises
        [ConnectionPoolError][cloudsync.core.exceptions.ConnectionPoolError].
    [AdvisoryLockManager][cloudsync.services.common.lock.AdvisoryLockManager]:
        Raises [LockUnavailableError][cloudsync.core.exceptions.LockUnavailableError].
    [Worker][cloudsync.services.worker.Worker]: Converts every exception
        into a ``failed`` job status.
"""

from __future__ import annotations


class CloudSyncError(Exception):
    """Base exception for all CloudSync errors. Never raised directly."""


class ConfigurationError(CloudSyncError):
    """Invalid or missing configuration (YAML, CLI flags, conflict policy)."""


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


class DatabaseError(CloudSyncError):
    """Base for all store-related errors."""


class ConnectionPoolError(DatabaseError):
    """Transient remote error: connection refused, pool exhausted, network blip.

    Fatal to the current sync operation. Callers may retry the whole
    operation later.
    """


class QueryError(DatabaseError):
    """Permanent database error: bad SQL, constraint violation, data integrity."""


class LocalStoreError(DatabaseError):
    """The local SQLite store could not be opened or stayed locked."""


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


class LockUnavailableError(CloudSyncError):
    """Another instance holds the advisory lock for this remote target.

    Attributes:
        lock_key: The 63-bit advisory lock key that could not be taken.
    """

    def __init__(self, lock_key: int) -> None:
        super().__init__("Unable to acquire advisory lock on remote DB")
        self.lock_key = lock_key


class SyncImportError(CloudSyncError):
    """A bulk import aborted before commit; the local transaction was rolled back."""
