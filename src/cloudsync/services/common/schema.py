"""Bootstrap of the local tables owned by the sync engine.

Only ``cloud_connections`` and ``cloud_sync_jobs`` are created here. The
domain tables and ``settings`` belong to the host application and are
never created or altered by CloudSync.
"""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from cloudsync.core.local_store import LocalStore


LOCAL_NOW = "strftime('%Y-%m-%d %H:%M:%f', 'now')"

SYNC_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS cloud_connections (
    id TEXT PRIMARY KEY,
    connection_string TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT ({LOCAL_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({LOCAL_NOW})
);

CREATE TABLE IF NOT EXISTS cloud_sync_jobs (
    id TEXT PRIMARY KEY,
    job_type TEXT NOT NULL,
    connection_id TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    attempts INTEGER NOT NULL DEFAULT 0,
    dry_run INTEGER NOT NULL DEFAULT 1,
    details TEXT,
    last_error TEXT,
    created_at TEXT NOT NULL DEFAULT ({LOCAL_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({LOCAL_NOW})
);

CREATE INDEX IF NOT EXISTS idx_cloud_sync_jobs_status_created
    ON cloud_sync_jobs (status, created_at);
"""


async def ensure_sync_schema(store: LocalStore) -> None:
    """Create the job queue and connection registry tables if absent. Idempotent."""
    await store.executescript(SYNC_SCHEMA)
