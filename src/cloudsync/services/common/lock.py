"""Cross-instance mutual exclusion through PostgreSQL advisory locks.

Every instance pointed at the same remote database derives the same 63-bit
key from the connection string, so at most one of them can run an import or
a job-driven export against it at a time. The lock is a session lock, bound
to the remote connection it was taken on.

Acquisition never waits: ``pg_try_advisory_lock`` either grants the lock
or the caller gets
[LockUnavailableError][cloudsync.core.exceptions.LockUnavailableError]
right away.

Examples:
    ```python
    async with pool.acquire() as conn:
        async with AdvisoryLockManager(conn).hold(dsn):
            ...
    ```
"""

from __future__ import annotations

import hashlib
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import asyncpg

from cloudsync.core.exceptions import LockUnavailableError
from cloudsync.core.logger import Logger


if TYPE_CHECKING:
    from collections.abc import AsyncIterator


LOCK_KEY_MASK = 0x7FFF_FFFF_FFFF_FFFF


def lock_key_for(connection_string: str) -> int:
    """Derive the advisory lock key for a remote target.

    SHA-256 of the UTF-8 connection string, first eight bytes read
    big-endian, masked to a non-negative signed 64-bit integer.
    """
    digest = hashlib.sha256(connection_string.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") & LOCK_KEY_MASK


@dataclass(frozen=True, slots=True)
class LockToken:
    """Proof of a granted advisory lock, consumed by ``release()``."""

    key: int


class AdvisoryLockManager:
    """Take and release advisory locks on one live remote connection."""

    def __init__(self, conn: asyncpg.Connection[Any], logger: Logger | None = None) -> None:
        self._conn = conn
        self._logger = logger or Logger("lock")

    async def acquire(self, connection_string: str) -> LockToken:
        """Try once to take the lock for ``connection_string``.

        Raises:
            LockUnavailableError: If another session holds the lock.
        """
        key = lock_key_for(connection_string)
        granted = await self._conn.fetchval("SELECT pg_try_advisory_lock($1)", key)
        if not granted:
            self._logger.warning("lock_unavailable", lock_key=key)
            raise LockUnavailableError(key)
        self._logger.debug("lock_acquired", lock_key=key)
        return LockToken(key=key)

    async def release(self, token: LockToken) -> bool:
        """Release a lock taken by ``acquire()``.

        Returns:
            ``True`` if the server released it. A failed release is logged
            and reported as ``False``; the server drops session locks when
            the connection closes anyway.
        """
        try:
            released = bool(
                await self._conn.fetchval("SELECT pg_advisory_unlock($1)", token.key)
            )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            self._logger.warning("lock_release_failed", lock_key=token.key, error=str(e))
            return False
        if not released:
            self._logger.warning("lock_not_held", lock_key=token.key)
        else:
            self._logger.debug("lock_released", lock_key=token.key)
        return released

    @asynccontextmanager
    async def hold(self, connection_string: str) -> AsyncIterator[LockToken]:
        """Hold the lock for the duration of the block, always releasing it."""
        token = await self.acquire(connection_string)
        try:
            yield token
        finally:
            await self.release(token)
