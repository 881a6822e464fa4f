"""Row batch transfer with per-row bounded retry.

[transfer()][cloudsync.services.common.transfer.transfer] walks a record
list in fixed-size batches and hands each record to an ``upsert``
coroutine. A record that keeps failing after the retry budget is counted
as not exported and the walk continues, so one bad row never stops a
table. Connection-level failures propagate immediately and end the
operation.
"""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, Any, TypeVar

import asyncpg

from cloudsync.core.exceptions import ConnectionPoolError
from cloudsync.core.logger import Logger
from cloudsync.core.retry import RetryPolicy, retry_async


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence


T = TypeVar("T")

#: Failures that mean the remote connection itself is gone.
CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    ConnectionPoolError,
    asyncpg.InterfaceError,
    asyncpg.ConnectionDoesNotExistError,
    OSError,
)

_logger = Logger("transfer")


def iter_batches(records: Sequence[T], batch_size: int) -> list[Sequence[T]]:
    """Split ``records`` into consecutive slices of at most ``batch_size``."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return [records[i : i + batch_size] for i in range(0, len(records), batch_size)]


async def transfer(
    records: Sequence[T],
    upsert: Callable[[T], Awaitable[Any]],
    *,
    batch_size: int = 100,
    retry: RetryPolicy | None = None,
    table: str = "",
    on_success: Callable[[T, Any], None] | None = None,
    on_failure: Callable[[T, BaseException], None] | None = None,
    logger: Logger | None = None,
) -> int:
    """Write every record with ``upsert`` and return how many succeeded.

    Args:
        records: Records to write, in order.
        upsert: Coroutine writing one record; its return value is passed
            to ``on_success``.
        batch_size: Slice size for progress logging.
        retry: Attempts per record and delay between them (default three
            attempts, two seconds apart).
        table: Table name attached to every log line.
        on_success: Called with the record and the upsert result.
        on_failure: Called with the record and the last error once its
            retries are exhausted.
        logger: Destination for ``row_retry``/``row_exhausted`` lines.

    Returns:
        Number of records written successfully.

    Raises:
        ConnectionPoolError: And the other ``CONNECTION_ERRORS`` as soon as
            they occur; no further records are attempted.
    """
    policy = retry or RetryPolicy()
    log = logger or _logger
    exported = 0

    for batch_index, batch in enumerate(iter_batches(records, batch_size)):
        for record in batch:
            try:
                result = await retry_async(
                    partial(upsert, record),
                    policy,
                    fatal=CONNECTION_ERRORS,
                    logger=log,
                    event="row",
                    table=table,
                )
            except CONNECTION_ERRORS:
                raise
            except Exception as e:  # Row-level boundary: already logged as row_exhausted
                if on_failure is not None:
                    on_failure(record, e)
                continue

            exported += 1
            if on_success is not None:
                on_success(record, result)

        log.debug(
            "batch_completed",
            table=table,
            batch=batch_index + 1,
            size=len(batch),
            exported=exported,
        )

    return exported
