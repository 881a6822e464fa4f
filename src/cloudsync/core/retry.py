"""
Bounded retry combinator for async operations.

One helper serves every retry site in the engine: per-row remote upserts in
[transfer()][cloudsync.services.common.transfer.transfer] and opening the
remote connection for a bulk import. Attempts are separated by a fixed
delay; exceptions listed as ``fatal`` bypass the retry budget and propagate
immediately.

Examples:
    ```python
    policy = RetryPolicy(max_attempts=3, delay=2.0)
    await retry_async(lambda: conn.execute(sql, *args), policy, logger=log, event="row")
    ```
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, Field


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .logger import Logger


T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Fixed-delay retry settings.

    ``max_attempts`` counts the first try, so the default allows two
    retries after an initial failure.
    """

    max_attempts: int = Field(default=3, ge=1, le=10, description="Attempts including the first")
    delay: float = Field(default=2.0, ge=0.0, description="Seconds between attempts")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    fatal: tuple[type[BaseException], ...] = (),
    logger: Logger | None = None,
    event: str = "operation",
    **log_fields: Any,
) -> T:
    """Await ``operation()`` until it succeeds or the policy is exhausted.

    Args:
        operation: Zero-argument coroutine factory, invoked once per attempt.
        policy: Attempt ceiling and inter-attempt delay.
        retry_on: Exception types that consume an attempt.
        fatal: Exception types re-raised on first occurrence, even if they
            are also covered by ``retry_on``.
        logger: Receives ``{event}_retry`` and ``{event}_exhausted`` lines.
        event: Prefix for the log event names.
        **log_fields: Extra fields attached to every log line.

    Returns:
        The value returned by the first successful attempt.

    Raises:
        BaseException: The last error once all attempts fail, or a ``fatal``
            error as soon as it occurs.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except fatal:
            raise
        except retry_on as e:
            if attempt >= policy.max_attempts:
                if logger is not None:
                    logger.warning(
                        f"{event}_exhausted",
                        attempts=attempt,
                        error=str(e),
                        **log_fields,
                    )
                raise
            if logger is not None:
                logger.info(
                    f"{event}_retry",
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    delay_s=policy.delay,
                    error=str(e),
                    **log_fields,
                )
            await asyncio.sleep(policy.delay)

    raise RuntimeError("retry_async exited without a result")  # pragma: no cover
