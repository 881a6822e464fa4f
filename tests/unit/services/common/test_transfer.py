"""
Unit tests for services.common.transfer module.

Tests:
- iter_batches() slicing
- transfer() success counting and callbacks
- Per-row retry then drop on exhaustion
- Connection errors propagate and stop the walk
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from cloudsync.core.exceptions import ConnectionPoolError
from cloudsync.core.retry import RetryPolicy
from cloudsync.services.common.transfer import iter_batches, transfer


class TestIterBatches:
    """iter_batches() slicing."""

    def test_even_split(self) -> None:
        assert iter_batches([1, 2, 3, 4], 2) == [[1, 2], [3, 4]]

    def test_remainder(self) -> None:
        assert iter_batches([1, 2, 3], 2) == [[1, 2], [3]]

    def test_empty(self) -> None:
        assert iter_batches([], 10) == []

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError):
            iter_batches([1], 0)


class TestTransfer:
    """transfer() row handling."""

    async def test_all_rows_written(self, fast_retry: RetryPolicy) -> None:
        upsert = AsyncMock(return_value=True)
        on_success = MagicMock()

        exported = await transfer(
            ["a", "b", "c"], upsert, batch_size=2, retry=fast_retry, on_success=on_success
        )

        assert exported == 3
        assert [c.args[0] for c in upsert.await_args_list] == ["a", "b", "c"]
        assert on_success.call_count == 3
        on_success.assert_any_call("a", True)

    async def test_transient_failure_retried(self, fast_retry: RetryPolicy) -> None:
        upsert = AsyncMock(side_effect=[asyncpg.PostgresError("deadlock"), False])

        exported = await transfer(["a"], upsert, retry=fast_retry)

        assert exported == 1
        assert upsert.await_count == 2

    async def test_exhausted_row_dropped_and_walk_continues(self, fast_retry: RetryPolicy) -> None:
        async def upsert(record: str) -> bool:
            if record == "bad":
                raise asyncpg.PostgresError("invalid input")
            return True

        on_failure = MagicMock()
        exported = await transfer(["a", "bad", "c"], upsert, retry=fast_retry, on_failure=on_failure)

        assert exported == 2
        on_failure.assert_called_once()
        assert on_failure.call_args.args[0] == "bad"
        assert isinstance(on_failure.call_args.args[1], asyncpg.PostgresError)

    async def test_failed_row_attempted_max_attempts_times(self) -> None:
        upsert = AsyncMock(side_effect=ValueError("bad"))

        exported = await transfer(["a"], upsert, retry=RetryPolicy(max_attempts=3, delay=0.0))

        assert exported == 0
        assert upsert.await_count == 3

    @pytest.mark.parametrize(
        "error",
        [
            ConnectionPoolError("pool closed"),
            asyncpg.ConnectionDoesNotExistError("connection lost"),
            OSError("reset by peer"),
        ],
    )
    async def test_connection_errors_propagate(
        self, fast_retry: RetryPolicy, error: Exception
    ) -> None:
        upsert = AsyncMock(side_effect=[True, error, True])
        on_failure = MagicMock()

        with pytest.raises(type(error)):
            await transfer(["a", "b", "c"], upsert, retry=fast_retry, on_failure=on_failure)

        assert upsert.await_count == 2
        on_failure.assert_not_called()

    async def test_batch_progress_logged(self, fast_retry: RetryPolicy) -> None:
        logger = MagicMock()
        await transfer(
            [1, 2, 3],
            AsyncMock(return_value=True),
            batch_size=2,
            retry=fast_retry,
            table="sales",
            logger=logger,
        )

        events = [c for c in logger.debug.call_args_list if c.args[0] == "batch_completed"]
        assert len(events) == 2
        assert events[-1].kwargs == {"table": "sales", "batch": 2, "size": 1, "exported": 3}
