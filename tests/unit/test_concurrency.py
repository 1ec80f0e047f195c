"""Unit tests for paced_gather."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from talon.utils.concurrency import paced_gather


def _returning(value, log: list | None = None):
    async def _call():
        if log is not None:
            log.append(value)
        return value

    return _call


def _raising(exc: BaseException):
    async def _call():
        raise exc

    return _call


class TestPacedGather:
    @pytest.mark.asyncio
    async def test_results_keep_input_order(self) -> None:
        results = await paced_gather([_returning(i) for i in range(7)], group_size=3, pause_seconds=0)
        assert results == list(range(7))

    @pytest.mark.asyncio
    async def test_failures_fill_their_slot_without_cancelling_siblings(self) -> None:
        error = ValueError("slot 1")
        results = await paced_gather(
            [_returning("a"), _raising(error), _returning("c")],
            group_size=3,
            pause_seconds=0,
        )
        assert results[0] == "a"
        assert results[1] is error
        assert results[2] == "c"

    @pytest.mark.asyncio
    async def test_pauses_between_groups_only(self) -> None:
        sleep = AsyncMock()
        with patch("talon.utils.concurrency.asyncio.sleep", sleep):
            await paced_gather([_returning(i) for i in range(5)], group_size=2, pause_seconds=1.5)

        # Three groups -> two pauses, none after the last group.
        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.5)

    @pytest.mark.asyncio
    async def test_zero_pause_never_sleeps(self) -> None:
        sleep = AsyncMock()
        with patch("talon.utils.concurrency.asyncio.sleep", sleep):
            await paced_gather([_returning(i) for i in range(4)], group_size=1, pause_seconds=0)
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_factories_invoked_only_when_group_starts(self) -> None:
        started: list[int] = []
        sleep_calls: list[list[int]] = []

        async def _record_sleep(_seconds: float) -> None:
            sleep_calls.append(list(started))

        with patch("talon.utils.concurrency.asyncio.sleep", _record_sleep):
            await paced_gather(
                [_returning(i, started) for i in range(4)],
                group_size=2,
                pause_seconds=0.1,
            )

        assert sleep_calls == [[0, 1]]
        assert started == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_group_size_below_one_is_treated_as_one(self) -> None:
        results = await paced_gather([_returning(i) for i in range(3)], group_size=0, pause_seconds=0)
        assert results == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_cancellation_is_re_raised(self) -> None:
        with pytest.raises(asyncio.CancelledError):
            await paced_gather([_raising(asyncio.CancelledError())], group_size=1, pause_seconds=0)

    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        assert await paced_gather([], group_size=4, pause_seconds=1.0) == []
