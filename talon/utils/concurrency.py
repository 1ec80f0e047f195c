"""Concurrency primitives for rate-limited upstream calls.

**paced_gather** runs work in fixed-size groups: every call inside a group is
submitted concurrently, and the runner sleeps for a fixed pause before
starting the next group.  At most ``group_size`` calls are ever in flight,
which keeps batch embedding during ingestion under the upstream rate limit.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from talon.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def paced_gather(
    factories: list[Callable[[], Awaitable[_T]]],
    group_size: int,
    pause_seconds: float,
) -> list[_T | Exception]:
    """Run coroutine factories in paced, concurrently-executed groups.

    Each factory is invoked only when its group starts, so no coroutine is
    created before there is capacity for it.  A failing call does not
    cancel its siblings: its exception is returned in its result slot.

    Parameters
    ----------
    factories:
        Zero-argument callables returning an awaitable.
    group_size:
        Number of calls submitted concurrently per group (minimum 1).
    pause_seconds:
        Sleep between consecutive groups.  No pause after the last group.

    Returns
    -------
    list[_T | Exception]
        Results in the same order as *factories*.

    Raises
    ------
    BaseException
        Non-``Exception`` failures (e.g. cancellation) are re-raised.
    """
    size = max(1, group_size)
    results: list[_T | Exception] = []

    for group_start in range(0, len(factories), size):
        if group_start > 0 and pause_seconds > 0:
            await asyncio.sleep(pause_seconds)

        group = factories[group_start : group_start + size]
        outcomes = await asyncio.gather(*(f() for f in group), return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
            results.append(outcome)

        _logger.debug(
            "paced_group_complete",
            group_index=group_start // size,
            group_size=len(group),
            failures=sum(1 for o in outcomes if isinstance(o, Exception)),
        )

    return results
