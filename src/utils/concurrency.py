"""Shared asyncio primitives for the cache orchestration layer.

Two helpers are exposed:

1. **with_timeout** -- races a single awaitable against a deadline and
   raises :class:`OperationTimeoutError` when the deadline wins.  Every
   store read and write goes through it so a hung database connection
   cannot stall the request path or the background sweep.

2. **gather_with_timeout** -- the fan-out form used for batched cache
   reads: each awaitable gets its own deadline, results come back in
   input order, and the first failure propagates.

Pacing delays are expressed through the :data:`Sleeper` callable type so
the fetch queue and the cache updater can be driven by a fake clock in
tests.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from src.utils.errors import OperationTimeoutError

_T = TypeVar("_T")

# Signature shared by asyncio.sleep and the fakes injected in tests.
Sleeper = Callable[[float], Awaitable[None]]


async def with_timeout(
    awaitable: Awaitable[_T],
    timeout: float,
    operation: str = "Database operation",
) -> _T:
    """Return the result of *awaitable*, or raise if it outlives *timeout*.

    Parameters
    ----------
    awaitable:
        The pending operation (typically a store coroutine).
    timeout:
        Deadline in seconds.
    operation:
        Human-readable label used in the timeout message.

    Raises
    ------
    OperationTimeoutError
        If the deadline settles first.  The underlying operation is
        cancelled.  Any exception raised by the operation itself
        propagates unchanged.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise OperationTimeoutError(
            message=f"{operation} timeout after {timeout:g}s"
        ) from exc


async def gather_with_timeout(
    awaitables: list[Awaitable[_T]],
    timeout: float,
    operation: str = "Database operation",
) -> list[_T]:
    """Await every item of *awaitables* concurrently, each under its own deadline.

    Results are returned in the same order as the input.  The first
    exception (including :class:`OperationTimeoutError`) propagates and
    the remaining operations are cancelled.
    """
    tasks = [
        asyncio.ensure_future(with_timeout(aw, timeout, operation))
        for aw in awaitables
    ]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        raise
