"""Bounded fan-out helpers shared by the embedding and extraction clients.

Every outbound client owns its *own* :class:`asyncio.Semaphore` (one per
client instance, never module-global) and hands it to
:func:`throttled_gather`, which wraps each awaitable in an acquire/release
so at most ``limit`` calls are in flight no matter how many are scheduled.

:func:`gather_in_batches` is the storage-side counterpart: it runs a fixed
number of writes concurrently, waits for them, then moves to the next
batch, so in-flight store writes never exceed ``batch_size``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

_T = TypeVar("_T")
_R = TypeVar("_R")


async def throttled_gather(
    coros: Sequence[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = False,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, holding *semaphore* around each one.

    Parameters
    ----------
    coros:
        Awaitable objects to execute.
    semaphore:
        The caller's rate limiter.  All awaitables share it.
    return_exceptions:
        Mirrors ``asyncio.gather``.  Defaults to ``False`` so the first
        failure propagates (all-or-nothing callers rely on this).

    Returns
    -------
    list
        Results in the same order as *coros*.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [asyncio.ensure_future(_wrapped(c)) for c in coros]
    try:
        return await asyncio.gather(*tasks, return_exceptions=return_exceptions)
    except BaseException:
        # A failed batch must not leave siblings running against the provider.
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def gather_in_batches(
    items: Sequence[_T],
    worker: Callable[[_T], Awaitable[_R]],
    batch_size: int,
) -> list[_R]:
    """Apply *worker* to *items*: parallel within a batch, batches sequential.

    The first exception in a batch propagates after that batch settles;
    items in earlier batches have already completed.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    results: list[_R] = []
    for start in range(0, len(items), batch_size):
        batch = items[start : start + batch_size]
        outcomes = await asyncio.gather(
            *(worker(item) for item in batch), return_exceptions=True
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        results.extend(outcomes)  # type: ignore[arg-type]
    return results
