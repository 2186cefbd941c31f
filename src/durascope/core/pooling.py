# src/durascope/core/pooling.py
"""Bounded-concurrency fan-out for per-item storage calls.

Used wherever one listing fans out into N follow-up reads (history per
failed instance, depth per queue, probes per task hub). Keeps at most
``pool_size`` calls in flight and returns results in submission order,
so output is identical regardless of completion order.

Cancellation: if the calling task is cancelled, every in-flight call is
cancelled with it and ``asyncio.CancelledError`` propagates. If one call
raises, the remaining calls are cancelled and the first error propagates
unwrapped (no ExceptionGroup), so callers can catch it by type.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def gather_cancelling(*aws: Awaitable[Any]) -> list[Any]:
    """Await all in parallel; on the first failure cancel the rest.

    Returns:
        Results in argument order
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def gather_ordered(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    *,
    pool_size: int,
) -> list[R]:
    """Apply ``fn`` to every item with at most ``pool_size`` calls in flight.

    Args:
        items: Inputs, in the order results should be returned
        fn: Coroutine function called once per item
        pool_size: Maximum concurrent calls (must be >= 1)

    Returns:
        Results indexed like ``items``
    """
    if pool_size < 1:
        raise ValueError(f"pool_size must be >= 1, got {pool_size}")

    semaphore = asyncio.Semaphore(pool_size)

    async def _run(item: T) -> R:
        async with semaphore:
            return await fn(item)

    return await gather_cancelling(*(_run(item) for item in items))
