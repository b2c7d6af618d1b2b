"""Bounded-batch concurrency for per-item store mutations."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator, Sequence
from typing import TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size < 1:
        msg = f"batch size must be >= 1, got {size}"
        raise ValueError(msg)
    for start in range(0, len(items), size):
        yield items[start : start + size]


async def run_in_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    batch_size: int,
    operation: str,
) -> tuple[list[tuple[T, R]], list[T]]:
    """Run ``worker`` over ``items``, concurrently within each batch.

    Batches run one after another. A failing item is logged and reported
    back without affecting the rest of its batch.

    Args:
        items: Items to process.
        worker: Coroutine function applied to each item.
        batch_size: Maximum number of concurrent calls.
        operation: Name used in log events.

    Returns:
        ``(succeeded, failed)`` where ``succeeded`` pairs each item with its
        result.
    """
    succeeded: list[tuple[T, R]] = []
    failed: list[T] = []

    for batch in chunked(items, batch_size):
        results = await asyncio.gather(*(worker(item) for item in batch), return_exceptions=True)
        for item, result in zip(batch, results, strict=True):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception):
                failed.append(item)
                logger.warning(
                    "Batch item failed",
                    operation=operation,
                    error=str(result),
                    exc_info=result,
                )
            else:
                succeeded.append((item, result))

    return succeeded, failed
