"""Run a batch of async calls with a fixed number of workers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence, TypeVar

T = TypeVar("T")


@dataclass
class TaskError:
    """Marker stored in place of a result when the work for an item failed."""

    error: str
    exception: BaseException | None = None


async def run_bounded(
    items: Sequence[T],
    work: Callable[[T, int], Awaitable[Any]],
    concurrency: int = 3,
) -> list[Any]:
    """Apply ``work`` to every item with at most ``concurrency`` in flight.

    Results are returned in input order; a failing item yields a
    :class:`TaskError` without aborting the rest of the batch.
    """

    results: list[Any] = [None] * len(items)
    next_index = 0

    async def worker() -> None:
        nonlocal next_index
        while next_index < len(items):
            index = next_index
            next_index += 1
            try:
                results[index] = await work(items[index], index)
            except Exception as exc:
                results[index] = TaskError(error=str(exc) or type(exc).__name__, exception=exc)

    await asyncio.gather(*(worker() for _ in range(max(1, concurrency))))
    return results


__all__ = ["TaskError", "run_bounded"]
