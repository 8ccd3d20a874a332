"""Fan-out helper for all-or-nothing batches."""

import asyncio
from collections.abc import Awaitable, Iterable
from typing import TypeVar

T = TypeVar("T")


async def run_all(awaitables: Iterable[Awaitable[T]]) -> list[T]:
    """Await every item concurrently, results in input order.

    The first failure cancels the remaining tasks and is re-raised as-is
    rather than wrapped in an ``ExceptionGroup``.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(_wrap(item)) for item in awaitables]
    except ExceptionGroup as failed:
        raise failed.exceptions[0] from None
    return [task.result() for task in tasks]


async def _wrap(item: Awaitable[T]) -> T:
    return await item
