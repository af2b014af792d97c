"""Bounded-concurrency fan-out for coroutine functions."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 10

T = TypeVar("T")
R = TypeVar("R")


async def run_with_concurrency(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[R]:
    """Apply ``fn`` to every item with at most ``concurrency`` calls in flight.

    Calls start in input order; whenever one finishes the next item is
    started. ``results[i]`` always corresponds to ``items[i]`` regardless of
    completion order.

    The first exception raised by ``fn`` propagates immediately. Calls still
    in flight at that point are cancelled and awaited before the exception
    leaves this function, so no orphaned task outlives the batch.

    Args:
        items: Inputs, in the order results are wanted
        fn: Coroutine function applied to each input
        concurrency: Maximum number of simultaneous calls

    Returns:
        Results in input order

    Raises:
        ValueError: If ``concurrency`` is less than 1
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")

    results: list[R | None] = [None] * len(items)
    in_flight: dict[asyncio.Task[R], int] = {}
    next_index = 0

    def launch(index: int) -> None:
        task = asyncio.ensure_future(fn(items[index]))
        in_flight[task] = index

    try:
        while next_index < len(items) and len(in_flight) < concurrency:
            launch(next_index)
            next_index += 1

        while in_flight:
            done, _ = await asyncio.wait(
                in_flight.keys(), return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                index = in_flight.pop(task)
                results[index] = task.result()

                if next_index < len(items):
                    launch(next_index)
                    next_index += 1
    finally:
        if in_flight:
            logger.debug(f"Cancelling {len(in_flight)} in-flight operations")
            for task in in_flight:
                task.cancel()
            await asyncio.gather(*in_flight, return_exceptions=True)

    return results  # type: ignore[return-value]
