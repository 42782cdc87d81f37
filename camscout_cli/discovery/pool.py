"""Bounded, order-preserving fan-out over a thread pool."""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def run_bounded(
    items: Sequence[T],
    limit: int,
    worker: Callable[[T], R],
) -> list[R]:
    """
    Apply ``worker`` to every item with at most ``limit`` calls in flight.

    Results come back in input order, not completion order. Each call gets
    its own pool, so nesting (hosts -> ports) bounds every layer separately.
    Exceptions raised by ``worker`` propagate to the caller.
    """
    if not items:
        return []
    workers = max(1, min(limit, len(items)))
    if workers == 1:
        return [worker(item) for item in items]
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(worker, items))
