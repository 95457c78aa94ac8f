"""Fixed-size worker pool draining a list of zero-argument tasks."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence, TypeVar

T = TypeVar("T")


def run_with_pool(tasks: Sequence[Callable[[], T]], limit: int = 8) -> list[Optional[T]]:
    """Run ``tasks`` on at most ``limit`` workers and wait for all of them.

    Workers pull the next unclaimed index from a shared cursor, so a slow task
    never holds back its siblings. Results are stored at the task's own index.
    Tasks are expected to guard their own errors; the first unguarded exception
    is re-raised once every worker has stopped.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")
    results: list[Optional[T]] = [None] * len(tasks)
    if not tasks:
        return results

    cursor = 0
    lock = threading.Lock()

    def next_index() -> int | None:
        nonlocal cursor
        with lock:
            if cursor >= len(tasks):
                return None
            index = cursor
            cursor += 1
            return index

    def worker() -> None:
        while True:
            index = next_index()
            if index is None:
                return
            results[index] = tasks[index]()

    workers = min(limit, len(tasks))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(worker) for _ in range(workers)]
    for future in futures:
        future.result()
    return results
