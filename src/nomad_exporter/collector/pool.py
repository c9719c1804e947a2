"""
Bounded fan-out for per-entity fetches.

    with BoundedExecutor(limit=10, name="node-detail") as pool:
        for node in nodes:
            pool.submit(fetch_detail, node)
    # every submitted item has finished here

At most `limit` items run at once; the rest queue. The pool only
exists for the duration of the with block. An item that raises is
logged and counted, and never affects its siblings.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, List

log = logging.getLogger(__name__)


class BoundedExecutor:

    def __init__(self, limit: int, name: str = "fanout"):
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        self.limit = limit
        self.name = name
        self.failures = 0
        self._executor = ThreadPoolExecutor(max_workers=limit, thread_name_prefix=name)
        self._futures: List[Future] = []

    def submit(self, fn: Callable[..., None], *args) -> Future:
        future = self._executor.submit(fn, *args)
        self._futures.append(future)
        return future

    def join(self) -> int:
        """Wait for everything submitted so far. Returns how many items raised."""
        wait(self._futures)
        for future in self._futures:
            exc = future.exception()
            if exc is not None:
                self.failures += 1
                log.error("%s work item failed", self.name, exc_info=exc)
        self._futures = []
        return self.failures

    def __enter__(self) -> "BoundedExecutor":
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            self.join()
        finally:
            self._executor.shutdown(wait=True)
        return False
