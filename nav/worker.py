"""Background planning so searches never block a control loop."""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Iterable, Optional, Tuple

from nav.errors import SearchCancelled
from nav.pathfinder import Path, find_path
from nav.tour import Tour, shortest_tour

log = logging.getLogger(__name__)

Coord = Tuple[int, int, int]


class CancelToken:
    """Cooperative cancellation flag with an optional deadline.

    Searches call ``check()`` between expansions (A*) or passes (2-opt).
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline = None if timeout is None else time.monotonic() + float(timeout)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def check(self) -> None:
        if self.cancelled:
            raise SearchCancelled("search cancelled")


class PlannerWorker:
    """Runs path and tour searches on a dedicated thread pool.

    Each submission gets its own ``CancelToken`` (returned alongside the
    future) unless the caller passes one in.
    """

    def __init__(self, max_workers: int = 1) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="planner")

    def submit_path(
        self,
        store,
        goal: Coord,
        start: Coord,
        start_facing=None,
        *,
        cancel: Optional[CancelToken] = None,
        timeout: Optional[float] = None,
        **search_kwargs: Any,
    ) -> Tuple["Future[Path]", CancelToken]:
        token = cancel or CancelToken(timeout)
        future = self._executor.submit(
            find_path, store, goal, start, start_facing, cancel=token, **search_kwargs
        )
        log.debug("queued path search %s -> %s", start, goal)
        return future, token

    def submit_tour(
        self,
        nodes: Iterable[Coord],
        start: Optional[Coord] = None,
        end: Optional[Coord] = None,
        distance=None,
        *,
        cancel: Optional[CancelToken] = None,
        timeout: Optional[float] = None,
    ) -> Tuple["Future[Tour]", CancelToken]:
        token = cancel or CancelToken(timeout)
        future = self._executor.submit(shortest_tour, list(nodes), start, end, distance, cancel=token)
        log.debug("queued tour over %s", "anchored nodes" if start is not None and end is not None else "loop")
        return future, token

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "PlannerWorker":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
