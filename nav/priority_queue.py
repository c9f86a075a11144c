"""Min-priority queue backing the A* open set."""
from __future__ import annotations

import heapq
from typing import Any, Generic, List, Tuple, TypeVar

T = TypeVar("T")


class PriorityQueue(Generic[T]):
    """
    Binary-heap priority queue without decrease-key.

    ``put`` always adds a new entry, so an item pushed twice is popped twice.
    Equal priorities pop in insertion order.
    """

    __slots__ = ("_heap", "_counter")

    def __init__(self) -> None:
        self._heap: List[Tuple[float, int, Any]] = []
        self._counter = 0

    def put(self, item: T, priority: float) -> None:
        heapq.heappush(self._heap, (priority, self._counter, item))
        self._counter += 1

    def pop(self) -> T:
        if not self._heap:
            raise IndexError("pop from an empty priority queue")
        return heapq.heappop(self._heap)[2]

    def empty(self) -> bool:
        return not self._heap

    def __len__(self) -> int:
        return len(self._heap)
