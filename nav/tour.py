"""Visiting-order optimisation: nearest-neighbour construction plus 2-opt."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple

from nav.costs import heuristic_euclidean
from nav.pathfinder import find_path

log = logging.getLogger(__name__)

Coord = Tuple[int, int, int]
DistanceFn = Callable[[Coord, Coord], float]

_EPS = 1e-9


class Tour(NamedTuple):
    nodes: List[Coord]
    cost: float


def _unique(nodes: Iterable[Coord]) -> List[Coord]:
    seen = set()
    out = []
    for node in nodes:
        node = tuple(node)
        if node not in seen:
            seen.add(node)
            out.append(node)
    return out


def _is_loop(start: Optional[Coord], end: Optional[Coord]) -> bool:
    return start is None or end is None


def _anchored(nodes: Iterable[Coord], start: Coord, end: Coord) -> List[Coord]:
    """Put ``start`` first and ``end`` last, dropping other copies of either."""
    start, end = tuple(start), tuple(end)
    inner = [node for node in _unique(nodes) if node != start and node != end]
    return [start] + inner + [end]


def tour_cost(tour: List[Coord], closed: bool, distance: Optional[DistanceFn] = None) -> float:
    distance = distance or heuristic_euclidean
    total = 0.0
    for a, b in zip(tour, tour[1:]):
        total += distance(a, b)
    if closed and len(tour) > 1:
        total += distance(tour[-1], tour[0])
    return total


def _nearest(current: Coord, candidates: List[Coord], distance: DistanceFn) -> int:
    best_index = 0
    best_dist = distance(current, candidates[0])
    for i in range(1, len(candidates)):
        dist = distance(current, candidates[i])
        if dist < best_dist:
            best_index, best_dist = i, dist
    return best_index


def greedy_tour(
    nodes: Iterable[Coord],
    start: Optional[Coord] = None,
    end: Optional[Coord] = None,
    distance: Optional[DistanceFn] = None,
) -> Tour:
    """
    Nearest-neighbour tour.

    Closed tours begin at ``start`` when given (else the first node) and are
    charged the wrap-around edge. Open tours run from ``start`` to ``end``;
    the end anchor is held out of the nearest-neighbour scan and appended
    last, so it never pulls the walk towards itself early.
    """
    distance = distance or heuristic_euclidean
    closed = _is_loop(start, end)

    if closed:
        remaining = _unique(nodes)
        if start is not None:
            start = tuple(start)
            if start in remaining:
                remaining.remove(start)
            remaining.insert(0, start)
        if not remaining:
            return Tour([], 0.0)
        tour = [remaining.pop(0)]
    else:
        anchored = _anchored(nodes, start, end)
        tour = [anchored[0]]
        remaining = anchored[1:-1]

    while remaining:
        nxt = remaining.pop(_nearest(tour[-1], remaining, distance))
        tour.append(nxt)

    if not closed:
        tour.append(tuple(end))
    return Tour(tour, tour_cost(tour, closed, distance))


def two_opt(
    tour: Iterable[Coord],
    start: Optional[Coord] = None,
    end: Optional[Coord] = None,
    distance: Optional[DistanceFn] = None,
    *,
    cancel=None,
) -> Tour:
    """
    First-improvement 2-opt.

    Scans segment pairs ``(i, k)``, reverses the first segment whose
    reversal shortens the tour and restarts the scan; stops after a full
    scan without improvement. Open tours keep ``start`` first and ``end``
    last. ``distance`` must be symmetric.
    """
    distance = distance or heuristic_euclidean
    closed = _is_loop(start, end)
    best = _unique(tour) if closed else _anchored(tour, start, end)
    n = len(best)
    # The first node never moves; open tours also pin the last one.
    last = n - 1 if closed else n - 2

    passes = 0
    improved = True
    while improved:
        improved = False
        passes += 1
        if cancel is not None:
            cancel.check()
        for i in range(1, last):
            for k in range(i + 1, last + 1):
                a, b = best[i - 1], best[i]
                c, e = best[k], best[(k + 1) % n]
                delta = distance(a, c) + distance(b, e) - distance(a, b) - distance(c, e)
                if delta < -_EPS:
                    best[i:k + 1] = best[i:k + 1][::-1]
                    improved = True
                    break
            if improved:
                break

    total = tour_cost(best, closed, distance)
    log.debug("2-opt finished after %d passes, %d nodes, cost %.3f", passes, n, total)
    return Tour(best, total)


def shortest_tour(
    nodes: Iterable[Coord],
    start: Optional[Coord] = None,
    end: Optional[Coord] = None,
    distance: Optional[DistanceFn] = None,
    *,
    cancel=None,
) -> Tour:
    """Greedy construction refined by 2-opt; closed unless both anchors are given."""
    initial = greedy_tour(nodes, start, end, distance)
    return two_opt(initial.nodes, start, end, distance, cancel=cancel)


def path_distance(store, facing=None, **search_kwargs) -> DistanceFn:
    """Distance function backed by A* costs through ``store``, cached per node pair."""
    cache: Dict[Tuple[Coord, Coord], float] = {}

    def distance(a: Coord, b: Coord) -> float:
        a, b = tuple(a), tuple(b)
        if a == b:
            return 0.0
        key = (a, b) if a <= b else (b, a)
        if key not in cache:
            cache[key] = find_path(store, key[1], key[0], facing, **search_kwargs).cost
        return cache[key]

    return distance
