"""A* search over the 6-connected block lattice of a chunk store."""
from __future__ import annotations

import logging
from typing import Dict, List, NamedTuple, Optional, Tuple

from engine import config
from nav.costs import CostFn, HeuristicFn, TimeCost, heuristic_manhattan
from nav.errors import GoalUnreachable, SearchCancelled
from nav.orientation import Facing, calc_orientation
from nav.priority_queue import PriorityQueue
from world.block_types import BlockClass, BlockClassifier, RegistryClassifier

log = logging.getLogger(__name__)

Coord = Tuple[int, int, int]
Bounds = Tuple[Coord, Coord]

OFFSETS: Tuple[Coord, ...] = (
    (1, 0, 0),
    (-1, 0, 0),
    (0, 1, 0),
    (0, -1, 0),
    (0, 0, 1),
    (0, 0, -1),
)

DEFAULT_MAX_EXPANSIONS = 200000


class Path(NamedTuple):
    """Nodes from the goal back to the first step (start excluded) and their cost."""

    nodes: List[Coord]
    cost: float

    def forward(self) -> List[Coord]:
        return list(reversed(self.nodes))


def _in_bounds(node: Coord, bounds: Optional[Bounds]) -> bool:
    if bounds is None:
        return True
    lo, hi = bounds
    return lo[0] <= node[0] <= hi[0] and lo[1] <= node[1] <= hi[1] and lo[2] <= node[2] <= hi[2]


class _Lattice:
    """Neighbour rules: world height band, bedrock floor and optional box."""

    def __init__(self, store, classifier: BlockClassifier, bounds: Optional[Bounds]) -> None:
        self.store = store
        self.classifier = classifier
        self.bounds = bounds
        self.min_y = int(config.get("nav.min_y", 1))
        self.max_y = int(config.get("nav.max_y", 255))
        self.floor_check_below = int(config.get("nav.floor_check_below", 5))

    def passable(self, node: Coord) -> bool:
        y = node[1]
        if y < self.min_y or y > self.max_y:
            return False
        if not _in_bounds(node, self.bounds):
            return False
        # Bedrock only generates near the floor; skip the store lookup elsewhere.
        if y < self.floor_check_below:
            return self.classifier.classify(self.store.peek(node)) is not BlockClass.BEDROCK
        return True

    def neighbours(self, node: Coord) -> List[Coord]:
        x, y, z = node
        out = []
        for dx, dy, dz in OFFSETS:
            nxt = (x + dx, y + dy, z + dz)
            if self.passable(nxt):
                out.append(nxt)
        return out


def neighbours(store, node: Coord, classifier: Optional[BlockClassifier] = None,
               bounds: Optional[Bounds] = None) -> List[Coord]:
    """Face-adjacent nodes an agent may enter from ``node``."""
    return _Lattice(store, classifier or RegistryClassifier(), bounds).neighbours(tuple(node))


def find_path(
    store,
    goal: Coord,
    start: Coord,
    start_facing: Optional[Facing],
    cost: Optional[CostFn] = None,
    heuristic: Optional[HeuristicFn] = None,
    *,
    classifier: Optional[BlockClassifier] = None,
    bounds: Optional[Bounds] = None,
    cancel=None,
    max_expansions: Optional[int] = None,
) -> Path:
    """
    Cheapest path from ``start`` to ``goal`` through ``store``.

    The returned nodes run goal first and exclude ``start``; reverse them
    (or call ``Path.forward``) for travel order. Raises ``GoalUnreachable``
    when the goal can never be entered or the open set runs dry, and
    ``SearchCancelled`` when ``cancel`` fires or ``max_expansions`` nodes
    were expanded without reaching the goal.
    """
    goal = tuple(goal)
    start = tuple(start)
    classifier = classifier or RegistryClassifier()
    cost = cost or TimeCost(store, classifier)
    heuristic = heuristic or heuristic_manhattan
    if max_expansions is None:
        max_expansions = config.get("nav.max_expansions", DEFAULT_MAX_EXPANSIONS)
    lattice = _Lattice(store, classifier, bounds)

    if start == goal:
        return Path([], 0.0)
    if not lattice.passable(goal):
        raise GoalUnreachable(goal, start)

    open_set: PriorityQueue[Tuple[Coord, float]] = PriorityQueue()
    open_set.put((start, 0.0), heuristic(start, goal))
    came_from: Dict[Coord, Optional[Coord]] = {start: None}
    cost_so_far: Dict[Coord, float] = {start: 0.0}
    facing: Dict[Coord, Optional[Facing]] = {start: start_facing}

    expanded = 0
    while not open_set.empty():
        current, current_cost = open_set.pop()
        if current_cost > cost_so_far[current]:
            continue  # stale
        if current == goal:
            break
        if cancel is not None:
            cancel.check()
        expanded += 1
        if max_expansions is not None and expanded > max_expansions:
            raise SearchCancelled(f"expansion budget of {max_expansions} exhausted searching {start} -> {goal}")

        current_facing = facing[current]
        for nxt in lattice.neighbours(current):
            new_cost = current_cost + cost(current, nxt, current_facing)
            if nxt not in cost_so_far or new_cost < cost_so_far[nxt]:
                cost_so_far[nxt] = new_cost
                came_from[nxt] = current
                facing[nxt] = calc_orientation(current, nxt, current_facing)
                open_set.put((nxt, new_cost), new_cost + heuristic(nxt, goal))
    else:
        log.debug("open set exhausted after %d expansions, %s -> %s", expanded, start, goal)
        raise GoalUnreachable(goal, start, expanded)

    nodes: List[Coord] = []
    node = goal
    while node != start:
        nodes.append(node)
        node = came_from[node]
    total = cost_so_far[goal]
    log.debug("path %s -> %s: %d steps, cost %.3f, %d expansions", start, goal, len(nodes), total, expanded)
    return Path(nodes, total)


def path_cost(
    path: List[Coord],
    start: Coord,
    start_facing: Optional[Facing],
    cost: CostFn,
    skip_goal: bool = False,
) -> float:
    """
    Recompute the cost of walking ``path`` (goal first, as returned by
    ``find_path``) from ``start``. With ``skip_goal`` the agent stops next to
    the goal and only pays for turning towards it.
    """
    steps = list(reversed(path))
    total = 0.0
    node, node_facing = tuple(start), start_facing
    for i, nxt in enumerate(steps):
        if skip_goal and i == len(steps) - 1:
            turn_cost = getattr(cost, "turn_cost", None)
            if turn_cost is not None:
                total += turn_cost(node_facing, calc_orientation(node, nxt, node_facing))
            break
        total += cost(node, nxt, node_facing)
        node_facing = calc_orientation(node, nxt, node_facing)
        node = nxt
    return total


def heuristic_astar(store, **search_kwargs) -> HeuristicFn:
    """Heuristic whose estimate is a full A* search cost; exact but expensive."""

    def estimate(from_node: Coord, to_node: Coord) -> float:
        return find_path(store, to_node, from_node, None, **search_kwargs).cost

    return estimate
