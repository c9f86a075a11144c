"""Step cost model and A* heuristics."""
from __future__ import annotations

import math
from typing import Callable, Optional, Tuple

from engine import config
from nav.orientation import Facing, calc_orientation, is_opposite
from world.block_types import BlockClass, BlockClassifier, RegistryClassifier

Coord = Tuple[int, int, int]
CostFn = Callable[[Coord, Coord, Optional[Facing]], float]
HeuristicFn = Callable[[Coord, Coord], float]


class TimeCost:
    """
    Time-based cost of stepping between two adjacent blocks.

    One ``move`` per step, plus ``turn`` for a quarter turn or
    ``turn_around`` for a reversal before the step, plus ``dig`` when the
    destination holds anything but air.
    """

    def __init__(
        self,
        store,
        classifier: Optional[BlockClassifier] = None,
        *,
        move: Optional[float] = None,
        turn: Optional[float] = None,
        turn_around: Optional[float] = None,
        dig: Optional[float] = None,
        ignore_walking: bool = False,
        ignore_turning: bool = False,
        ignore_breaking: bool = False,
    ) -> None:
        self.store = store
        self.classifier = classifier or RegistryClassifier()
        self.move = float(config.get("nav.costs.move", 1.0) if move is None else move)
        self.turn = float(config.get("nav.costs.turn", 1.0) if turn is None else turn)
        self.turn_around = float(config.get("nav.costs.turn_around", 2.0) if turn_around is None else turn_around)
        self.dig = float(config.get("nav.costs.dig", 1.555) if dig is None else dig)
        if min(self.move, self.turn, self.turn_around, self.dig) < 0:
            raise ValueError("cost weights must be non-negative")
        self.ignore_walking = ignore_walking
        self.ignore_turning = ignore_turning
        self.ignore_breaking = ignore_breaking

    def turn_cost(self, from_facing: Optional[Facing], after: Optional[Facing]) -> float:
        if from_facing is None or after is None or from_facing == after:
            return 0.0
        if is_opposite(from_facing, after):
            return self.turn_around
        return self.turn

    def is_obstructed(self, node: Coord) -> bool:
        return self.classifier.classify(self.store.peek(node)) is not BlockClass.AIR

    def __call__(self, from_node: Coord, to_node: Coord, from_facing: Optional[Facing]) -> float:
        after = calc_orientation(from_node, to_node, from_facing)
        total = 0.0
        if not self.ignore_walking:
            total += self.move
        if not self.ignore_turning:
            total += self.turn_cost(from_facing, after)
        if not self.ignore_breaking and self.is_obstructed(to_node):
            total += self.dig
        return total


def heuristic_manhattan(from_node: Coord, to_node: Coord) -> float:
    # Reaching a goal that is off both horizontal axes takes at least one turn.
    dx = from_node[0] - to_node[0]
    dy = from_node[1] - to_node[1]
    dz = from_node[2] - to_node[2]
    return abs(dx) + abs(dy) + abs(dz) + (1 if dx != 0 and dz != 0 else 0)


def heuristic_euclidean(from_node: Coord, to_node: Coord) -> float:
    return math.sqrt(
        (to_node[0] - from_node[0]) ** 2
        + (to_node[1] - from_node[1]) ** 2
        + (to_node[2] - from_node[2]) ** 2
    )


def heuristic_zero(from_node: Coord, to_node: Coord) -> float:
    return 0.0
