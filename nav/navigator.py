"""Drive an actuator along planned paths while keeping the world model current."""
from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Tuple

from nav.costs import heuristic_manhattan
from nav.errors import MoveFailed
from nav.orientation import Facing, Turn, calc_orientation, relative_orientation
from nav.pathfinder import Path, find_path
from world.block_types import BlockClass, BlockClassifier, RegistryClassifier

log = logging.getLogger(__name__)

Coord = Tuple[int, int, int]


class Actuator(Protocol):
    """Robot body. Retries and timing live behind this interface."""

    def attempt_move(self, facing: Facing) -> bool:
        ...

    def clear_obstruction(self, facing: Facing) -> None:
        ...

    def turn(self, turn: Turn) -> None:
        ...

    def current_position(self) -> Coord:
        ...

    def current_orientation(self) -> Facing:
        ...


class Navigator:
    """Executes paths from ``find_path`` against an ``Actuator``."""

    def __init__(self, store, actuator: Actuator, classifier: Optional[BlockClassifier] = None) -> None:
        self.store = store
        self.actuator = actuator
        self.classifier = classifier or RegistryClassifier()

    def smart_turn(self, facing: Facing) -> Facing:
        """Turn towards a horizontal ``facing`` with at most one turn command."""
        current = self.actuator.current_orientation()
        if current != facing and not Facing(facing).is_vertical:
            turn = relative_orientation(None, None, current, facing)
            if turn in (Turn.LEFT, Turn.RIGHT, Turn.BACK):
                self.actuator.turn(turn)
        return self.actuator.current_orientation()

    def face_block(self, node: Coord) -> Facing:
        """Face the adjacent ``node``; vertical neighbours need no turn."""
        position = self.actuator.current_position()
        current = self.actuator.current_orientation()
        target = calc_orientation(position, node, current, respect_vertical=True)
        if target.is_vertical:
            return target
        self.smart_turn(target)
        return target

    def _occupied(self, node: Coord) -> bool:
        return self.classifier.classify(self.store.peek(node)) is not BlockClass.AIR

    def navigate_path(self, path: List[Coord], skip_goal: bool = False) -> None:
        """
        Walk ``path`` (goal first, as returned by ``find_path``).

        Each step clears an obstruction the world model knows about, then
        makes a single move attempt; a refused move raises ``MoveFailed``.
        With ``skip_goal`` the walk stops next to the goal, facing it.
        """
        steps = list(reversed(path))
        if skip_goal and steps:
            goal = steps.pop()
        else:
            goal = None
        air = self.classifier.air_value()

        for node in steps:
            facing = self.face_block(node)
            if self._occupied(node):
                self.actuator.clear_obstruction(facing)
            if not self.actuator.attempt_move(facing):
                log.warning("move into %s refused", node)
                raise MoveFailed(node, facing)
            self.store.set(node, air)

        if goal is not None:
            self.face_block(goal)

    def go_to(self, goal: Coord, skip_goal: bool = False, start: Optional[Coord] = None,
              start_facing: Optional[Facing] = None, **search_kwargs) -> Path:
        start = self.actuator.current_position() if start is None else start
        start_facing = self.actuator.current_orientation() if start_facing is None else start_facing
        path = find_path(self.store, goal, start, start_facing, classifier=self.classifier, **search_kwargs)
        self.navigate_path(path.nodes, skip_goal)
        return path

    def nearest_block(self, from_node: Optional[Coord] = None, heuristic=heuristic_manhattan,
                      block_class: Optional[BlockClass] = None) -> Tuple[Optional[Coord], float]:
        """Closest known cell, optionally restricted to one block class."""
        from_node = self.actuator.current_position() if from_node is None else from_node
        predicate = None
        if block_class is not None:
            predicate = lambda value: self.classifier.classify(value) is block_class
        return self.store.nearest(from_node, heuristic, predicate)
