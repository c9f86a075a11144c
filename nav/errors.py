"""Failures raised by pathfinding, tours and path execution."""
from __future__ import annotations

from typing import Optional, Tuple

Coord = Tuple[int, int, int]


class NavigationError(Exception):
    """Base class for navigation failures."""


class AdjacencyError(NavigationError, ValueError):
    def __init__(self, from_node: Coord, to_node: Coord) -> None:
        super().__init__(f"Supplied blocks are not adjacent: {from_node} and {to_node}")
        self.from_node = from_node
        self.to_node = to_node


class GoalUnreachable(NavigationError):
    def __init__(self, goal: Coord, start: Coord, expanded: int = 0) -> None:
        super().__init__(f"goal {goal} unreachable from {start} after {expanded} expansions")
        self.goal = goal
        self.start = start
        self.expanded = expanded


class SearchCancelled(NavigationError):
    """Search stopped by a cancel token, a timeout or an expansion budget."""


class MoveFailed(NavigationError):
    def __init__(self, node: Coord, facing: Optional[object] = None) -> None:
        super().__init__(f"actuator refused to move into {node} (facing {facing})")
        self.node = node
        self.facing = facing
