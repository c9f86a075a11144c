# nav/orientation.py
"""Facings, facing deltas and turning decisions on the block lattice.

World axes follow Minecraft: X east, Y up, Z south.
"""
from __future__ import annotations

from enum import Enum, IntEnum
from typing import Dict, Optional, Tuple

from nav.errors import AdjacencyError

Coord = Tuple[int, int, int]


class Facing(IntEnum):
    # Numbering matches the OpenComputers sides API: a // 2 == b // 2
    # for opposite facings.
    DOWN = 0
    UP = 1
    NORTH = 2
    SOUTH = 3
    WEST = 4
    EAST = 5

    @property
    def is_vertical(self) -> bool:
        return self in (Facing.UP, Facing.DOWN)


class Turn(Enum):
    FRONT = "front"
    BACK = "back"
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"


FACING_DELTAS: Dict[Facing, Coord] = {
    Facing.DOWN: (0, -1, 0),
    Facing.UP: (0, 1, 0),
    Facing.NORTH: (0, 0, -1),
    Facing.SOUTH: (0, 0, 1),
    Facing.WEST: (-1, 0, 0),
    Facing.EAST: (1, 0, 0),
}

_DELTA_FACINGS: Dict[Coord, Facing] = {delta: facing for facing, delta in FACING_DELTAS.items()}

# Clockwise seen from above.
_CLOCKWISE = (Facing.NORTH, Facing.EAST, Facing.SOUTH, Facing.WEST)


# ---- Facing arithmetic ----------------------------------------------------

def facing_delta(facing: Facing) -> Coord:
    return FACING_DELTAS[Facing(facing)]


def is_opposite(first: Facing, second: Facing) -> bool:
    return first != second and int(first) // 2 == int(second) // 2


def _horizontal_index(facing: Facing) -> int:
    if Facing(facing).is_vertical:
        raise ValueError(f"{Facing(facing).name} has no horizontal rotation")
    return _CLOCKWISE.index(facing)


def turn_right(facing: Facing) -> Facing:
    return _CLOCKWISE[(_horizontal_index(facing) + 1) % 4]


def turn_left(facing: Facing) -> Facing:
    return _CLOCKWISE[(_horizontal_index(facing) - 1) % 4]


# ---- Node relations ---------------------------------------------------------

def calc_orientation(
    from_node: Coord,
    to_node: Coord,
    from_facing: Optional[Facing] = None,
    respect_vertical: bool = False,
) -> Optional[Facing]:
    """
    Facing after stepping from ``from_node`` to the adjacent ``to_node``.

    Vertical steps do not rotate the agent, so they return ``from_facing``
    unchanged unless ``respect_vertical`` asks for UP/DOWN instead.
    """
    delta = (to_node[0] - from_node[0], to_node[1] - from_node[1], to_node[2] - from_node[2])
    facing = _DELTA_FACINGS.get(delta)
    if facing is None:
        raise AdjacencyError(tuple(from_node), tuple(to_node))
    if facing.is_vertical and not respect_vertical:
        return from_facing
    return facing


def relative_orientation(
    from_node: Optional[Coord],
    to_node: Optional[Coord],
    from_facing: Facing,
    to_facing: Optional[Facing] = None,
) -> Turn:
    """
    The single turning action needed to face ``to_node`` (or ``to_facing``)
    while facing ``from_facing``. Vertical targets never need a turn and
    report UP/DOWN.
    """
    if to_facing is None:
        to_facing = calc_orientation(from_node, to_node, from_facing, respect_vertical=True)
    if to_facing == from_facing:
        return Turn.FRONT
    if to_facing == Facing.UP:
        return Turn.UP
    if to_facing == Facing.DOWN:
        return Turn.DOWN
    if is_opposite(to_facing, from_facing):
        return Turn.BACK
    if turn_right(from_facing) == to_facing:
        return Turn.RIGHT
    return Turn.LEFT


def coords_from_offset(coords: Coord, offset: Coord, facing: Facing) -> Coord:
    """
    Translate an agent-relative ``(forward, up, right)`` offset into world
    coordinates, given the agent stands at ``coords`` facing ``facing``.
    """
    forward, up, right = offset
    fx, _, fz = facing_delta(facing)
    rx, _, rz = facing_delta(turn_right(facing))
    return (
        coords[0] + fx * forward + rx * right,
        coords[1] + up,
        coords[2] + fz * forward + rz * right,
    )
