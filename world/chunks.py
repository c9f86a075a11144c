"""Chunk addressing and dense per-chunk cell storage."""
from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple, Union

import numpy as np

Coord = Tuple[int, int, int]
CellValue = Union[int, float]

ABSENT = -1

# struct/numpy type tags accepted for stored cell values.
INT_TAGS = ("b", "h", "i", "q")
FLOAT_TAGS = ("f", "d")
TYPE_TAGS = INT_TAGS + FLOAT_TAGS


@dataclass(frozen=True)
class ChunkKey:
    x: int
    y: int
    z: int


def validate_chunk_size(chunk_size: Sequence[int]) -> Coord:
    if len(chunk_size) != 3:
        raise ValueError("chunk_size must be a 3-tuple")
    sx, sy, sz = (int(v) for v in chunk_size)
    if sx <= 0 or sy <= 0 or sz <= 0:
        raise ValueError("chunk dimensions must be positive")
    return sx, sy, sz


def cell_dtype(type_tag: str) -> np.dtype:
    if type_tag not in TYPE_TAGS:
        raise ValueError(f"unsupported cell type tag {type_tag!r}, expected one of {TYPE_TAGS}")
    return np.dtype(type_tag).newbyteorder("<")


def chunk_key_for(coord: Coord, chunk_size: Coord) -> ChunkKey:
    return ChunkKey(coord[0] // chunk_size[0], coord[1] // chunk_size[1], coord[2] // chunk_size[2])


def local_offset(coord: Coord, chunk_size: Coord) -> Coord:
    return coord[0] % chunk_size[0], coord[1] % chunk_size[1], coord[2] % chunk_size[2]


def absolute_from_local(key: ChunkKey, offset: Coord, chunk_size: Coord) -> Coord:
    return (
        key.x * chunk_size[0] + offset[0],
        key.y * chunk_size[1] + offset[1],
        key.z * chunk_size[2] + offset[2],
    )


class Chunk:
    """Dense cell block; absent cells hold the ``ABSENT`` sentinel."""

    __slots__ = ("key", "cells", "lock")

    def __init__(self, key: ChunkKey, chunk_size: Coord, dtype: np.dtype) -> None:
        self.key = key
        self.cells = np.full(chunk_size, ABSENT, dtype=dtype)
        self.lock = threading.RLock()

    @property
    def is_integer(self) -> bool:
        return self.cells.dtype.kind == "i"

    def get(self, offset: Coord) -> Optional[CellValue]:
        raw = self.cells[offset]
        if raw < 0:
            return None
        return raw.item()

    def set(self, offset: Coord, value: Optional[CellValue]) -> None:
        if value is None:
            self.cells[offset] = ABSENT
        else:
            self.cells[offset] = self.coerce(value)

    def coerce(self, value: CellValue) -> CellValue:
        """Validate a value against the chunk's cell domain."""
        if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
            raise TypeError(f"cell value must be numeric, got {type(value).__name__}")
        if not math.isfinite(value):
            raise ValueError(f"cell value must be finite, got {value!r}")
        if value < 0:
            raise ValueError(f"cell value must be non-negative, got {value!r}")
        if self.is_integer:
            if value != int(value):
                raise ValueError(f"integer chunk cannot store {value!r}")
            if value > np.iinfo(self.cells.dtype).max:
                raise ValueError(f"cell value {value!r} overflows {self.cells.dtype}")
            return int(value)
        if value > np.finfo(self.cells.dtype).max:
            raise ValueError(f"cell value {value!r} overflows {self.cells.dtype}")
        return float(value)

    def present_count(self) -> int:
        return int(np.count_nonzero(self.cells >= 0))

    def iter_present(self) -> Iterator[Tuple[Coord, CellValue]]:
        """Yield ``(local_offset, value)`` in x/y/z row-major order."""
        for offset in np.argwhere(self.cells >= 0):
            local = (int(offset[0]), int(offset[1]), int(offset[2]))
            yield local, self.cells[local].item()
