"""Binary chunk file codec.

Layout (little-endian)::

    magic    4 bytes   b"CHNK"
    size_x   int32
    size_y   int32
    size_z   int32
    tag      1 byte    cell type tag (b, h, i, q, f, d)
    cells    size_x * size_y * size_z values of the tagged type,
             x outer, y middle, z inner; -1 marks an absent cell
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional

import numpy as np

from world.chunks import TYPE_TAGS, Coord, cell_dtype

MAGIC = b"CHNK"
EXTENSION = "chnk"
HEADER = struct.Struct("<4siiic")


class ChunkFormatError(OSError):
    """Raised when a chunk file body is truncated or malformed."""


@dataclass(frozen=True)
class ChunkHeader:
    magic: bytes
    size: Coord
    type_tag: str

    @property
    def cell_count(self) -> int:
        return self.size[0] * self.size[1] * self.size[2]


def file_name(key) -> str:
    return f"{key.x}_{key.y}_{key.z}.{EXTENSION}"


def encode(cells: np.ndarray, type_tag: str) -> bytes:
    sx, sy, sz = cells.shape
    header = HEADER.pack(MAGIC, sx, sy, sz, type_tag.encode("ascii"))
    body = np.ascontiguousarray(cells, dtype=cell_dtype(type_tag)).tobytes(order="C")
    return header + body


def decode_header(data: bytes) -> ChunkHeader:
    if len(data) < HEADER.size:
        raise ChunkFormatError(f"chunk header truncated: {len(data)} of {HEADER.size} bytes")
    magic, sx, sy, sz, tag = HEADER.unpack_from(data)
    try:
        type_tag = tag.decode("ascii")
    except UnicodeDecodeError as exc:
        raise ChunkFormatError(f"chunk type tag {tag!r} is not ASCII") from exc
    return ChunkHeader(magic=magic, size=(sx, sy, sz), type_tag=type_tag)


def decode_body(data: bytes, header: ChunkHeader, dtype: Optional[np.dtype] = None) -> np.ndarray:
    """Decode the cell array following ``header``; returns a fresh array.

    When ``dtype`` differs from the file type, present values are converted
    and a value the target type cannot hold raises ``ChunkFormatError``.
    """
    if header.type_tag not in TYPE_TAGS:
        raise ChunkFormatError(f"unknown chunk type tag {header.type_tag!r}")
    if any(axis <= 0 for axis in header.size):
        raise ChunkFormatError(f"invalid chunk dimensions {header.size}")
    file_dtype = cell_dtype(header.type_tag)
    expected = header.cell_count * file_dtype.itemsize
    body = memoryview(data)[HEADER.size:]
    if len(body) != expected:
        raise ChunkFormatError(
            f"chunk body holds {len(body)} bytes, expected {expected} for {header.size} of {header.type_tag!r}"
        )
    cells = np.frombuffer(body, dtype=file_dtype, count=header.cell_count).reshape(header.size)
    if dtype is None or np.dtype(dtype) == file_dtype:
        return cells.copy()
    return _convert(cells, np.dtype(dtype))


def _convert(cells: np.ndarray, dtype: np.dtype) -> np.ndarray:
    """Cast present cells to ``dtype``; raises when any value would not survive."""
    present = cells >= 0
    values = cells[present]
    if cells.dtype.kind == "f" and not np.all(np.isfinite(cells)):
        raise ChunkFormatError("chunk holds non-finite cell values")
    if dtype.kind == "i":
        if values.size and values.max() > np.iinfo(dtype).max:
            raise ChunkFormatError(f"chunk values exceed the range of {dtype}")
        if cells.dtype.kind == "f" and not np.all(values == np.floor(values)):
            raise ChunkFormatError(f"chunk holds fractional values, cannot convert to {dtype}")
    elif values.size and values.max() > np.finfo(dtype).max:
        raise ChunkFormatError(f"chunk values exceed the range of {dtype}")
    out = np.full(cells.shape, -1, dtype=dtype)
    out[present] = values.astype(dtype)
    return out
