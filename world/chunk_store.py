"""Sparse world model partitioned into lazily allocated chunks."""
from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from engine import config
from world import chunk_file
from world.chunks import (
    Chunk,
    ChunkKey,
    CellValue,
    Coord,
    absolute_from_local,
    cell_dtype,
    chunk_key_for,
    local_offset,
    validate_chunk_size,
)

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE: Coord = (16, 256, 16)
DEFAULT_STORED_TYPE = "f"
DEFAULT_CHUNK_FOLDER = "chunks"

Entry = Tuple[Coord, CellValue]


class StoreIterator:
    """Cursor over present cells: current chunk position plus local cursor.

    Chunk order is the store's insertion order, captured when the iterator
    is created; cells inside a chunk come out x/y/z row-major.
    """

    def __init__(self, store: "ChunkStore") -> None:
        self._store = store
        self._keys: List[ChunkKey] = store.chunk_keys()
        self._chunk_pos = 0
        self._cells: Optional[Iterator[Tuple[Coord, CellValue]]] = None
        self._key: Optional[ChunkKey] = None

    def __iter__(self) -> "StoreIterator":
        return self

    def __next__(self) -> Entry:
        while True:
            if self._cells is None:
                if self._chunk_pos >= len(self._keys):
                    raise StopIteration
                self._key = self._keys[self._chunk_pos]
                self._chunk_pos += 1
                chunk = self._store.chunk(self._key)
                if chunk is None:
                    continue
                self._cells = chunk.iter_present()
            try:
                offset, value = next(self._cells)
            except StopIteration:
                # Empty or exhausted chunk: move on to the next one.
                self._cells = None
                continue
            return absolute_from_local(self._key, offset, self._store.chunk_size), value


class ChunkStore:
    """Coordinate-addressed cell store backed by fixed-size chunks.

    Any coordinate access (read or write) allocates the owning chunk if it
    does not exist yet, so ``get`` on unexplored space leaves an empty chunk
    behind. Ordinal access (``get_by_index``) and iteration never allocate.
    """

    def __init__(
        self,
        chunk_size: Optional[Sequence[int]] = None,
        stored_type: Optional[str] = None,
        chunk_folder: Union[str, os.PathLike, None] = None,
    ) -> None:
        if chunk_size is None:
            chunk_size = config.get("world.chunk_size", DEFAULT_CHUNK_SIZE)
        if stored_type is None:
            stored_type = config.get("world.stored_type", DEFAULT_STORED_TYPE)
        if chunk_folder is None:
            chunk_folder = config.get("world.chunk_folder", DEFAULT_CHUNK_FOLDER)

        self.chunk_size: Coord = validate_chunk_size(chunk_size)
        self.stored_type: str = stored_type
        self.dtype = cell_dtype(stored_type)
        self.chunk_folder = Path(chunk_folder)

        self._chunks: Dict[ChunkKey, Chunk] = {}
        self._lock = threading.Lock()

    # Addressing ---------------------------------------------------------
    def chunk_key(self, coord: Coord) -> ChunkKey:
        return chunk_key_for(coord, self.chunk_size)

    def local_offset(self, coord: Coord) -> Coord:
        return local_offset(coord, self.chunk_size)

    def absolute(self, key: ChunkKey, offset: Coord) -> Coord:
        return absolute_from_local(key, offset, self.chunk_size)

    def chunk_path(self, key: ChunkKey) -> Path:
        return self.chunk_folder / chunk_file.file_name(key)

    # Chunk bookkeeping ----------------------------------------------------
    def has_chunk(self, key: ChunkKey) -> bool:
        return key in self._chunks

    def chunk(self, key: ChunkKey) -> Optional[Chunk]:
        return self._chunks.get(key)

    def chunk_keys(self) -> List[ChunkKey]:
        with self._lock:
            return list(self._chunks)

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    def _resolve(self, coord: Coord) -> Tuple[Chunk, Coord]:
        key = self.chunk_key(coord)
        chunk = self._chunks.get(key)
        if chunk is None:
            with self._lock:
                chunk = self._chunks.get(key)
                if chunk is None:
                    chunk = Chunk(key, self.chunk_size, self.dtype)
                    self._chunks[key] = chunk
        return chunk, self.local_offset(coord)

    # Coordinate access ----------------------------------------------------
    def get(self, coord: Coord) -> Optional[CellValue]:
        chunk, offset = self._resolve(coord)
        return chunk.get(offset)

    def peek(self, coord: Coord) -> Optional[CellValue]:
        """Like ``get`` but never allocates a chunk."""
        chunk = self._chunks.get(self.chunk_key(coord))
        if chunk is None:
            return None
        return chunk.get(self.local_offset(coord))

    def set(self, coord: Coord, value: Optional[CellValue]) -> None:
        chunk, offset = self._resolve(coord)
        with chunk.lock:
            chunk.set(offset, value)

    # Ordinal access -------------------------------------------------------
    def get_by_index(self, index: int) -> Optional[Entry]:
        """Return the ``index``-th present cell (1-based) in iteration order."""
        if index < 1:
            return None
        remaining = index
        for key in self.chunk_keys():
            chunk = self._chunks[key]
            count = chunk.present_count()
            if remaining > count:
                remaining -= count
                continue
            for offset, value in chunk.iter_present():
                remaining -= 1
                if remaining == 0:
                    return self.absolute(key, offset), value
        return None

    def set_by_index(self, index: int, coord: Optional[Coord]) -> None:
        """Move the ``index``-th present cell to ``coord``, or clear it when ``coord`` is None."""
        entry = self.get_by_index(index)
        if entry is None:
            raise IndexError(f"no present cell at ordinal {index}")
        old_coord, value = entry
        if coord is not None and tuple(coord) == old_coord:
            return
        self.set(old_coord, None)
        if coord is not None:
            self.set(coord, value)

    # Iteration ------------------------------------------------------------
    def iterate(self) -> StoreIterator:
        return StoreIterator(self)

    def __iter__(self) -> Iterator[Entry]:
        return self.iterate()

    def __len__(self) -> int:
        return sum(chunk.present_count() for chunk in list(self._chunks.values()))

    def nearest(
        self,
        from_coord: Coord,
        heuristic: Callable[[Coord, Coord], float],
        predicate: Optional[Callable[[CellValue], bool]] = None,
    ) -> Tuple[Optional[Coord], float]:
        """Return the present cell closest to ``from_coord`` and its distance."""
        best: Optional[Coord] = None
        best_dist = float("inf")
        for coord, value in self.iterate():
            if predicate is not None and not predicate(value):
                continue
            dist = heuristic(from_coord, coord)
            if dist < best_dist:
                best, best_dist = coord, dist
        return best, best_dist

    # Persistence ----------------------------------------------------------
    def save(self, coord: Coord) -> Path:
        """Write the chunk owning ``coord`` to disk, absent cells included."""
        chunk, _ = self._resolve(coord)
        path = self.chunk_path(chunk.key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with chunk.lock:
            data = chunk_file.encode(chunk.cells, self.stored_type)
        fd, tmp_name = tempfile.mkstemp(prefix=path.name, suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
        log.info("saved chunk %s to %s", chunk.key, path)
        return path

    def load(self, coord: Coord) -> bool:
        """Overwrite the chunk owning ``coord`` from disk.

        A missing file or a header that does not match this store (magic or
        dimensions) leaves the chunk untouched and returns False; mismatches
        are logged at WARNING. Malformed bodies raise ``ChunkFormatError``.
        """
        chunk, _ = self._resolve(coord)
        path = self.chunk_path(chunk.key)
        try:
            with path.open("rb") as handle:
                data = handle.read()
        except FileNotFoundError:
            log.debug("no chunk file for %s at %s", chunk.key, path)
            return False

        header = chunk_file.decode_header(data)
        if header.magic != chunk_file.MAGIC:
            log.warning("ignoring %s: bad magic %r", path, header.magic)
            return False
        if header.size != self.chunk_size:
            log.warning(
                "ignoring %s: chunk size %s does not match store chunk size %s",
                path, header.size, self.chunk_size,
            )
            return False

        cells = chunk_file.decode_body(data, header, self.dtype)
        with chunk.lock:
            chunk.cells[...] = cells
        log.info("loaded chunk %s from %s", chunk.key, path)
        return True

    def save_all(self) -> List[Path]:
        """Save every allocated chunk."""
        return [self.save(self.absolute(key, (0, 0, 0))) for key in self.chunk_keys()]

    def load_region(self, coords: Iterable[Coord]) -> int:
        """Load the chunks owning ``coords`` (each at most once); returns how many loaded."""
        seen = set()
        loaded = 0
        for coord in coords:
            key = self.chunk_key(coord)
            if key in seen:
                continue
            seen.add(key)
            if self.load(coord):
                loaded += 1
        return loaded
