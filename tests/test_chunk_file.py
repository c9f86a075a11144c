import logging
import random
import struct
import threading

import pytest

from world.chunk_file import HEADER, MAGIC, ChunkFormatError
from world.chunk_store import ChunkStore
from world.chunks import ChunkKey


def _store(folder, chunk_size=(4, 3, 5), stored_type="f"):
    return ChunkStore(chunk_size=chunk_size, stored_type=stored_type, chunk_folder=folder)


def _snapshot(store, key):
    size = store.chunk_size
    out = {}
    for x in range(size[0]):
        for y in range(size[1]):
            for z in range(size[2]):
                coord = store.absolute(key, (x, y, z))
                out[coord] = store.peek(coord)
    return out


@pytest.mark.parametrize("stored_type", ["b", "h", "i", "q", "f", "d"])
def test_round_trip_preserves_present_absent_map(tmp_path, stored_type):
    rng = random.Random(7)
    store = _store(tmp_path, stored_type=stored_type)
    origin = (-4, 3, 10)
    key = store.chunk_key(origin)
    for x in range(4):
        for y in range(3):
            for z in range(5):
                if rng.random() < 0.5:
                    store.set(store.absolute(key, (x, y, z)), rng.randrange(0, 100))
    expected = _snapshot(store, key)
    assert any(v is None for v in expected.values())
    assert any(v is not None for v in expected.values())

    store.save(origin)
    fresh = _store(tmp_path, stored_type=stored_type)
    assert fresh.load(origin) is True
    assert _snapshot(fresh, key) == expected


def test_file_layout_is_bit_exact(tmp_path):
    store = _store(tmp_path, chunk_size=(2, 1, 2), stored_type="i")
    store.set((0, 0, 1), 5)
    store.set((1, 0, 0), 7)
    path = store.save((0, 0, 0))

    assert path == tmp_path / "0_0_0.chnk"
    data = path.read_bytes()
    header = MAGIC + struct.pack("<iii", 2, 1, 2) + b"i"
    assert data[:HEADER.size] == header
    assert HEADER.size == 17
    # x outer, y middle, z inner
    assert data[HEADER.size:] == struct.pack("<4i", -1, 5, 7, -1)


def test_file_name_uses_chunk_key(tmp_path):
    store = _store(tmp_path / "nested" / "dir", chunk_size=(4, 4, 4))
    path = store.save((-1, 5, 9))
    assert path.name == "-1_1_2.chnk"
    assert path.exists()
    assert store.chunk_path(ChunkKey(-1, 1, 2)) == path
    assert not list(path.parent.glob("*.tmp"))


def test_load_missing_file_is_noop(tmp_path):
    store = _store(tmp_path)
    store.set((0, 0, 0), 3)
    assert store.load((0, 0, 0)) is False
    assert store.get((0, 0, 0)) == 3


def test_load_with_other_chunk_size_is_ignored(tmp_path, caplog):
    writer = _store(tmp_path, chunk_size=(4, 4, 4))
    writer.set((1, 1, 1), 9)
    writer.save((1, 1, 1))

    reader = _store(tmp_path, chunk_size=(4, 4, 2))
    # (1, 1, 1) in a (4, 4, 2) store lives in chunk (0, 0, 0) as well.
    reader.set((0, 0, 0), 2)
    with caplog.at_level(logging.WARNING, logger="world.chunk_store"):
        assert reader.load((1, 1, 1)) is False
    assert "does not match" in caplog.text
    assert reader.get((0, 0, 0)) == 2
    assert reader.get((1, 1, 1)) is None


def test_load_with_bad_magic_is_ignored(tmp_path, caplog):
    store = _store(tmp_path, chunk_size=(1, 1, 1))
    store.set((0, 0, 0), 4)
    path = store.save((0, 0, 0))
    path.write_bytes(b"JUNK" + path.read_bytes()[4:])

    fresh = _store(tmp_path, chunk_size=(1, 1, 1))
    with caplog.at_level(logging.WARNING, logger="world.chunk_store"):
        assert fresh.load((0, 0, 0)) is False
    assert "bad magic" in caplog.text
    assert fresh.get((0, 0, 0)) is None


def test_truncated_file_fails_without_partial_apply(tmp_path):
    store = _store(tmp_path, chunk_size=(2, 2, 2), stored_type="h")
    for x in range(2):
        store.set((x, 0, 0), 1)
    path = store.save((0, 0, 0))
    path.write_bytes(path.read_bytes()[:-3])

    fresh = _store(tmp_path, chunk_size=(2, 2, 2), stored_type="h")
    fresh.set((1, 1, 1), 8)
    with pytest.raises(ChunkFormatError):
        fresh.load((0, 0, 0))
    assert fresh.get((1, 1, 1)) == 8
    assert fresh.get((0, 0, 0)) is None

    path.write_bytes(b"CHN")
    with pytest.raises(OSError):
        fresh.load((0, 0, 0))


def test_unknown_type_tag_is_a_format_error(tmp_path):
    store = _store(tmp_path, chunk_size=(1, 1, 1), stored_type="i")
    path = store.save((0, 0, 0))
    data = bytearray(path.read_bytes())
    data[16:17] = b"Z"
    path.write_bytes(bytes(data))
    with pytest.raises(ChunkFormatError):
        store.load((0, 0, 0))


def test_load_replaces_cells_in_place(tmp_path):
    store = _store(tmp_path, chunk_size=(2, 2, 2), stored_type="h")
    store.set((0, 0, 0), 1)
    store.save((0, 0, 0))

    store.set((0, 0, 0), 5)
    store.set((1, 1, 1), 6)
    assert store.load((1, 0, 1)) is True
    assert store.get((0, 0, 0)) == 1
    assert store.get((1, 1, 1)) is None


def test_load_converts_file_type_to_store_type(tmp_path):
    writer = _store(tmp_path, chunk_size=(2, 1, 1), stored_type="d")
    writer.set((0, 0, 0), 12.0)
    writer.save((0, 0, 0))

    reader = _store(tmp_path, chunk_size=(2, 1, 1), stored_type="h")
    assert reader.load((0, 0, 0)) is True
    assert reader.get((0, 0, 0)) == 12
    assert reader.get((1, 0, 0)) is None


def test_save_all_and_load_region(tmp_path):
    store = _store(tmp_path, chunk_size=(2, 2, 2), stored_type="h")
    coords = [(0, 0, 0), (5, 0, 0), (-3, 1, 7)]
    for i, coord in enumerate(coords):
        store.set(coord, i)
    assert len(store.save_all()) == 3

    fresh = _store(tmp_path, chunk_size=(2, 2, 2), stored_type="h")
    assert fresh.load_region(coords + [(1, 1, 1), (40, 0, 0)]) == 3
    assert dict(fresh.iterate()) == {coord: i for i, coord in enumerate(coords)}


@pytest.mark.parametrize(
    "file_type, store_type, value",
    [("h", "b", 300), ("h", "b", 200), ("d", "i", 2.5), ("d", "f", 1e300)],
)
def test_load_rejects_values_the_store_type_cannot_hold(tmp_path, file_type, store_type, value):
    writer = _store(tmp_path, chunk_size=(3, 1, 1), stored_type=file_type)
    writer.set((0, 0, 0), value)
    writer.set((1, 0, 0), 3)
    writer.save((0, 0, 0))

    reader = _store(tmp_path, chunk_size=(3, 1, 1), stored_type=store_type)
    reader.set((2, 0, 0), 5)
    with pytest.raises(ChunkFormatError):
        reader.load((0, 0, 0))
    assert reader.get((0, 0, 0)) is None
    assert reader.get((1, 0, 0)) is None
    assert reader.get((2, 0, 0)) == 5


def test_load_widens_integers_to_floats(tmp_path):
    writer = _store(tmp_path, chunk_size=(2, 1, 1), stored_type="q")
    writer.set((1, 0, 0), 2 ** 40)
    writer.save((0, 0, 0))

    reader = _store(tmp_path, chunk_size=(2, 1, 1), stored_type="d")
    assert reader.load((0, 0, 0)) is True
    assert reader.get((0, 0, 0)) is None
    assert reader.get((1, 0, 0)) == float(2 ** 40)


def test_concurrent_writes_saves_and_loads_stay_whole(tmp_path):
    store = _store(tmp_path, chunk_size=(2, 2, 2), stored_type="h")
    reader = _store(tmp_path, chunk_size=(2, 2, 2), stored_type="h")
    origin = (0, 0, 0)
    key = store.chunk_key(origin)
    coords = [store.absolute(key, (x, y, z)) for x in range(2) for y in range(2) for z in range(2)]
    store.get(origin)
    chunk = store.chunk(key)
    errors = []

    def fill(value):
        # Holding the chunk lock makes a whole-chunk update atomic for savers and loaders.
        with chunk.lock:
            for coord in coords:
                store.set(coord, value)

    def snapshot(target):
        with target.chunk(key).lock:
            return {target.peek(coord) for coord in coords}

    def run(fn, *args):
        try:
            fn(*args)
        except Exception as exc:
            errors.append(exc)

    def writer(base):
        for i in range(200):
            fill(base + i)

    def saver():
        for _ in range(100):
            store.save(origin)

    def loader(target):
        for _ in range(100):
            target.load(origin)
            values = snapshot(target)
            if len(values) != 1:
                errors.append(values)

    fill(0)
    store.save(origin)
    threads = [threading.Thread(target=run, args=(writer, base)) for base in (1000, 2000, 3000, 4000)]
    threads += [threading.Thread(target=run, args=(saver,)) for _ in range(2)]
    threads += [threading.Thread(target=run, args=(loader, target)) for target in (store, reader)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert not list(tmp_path.glob("*.tmp"))
    assert reader.load(origin) is True
    assert len(snapshot(reader)) == 1
