"""Benchmark A* and tour optimisation on a random world."""
from __future__ import annotations

import argparse
import logging
import random
import sys
import tempfile
import time
from typing import List, Tuple

from nav.costs import heuristic_euclidean, heuristic_manhattan, heuristic_zero
from nav.orientation import Facing
from nav.pathfinder import find_path
from nav.tour import greedy_tour, path_distance, shortest_tour
from world.chunk_store import ChunkStore

_HEURISTICS = {
    "manhattan": heuristic_manhattan,
    "euclidean": heuristic_euclidean,
    "zero": heuristic_zero,
}


def _populate(store: ChunkStore, rng: random.Random, extent: int, base_y: int, density: float) -> int:
    solid = 0
    for x in range(extent):
        for y in range(base_y, base_y + 8):
            for z in range(extent):
                if rng.random() < density:
                    store.set((x, y, z), 1)
                    solid += 1
                else:
                    store.set((x, y, z), 0)
    return solid


def _bench_paths(store: ChunkStore, rng: random.Random, args) -> None:
    heuristic = _HEURISTICS[args.heuristic]
    bounds = ((0, args.base_y, 0), (args.extent - 1, args.base_y + 7, args.extent - 1))
    total_s = 0.0
    for _ in range(args.paths):
        start = (rng.randrange(args.extent), args.base_y + rng.randrange(8), rng.randrange(args.extent))
        goal = (rng.randrange(args.extent), args.base_y + rng.randrange(8), rng.randrange(args.extent))
        t0 = time.perf_counter()
        path = find_path(store, goal, start, Facing.NORTH, heuristic=heuristic, bounds=bounds)
        dt = time.perf_counter() - t0
        total_s += dt
        print(f"[bench] path {start}->{goal} steps={len(path.nodes)} cost={path.cost:.3f} ms={dt * 1000.0:.2f}")
    if args.paths:
        print(f"[bench] paths avg_ms={total_s * 1000.0 / args.paths:.2f}")


def _bench_tour(store: ChunkStore, rng: random.Random, args) -> None:
    nodes: List[Tuple[int, int, int]] = [
        (rng.randrange(args.extent), args.base_y + rng.randrange(8), rng.randrange(args.extent))
        for _ in range(args.tour_nodes)
    ]
    t0 = time.perf_counter()
    greedy = greedy_tour(nodes)
    refined = shortest_tour(nodes)
    dt = time.perf_counter() - t0
    print(f"[bench] tour nodes={len(refined.nodes)} greedy={greedy.cost:.3f} 2opt={refined.cost:.3f} ms={dt * 1000.0:.2f}")

    if args.astar_tour:
        bounds = ((0, args.base_y, 0), (args.extent - 1, args.base_y + 7, args.extent - 1))
        distance = path_distance(store, bounds=bounds)
        t0 = time.perf_counter()
        routed = shortest_tour(nodes[: min(len(nodes), 12)], distance=distance)
        dt = time.perf_counter() - t0
        print(f"[bench] astar-tour nodes={len(routed.nodes)} cost={routed.cost:.3f} ms={dt * 1000.0:.2f}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seed", type=int, default=1)
    parser.add_argument("--extent", type=int, default=48, help="world width/depth in blocks")
    parser.add_argument("--base-y", type=int, default=40)
    parser.add_argument("--density", type=float, default=0.3, help="share of solid blocks")
    parser.add_argument("--paths", type=int, default=10)
    parser.add_argument("--heuristic", choices=sorted(_HEURISTICS), default="manhattan")
    parser.add_argument("--tour-nodes", type=int, default=40)
    parser.add_argument("--astar-tour", action="store_true", help="also run a tour on A* distances")
    parser.add_argument("--save", action="store_true", help="time saving and reloading every chunk")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    rng = random.Random(args.seed)
    with tempfile.TemporaryDirectory() as folder:
        store = ChunkStore(chunk_size=(16, 16, 16), stored_type="h", chunk_folder=folder)
        t0 = time.perf_counter()
        solid = _populate(store, rng, args.extent, args.base_y, args.density)
        print(f"[bench] populated chunks={store.chunk_count} cells={len(store)} solid={solid} "
              f"ms={(time.perf_counter() - t0) * 1000.0:.2f}")

        _bench_paths(store, rng, args)
        _bench_tour(store, rng, args)

        if args.save:
            t0 = time.perf_counter()
            paths = store.save_all()
            save_ms = (time.perf_counter() - t0) * 1000.0
            fresh = ChunkStore(chunk_size=(16, 16, 16), stored_type="h", chunk_folder=folder)
            t0 = time.perf_counter()
            loaded = fresh.load_region(fresh.absolute(key, (0, 0, 0)) for key in store.chunk_keys())
            load_ms = (time.perf_counter() - t0) * 1000.0
            print(f"[bench] saved={len(paths)} ms={save_ms:.2f} loaded={loaded} ms={load_ms:.2f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
