import math
import random

import pytest

from nav.errors import SearchCancelled
from nav.tour import greedy_tour, path_distance, shortest_tour, tour_cost, two_opt
from nav.worker import CancelToken
from world.chunk_store import ChunkStore

SQUARE = [(0, 0, 0), (1, 0, 0), (1, 0, 1), (0, 0, 1)]


def _random_nodes(rng, count, extent=20):
    nodes = set()
    while len(nodes) < count:
        nodes.add((rng.randrange(extent), rng.randrange(extent), rng.randrange(extent)))
    return list(nodes)


def test_closed_square_costs_its_perimeter():
    tour, cost = shortest_tour(SQUARE)
    assert cost == pytest.approx(4.0)
    assert sorted(tour) == sorted(SQUARE)


def test_open_tour_skips_the_wrap_edge():
    closed = shortest_tour(SQUARE)
    tour, cost = shortest_tour(SQUARE, (0, 0, 0), (1, 0, 1))
    assert tour[0] == (0, 0, 0)
    assert tour[-1] == (1, 0, 1)
    assert sorted(tour) == sorted(SQUARE)
    assert cost == pytest.approx(2.0 + math.sqrt(2.0))
    assert cost < closed.cost


def test_anchors_are_added_when_missing():
    nodes = [(2, 0, 0), (4, 0, 0), (6, 0, 0)]
    tour, cost = shortest_tour(nodes, (0, 0, 0), (8, 0, 0))
    assert tour == [(0, 0, 0), (2, 0, 0), (4, 0, 0), (6, 0, 0), (8, 0, 0)]
    assert cost == pytest.approx(8.0)


def test_greedy_closed_tour_charges_wrap_edge():
    nodes = [(0, 0, 0), (3, 0, 0), (1, 0, 0)]
    tour, cost = greedy_tour(nodes)
    assert tour == [(0, 0, 0), (1, 0, 0), (3, 0, 0)]
    assert cost == pytest.approx(6.0)


def test_greedy_open_tour_walks_from_start_to_end():
    nodes = [(5, 0, 0), (1, 0, 0), (3, 0, 0)]
    tour, cost = greedy_tour(nodes, (0, 0, 0), (6, 0, 0))
    assert tour == [(0, 0, 0), (1, 0, 0), (3, 0, 0), (5, 0, 0), (6, 0, 0)]
    assert cost == pytest.approx(6.0)


def test_greedy_closed_tour_starts_at_given_node():
    tour, _ = greedy_tour(SQUARE, start=(1, 0, 1))
    assert tour[0] == (1, 0, 1)
    assert len(tour) == 4


def test_two_opt_uncrosses_edges():
    crossed = [(0, 0, 0), (1, 0, 1), (1, 0, 0), (0, 0, 1)]
    assert tour_cost(crossed, closed=True) == pytest.approx(2.0 + 2.0 * math.sqrt(2.0))
    tour, cost = two_opt(crossed)
    assert cost == pytest.approx(4.0)
    assert tour[0] == (0, 0, 0)


@pytest.mark.parametrize("seed", range(5))
def test_two_opt_never_increases_cost(seed):
    rng = random.Random(seed)
    nodes = _random_nodes(rng, 15)
    rng.shuffle(nodes)

    closed_before = tour_cost(nodes, closed=True)
    tour, cost = two_opt(nodes)
    assert cost <= closed_before + 1e-9
    assert sorted(tour) == sorted(nodes)

    start, end = nodes[0], nodes[-1]
    open_before = tour_cost(nodes, closed=False)
    tour, cost = two_opt(nodes, start, end)
    assert cost <= open_before + 1e-9
    assert tour[0] == start and tour[-1] == end
    assert sorted(tour) == sorted(nodes)


@pytest.mark.parametrize("seed", range(3))
def test_shortest_tour_improves_on_greedy(seed):
    rng = random.Random(100 + seed)
    nodes = _random_nodes(rng, 25)
    greedy = greedy_tour(nodes)
    best = shortest_tour(nodes)
    assert best.cost <= greedy.cost + 1e-9
    assert best.cost == pytest.approx(tour_cost(best.nodes, closed=True))


def test_duplicates_collapse():
    tour, cost = shortest_tour(SQUARE + [(1, 0, 0), (0, 0, 0)])
    assert len(tour) == 4
    assert cost == pytest.approx(4.0)


def test_degenerate_inputs():
    assert shortest_tour([]) == ([], 0.0)
    assert shortest_tour([(1, 2, 3)]) == ([(1, 2, 3)], 0.0)
    assert shortest_tour([], (0, 0, 0), (0, 0, 2)) == ([(0, 0, 0), (0, 0, 2)], 2.0)


def test_custom_distance():
    def chebyshev(a, b):
        return max(abs(a[i] - b[i]) for i in range(3))

    tour, cost = shortest_tour(SQUARE, distance=chebyshev)
    assert cost == pytest.approx(4.0)


def test_tour_on_pathfinder_costs():
    store = ChunkStore(chunk_size=(8, 8, 8), stored_type="h")
    nodes = [(x, 10, z) for x, _, z in SQUARE]
    distance = path_distance(store)
    assert distance(nodes[0], nodes[2]) == 3.0  # two steps and one quarter turn
    assert distance(nodes[2], nodes[0]) == 3.0
    tour, cost = shortest_tour(nodes, distance=distance)
    assert cost == pytest.approx(4.0)


def test_cancelled_refinement():
    token = CancelToken()
    token.cancel()
    with pytest.raises(SearchCancelled):
        shortest_tour(SQUARE, cancel=token)
