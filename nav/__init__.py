"""Pathfinding, tour optimisation and path execution over a chunk store."""
from .costs import TimeCost, heuristic_euclidean, heuristic_manhattan, heuristic_zero
from .errors import AdjacencyError, GoalUnreachable, MoveFailed, NavigationError, SearchCancelled
from .navigator import Actuator, Navigator
from .orientation import Facing, Turn, calc_orientation, coords_from_offset, relative_orientation
from .pathfinder import Path, find_path, heuristic_astar, path_cost
from .priority_queue import PriorityQueue
from .tour import Tour, greedy_tour, path_distance, shortest_tour, two_opt
from .worker import CancelToken, PlannerWorker

__all__ = [
    "Facing",
    "Turn",
    "calc_orientation",
    "relative_orientation",
    "coords_from_offset",
    "PriorityQueue",
    "TimeCost",
    "heuristic_manhattan",
    "heuristic_euclidean",
    "heuristic_zero",
    "Path",
    "find_path",
    "path_cost",
    "heuristic_astar",
    "Tour",
    "greedy_tour",
    "two_opt",
    "shortest_tour",
    "path_distance",
    "Actuator",
    "Navigator",
    "CancelToken",
    "PlannerWorker",
    "NavigationError",
    "AdjacencyError",
    "GoalUnreachable",
    "SearchCancelled",
    "MoveFailed",
]
