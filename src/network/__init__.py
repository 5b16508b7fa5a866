"""Road network data structure for the city traffic simulation."""

import math
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple

import numpy as np
import networkx as nx

logger = logging.getLogger(__name__)

MIN_BASE_WEIGHT = 5
MAX_BASE_WEIGHT = 30

RoadKey = Tuple[int, int]


class NetworkError(Exception):
    """Base class for road network errors."""


class InvalidWeight(NetworkError, ValueError):
    """Base weight outside the allowed travel time range."""


class InvalidRoad(NetworkError, ValueError):
    """Road definition that can never be valid (e.g. a self-loop)."""


class UnknownNode(NetworkError, LookupError):
    """Operation references an intersection that does not exist."""


class NoSuchRoad(NetworkError, LookupError):
    """Operation references a road that does not exist."""


def road_key(a: int, b: int) -> RoadKey:
    """Return the unordered key identifying the road between two intersections."""
    return (a, b) if a <= b else (b, a)


@dataclass
class Road:
    """A single undirected road shared by both of its endpoints."""
    u: int
    v: int
    base_weight: int
    congestion_factor: float = 1.0

    @property
    def key(self) -> RoadKey:
        return road_key(self.u, self.v)

    @property
    def live_weight(self) -> int:
        """Congestion-adjusted travel time."""
        return int(math.floor(self.base_weight * self.congestion_factor))

    def other(self, node: int) -> int:
        """Return the endpoint opposite to ``node``."""
        if node == self.u:
            return self.v
        if node == self.v:
            return self.u
        raise UnknownNode(f"Intersection {node} is not an endpoint of road {self.key}")


class RoadNetwork:
    """Intersections and the roads between them.

    Each road is stored once in a table keyed by its unordered endpoint pair.
    The per-intersection adjacency only holds neighbor ids, so both endpoints
    always read the same road record.
    """

    def __init__(self, min_weight: int = MIN_BASE_WEIGHT, max_weight: int = MAX_BASE_WEIGHT,
                 auto_create: bool = False):
        """Initialize an empty road network.

        Args:
            min_weight: Smallest accepted base weight
            max_weight: Largest accepted base weight
            auto_create: Create missing intersections in ``add_road`` instead of
                raising ``UnknownNode``
        """
        self.min_weight = min_weight
        self.max_weight = max_weight
        self.auto_create = auto_create

        self._adjacency: Dict[int, Set[int]] = {}
        self._roads: Dict[RoadKey, Road] = {}

    def __len__(self) -> int:
        return len(self._adjacency)

    def __contains__(self, node: int) -> bool:
        return node in self._adjacency

    def __repr__(self) -> str:
        return f"RoadNetwork(intersections={len(self)}, roads={self.num_roads})"

    @property
    def num_roads(self) -> int:
        return len(self._roads)

    def validate_weight(self, weight) -> int:
        """Check that a base weight is an integer inside the allowed range.

        Args:
            weight: Candidate base weight

        Returns:
            int: The weight as a plain integer

        Raises:
            InvalidWeight: If the weight is not integral or out of range
        """
        if isinstance(weight, bool) or not isinstance(weight, (int, np.integer)):
            raise InvalidWeight(f"Base weight must be an integer, got {weight!r}")
        if not self.min_weight <= weight <= self.max_weight:
            raise InvalidWeight(
                f"Base weight {weight} outside [{self.min_weight}, {self.max_weight}]"
            )
        return int(weight)

    # Intersections

    def add_intersection(self, node: int) -> None:
        """Add an intersection; does nothing if it already exists."""
        self._adjacency.setdefault(node, set())

    def has_intersection(self, node: int) -> bool:
        return node in self._adjacency

    def intersections(self) -> List[int]:
        """Intersection ids in ascending order."""
        return sorted(self._adjacency)

    def remove_intersection(self, node: int) -> bool:
        """Remove an intersection together with every road touching it.

        Returns:
            bool: False if the intersection did not exist
        """
        if node not in self._adjacency:
            return False

        for neighbor in list(self._adjacency[node]):
            self.remove_road(node, neighbor)
        del self._adjacency[node]

        logger.info(f"Intersection {node} removed.")
        return True

    # Roads

    def add_road(self, a: int, b: int, base_weight: int) -> bool:
        """Connect two intersections with a road.

        Adding a road that already exists, in either direction, leaves the
        existing road untouched.

        Args:
            a: First intersection
            b: Second intersection
            base_weight: Travel time at zero congestion

        Returns:
            bool: True if a new road was created

        Raises:
            InvalidWeight: If ``base_weight`` is out of range
            InvalidRoad: If ``a == b``
            UnknownNode: If an endpoint is missing and ``auto_create`` is off
        """
        weight = self.validate_weight(base_weight)
        if a == b:
            raise InvalidRoad(f"A road needs two distinct intersections, got {a} twice")

        missing = [node for node in (a, b) if node not in self._adjacency]
        if missing and not self.auto_create:
            raise UnknownNode(f"Unknown intersection(s): {missing}")

        key = road_key(a, b)
        if key in self._roads:
            logger.debug(f"Road between {a} and {b} already exists; ignoring.")
            return False

        for node in missing:
            self.add_intersection(node)

        self._roads[key] = Road(key[0], key[1], weight)
        self._adjacency[a].add(b)
        self._adjacency[b].add(a)
        return True

    def remove_road(self, a: int, b: int) -> bool:
        """Remove the road between two intersections.

        Returns:
            bool: False if there was no such road
        """
        key = road_key(a, b)
        if key not in self._roads:
            return False

        del self._roads[key]
        self._adjacency[a].discard(b)
        self._adjacency[b].discard(a)

        logger.info(f"Road between {a} and {b} removed.")
        return True

    def road(self, a: int, b: int) -> Optional[Road]:
        """Return the road between two intersections, or None."""
        return self._roads.get(road_key(a, b))

    def has_road(self, a: int, b: int) -> bool:
        return road_key(a, b) in self._roads

    def roads(self) -> List[Road]:
        """All roads, ordered by their unordered key."""
        return [self._roads[key] for key in sorted(self._roads)]

    def _require_road(self, a: int, b: int) -> Road:
        road = self.road(a, b)
        if road is None:
            raise NoSuchRoad(f"No road between {a} and {b}")
        return road

    def edit_weight(self, a: int, b: int, new_base_weight: int) -> None:
        """Change the base weight of an existing road.

        Raises:
            InvalidWeight: If the new weight is out of range
            NoSuchRoad: If the road does not exist
        """
        weight = self.validate_weight(new_base_weight)
        road = self._require_road(a, b)
        road.base_weight = weight
        logger.debug(f"Road {road.key} base weight set to {weight}")

    def set_base_weight(self, a: int, b: int, base_weight: int) -> None:
        """Write a base weight without the range check.

        Used for temporary perturbations that may leave the editable range.
        """
        if base_weight < 1:
            raise InvalidWeight(f"Base weight must be positive, got {base_weight}")
        self._require_road(a, b).base_weight = int(base_weight)

    def set_congestion(self, a: int, b: int, factor: float) -> None:
        """Set the congestion factor of an existing road."""
        if factor < 1.0:
            raise ValueError(f"Congestion factor must be >= 1.0, got {factor}")
        self._require_road(a, b).congestion_factor = float(factor)

    # Queries

    def neighbors(self, node: int) -> List[Tuple[int, int]]:
        """Neighbors of an intersection with the live weight of each road.

        Args:
            node: Intersection id

        Returns:
            List of ``(neighbor_id, live_weight)`` sorted by neighbor id

        Raises:
            UnknownNode: If the intersection does not exist
        """
        if node not in self._adjacency:
            raise UnknownNode(f"Unknown intersection: {node}")
        return [
            (neighbor, self._roads[road_key(node, neighbor)].live_weight)
            for neighbor in sorted(self._adjacency[node])
        ]

    def live_weight(self, a: int, b: int) -> Optional[int]:
        """Live weight of the road between two intersections, or None if absent."""
        road = self.road(a, b)
        return None if road is None else road.live_weight

    def live_weights(self) -> Dict[RoadKey, int]:
        """Snapshot of every road's current live weight."""
        return {key: road.live_weight for key, road in self._roads.items()}

    # Bulk operations

    def clear(self) -> None:
        self._adjacency.clear()
        self._roads.clear()

    def load_layout(self, intersections: Iterable[int],
                    connections: Iterable[Tuple[int, int, int]]) -> None:
        """Replace the whole network with a new city layout.

        Args:
            intersections: Intersection ids
            connections: ``(a, b, base_weight)`` triples
        """
        self.clear()
        for node in intersections:
            self.add_intersection(node)
        for a, b, weight in connections:
            self.add_road(a, b, weight)

        logger.info(f"Loaded city layout: {len(self)} intersections, {self.num_roads} roads")

    def to_networkx(self) -> nx.Graph:
        """Export the network as a NetworkX graph.

        Edge attributes are ``base_weight``, ``congestion_factor`` and
        ``weight`` (the live weight).
        """
        G = nx.Graph()
        G.add_nodes_from(self.intersections())
        for road in self.roads():
            G.add_edge(
                road.u, road.v,
                base_weight=road.base_weight,
                congestion_factor=road.congestion_factor,
                weight=road.live_weight
            )
        return G


def create_grid_city(rows: int = 5, cols: int = 10, rng: Optional[np.random.Generator] = None,
                     min_weight: int = 5, max_weight: int = 14,
                     network: Optional[RoadNetwork] = None) -> RoadNetwork:
    """Create a grid-shaped city.

    Intersections are numbered row by row starting at 1. Each intersection is
    connected to its right and lower neighbor.

    Args:
        rows: Number of grid rows
        cols: Number of grid columns
        rng: Random generator for road weights
        min_weight: Smallest base weight drawn (inclusive)
        max_weight: Largest base weight drawn (inclusive)
        network: Network to load into (a new one if None)

    Returns:
        RoadNetwork: The loaded network
    """
    if rows < 1 or cols < 1:
        raise ValueError(f"Grid needs at least one row and column, got {rows}x{cols}")
    if rng is None:
        rng = np.random.default_rng()
    if network is None:
        network = RoadNetwork()

    grid = np.arange(1, rows * cols + 1).reshape(rows, cols)

    connections = []
    for r in range(rows):
        for c in range(cols):
            current = int(grid[r, c])
            if c < cols - 1:
                connections.append((current, int(grid[r, c + 1]),
                                    int(rng.integers(min_weight, max_weight + 1))))
            if r < rows - 1:
                connections.append((current, int(grid[r + 1, c]),
                                    int(rng.integers(min_weight, max_weight + 1))))

    network.load_layout((int(node) for node in grid.flat), connections)
    return network
