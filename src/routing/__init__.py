"""Shortest path search over live road weights."""

import heapq
import itertools
import logging
from typing import Dict, List, NamedTuple, Optional, Sequence

from network import RoadKey, RoadNetwork, UnknownNode, road_key

logger = logging.getLogger(__name__)


class Route(NamedTuple):
    """Result of a shortest path query.

    An unreachable destination gives an empty path and a cost of None.
    """
    path: List[int]
    cost: Optional[int]

    @property
    def found(self) -> bool:
        return len(self.path) > 0


class PathFinder:
    """Dijkstra's algorithm on the current live weights of a road network."""

    def __init__(self, network: RoadNetwork):
        self.network = network

    def shortest_path(self, start: int, end: int) -> Route:
        """Find the cheapest route between two intersections.

        Neighbors are expanded in ascending id order and equal distances are
        popped in the order they were pushed, so identical network states
        always give identical routes.

        Args:
            start: Origin intersection
            end: Destination intersection

        Returns:
            Route: Path from ``start`` to ``end`` inclusive and its total live
            weight, or ``Route([], None)`` if ``end`` is unreachable

        Raises:
            UnknownNode: If either intersection does not exist
        """
        for node in (start, end):
            if node not in self.network:
                raise UnknownNode(f"Unknown intersection: {node}")

        if start == end:
            return Route([start], 0)

        distances: Dict[int, int] = {start: 0}
        previous: Dict[int, int] = {}
        visited = set()

        counter = itertools.count()
        pq = [(0, next(counter), start)]

        while pq:
            dist, _, node = heapq.heappop(pq)
            if node in visited:
                continue
            visited.add(node)

            if node == end:
                break

            for neighbor, weight in self.network.neighbors(node):
                if neighbor in visited:
                    continue
                new_dist = dist + weight
                if neighbor not in distances or new_dist < distances[neighbor]:
                    distances[neighbor] = new_dist
                    previous[neighbor] = node
                    heapq.heappush(pq, (new_dist, next(counter), neighbor))

        if end not in visited:
            logger.debug(f"No path from {start} to {end}")
            return Route([], None)

        path = [end]
        while path[-1] != start:
            path.append(previous[path[-1]])
        path.reverse()

        return Route(path, distances[end])

    def path_cost(self, path: Sequence[int]) -> Optional[int]:
        """Total live weight along a path, or None if a hop has no road."""
        total = 0
        for a, b in zip(path, path[1:]):
            weight = self.network.live_weight(a, b)
            if weight is None:
                return None
            total += weight
        return total


def path_roads(path: Sequence[int]) -> List[RoadKey]:
    """Road keys traversed by a path, in travel order."""
    return [road_key(a, b) for a, b in zip(path, path[1:])]
