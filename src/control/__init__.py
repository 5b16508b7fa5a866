"""Traffic controller: congestion ticks, redistribution and emergency rerouting."""

import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

import numpy as np

from network import MIN_BASE_WEIGHT, NetworkError, RoadKey, RoadNetwork, road_key
from congestion import CongestionModel, REDISTRIBUTE_THRESHOLD
from routing import PathFinder, Route, path_roads

logger = logging.getLogger(__name__)

PATH_REDUCTION = 10
BOUNDARY_INCREASE = 5


class EmergencyError(NetworkError, RuntimeError):
    """Emergency episode used out of order (overlap or repeated restore)."""


class EmergencyState(Enum):
    IDLE = "idle"
    PATH_COMPUTED = "path_computed"
    PERTURBED = "perturbed"
    RESTORED = "restored"


@dataclass
class EmergencyHandle:
    """Pending restoration of one emergency episode.

    ``snapshot`` maps each touched road to its base weight before the
    episode started. It is emptied once the handle is restored.
    """
    episode_id: int
    route: Route
    path_roads: List[RoadKey]
    boundary_roads: List[RoadKey]
    snapshot: Dict[RoadKey, int] = field(default_factory=dict)
    state: EmergencyState = EmergencyState.IDLE

    @property
    def touched_roads(self) -> Set[RoadKey]:
        return set(self.path_roads) | set(self.boundary_roads)


class TrafficController:
    """Orchestrates congestion refresh, redistribution and emergency episodes."""

    def __init__(self, network: RoadNetwork, congestion: Optional[CongestionModel] = None,
                 path_finder: Optional[PathFinder] = None,
                 path_reduction: int = PATH_REDUCTION,
                 boundary_increase: int = BOUNDARY_INCREASE,
                 path_floor: int = MIN_BASE_WEIGHT,
                 redistribute_threshold: int = REDISTRIBUTE_THRESHOLD):
        """Initialize traffic controller.

        Args:
            network: Road network to control
            congestion: Congestion model (built on ``network`` if None)
            path_finder: Path finder (built on ``network`` if None)
            path_reduction: Base weight removed from each emergency path road
            boundary_increase: Base weight added to each road leaving the path
            path_floor: Smallest base weight a path road can be lowered to
            redistribute_threshold: Live weight limit used by ``redistribute``
        """
        self.network = network
        self.congestion = congestion or CongestionModel(network)
        self.path_finder = path_finder or PathFinder(network)
        self.path_reduction = path_reduction
        self.boundary_increase = boundary_increase
        self.path_floor = path_floor
        self.redistribute_threshold = redistribute_threshold

        self._episode_ids = itertools.count(1)
        self._pending: Dict[int, EmergencyHandle] = {}

    @property
    def pending_emergencies(self) -> List[EmergencyHandle]:
        """Perturbed episodes still waiting for ``restore``."""
        return list(self._pending.values())

    def shortest_path(self, start: int, end: int) -> Route:
        return self.path_finder.shortest_path(start, end)

    def refresh_congestion(self, rng: np.random.Generator) -> int:
        return self.congestion.refresh(rng)

    def redistribute(self) -> int:
        return self.congestion.redistribute(self.redistribute_threshold)

    def simulate_emergency(self, start: int, end: int) -> Optional[EmergencyHandle]:
        """Clear a route for an emergency vehicle.

        Roads along the current shortest path get faster, roads leaving the
        path get slower to model diverted traffic. Nothing is restored here:
        the caller decides when to call ``restore`` with the returned handle.

        Args:
            start: Origin intersection
            end: Destination intersection

        Returns:
            EmergencyHandle for the pending restoration, or None if ``end``
            is unreachable (the network is left untouched)

        Raises:
            UnknownNode: If either intersection does not exist
            EmergencyError: If a pending episode already perturbs any of the
                roads this one would touch
        """
        route = self.path_finder.shortest_path(start, end)
        if not route.found:
            logger.info(f"Emergency from {start} to {end} skipped: no path.")
            return None

        on_path = path_roads(route.path)
        path_nodes = set(route.path)
        boundary = []
        for node in route.path:
            for neighbor, _ in self.network.neighbors(node):
                key = road_key(node, neighbor)
                if neighbor not in path_nodes and key not in boundary:
                    boundary.append(key)

        handle = EmergencyHandle(
            episode_id=next(self._episode_ids),
            route=route,
            path_roads=on_path,
            boundary_roads=boundary,
            state=EmergencyState.PATH_COMPUTED
        )

        for other in self._pending.values():
            overlap = handle.touched_roads & other.touched_roads
            if overlap:
                raise EmergencyError(
                    f"Emergency episode {other.episode_id} still holds roads {sorted(overlap)}"
                )

        # First touch wins so each road is restored to its pre-episode weight
        for key in on_path + boundary:
            if key not in handle.snapshot:
                handle.snapshot[key] = self.network.road(*key).base_weight

        for key in on_path:
            reduced = max(self.path_floor, handle.snapshot[key] - self.path_reduction)
            self.network.set_base_weight(*key, reduced)

        for key in boundary:
            self.network.set_base_weight(*key, handle.snapshot[key] + self.boundary_increase)

        handle.state = EmergencyState.PERTURBED
        self._pending[handle.episode_id] = handle

        logger.info(
            f"Emergency {handle.episode_id}: route {route.path} (cost {route.cost}), "
            f"{len(on_path)} path road(s), {len(boundary)} boundary road(s) perturbed."
        )
        return handle

    def restore(self, handle: EmergencyHandle) -> int:
        """Put back the base weights recorded when the episode started.

        Congestion factors are left as they are.

        Args:
            handle: Handle returned by ``simulate_emergency``

        Returns:
            int: Number of roads restored

        Raises:
            EmergencyError: If the handle is not pending
        """
        if self._pending.get(handle.episode_id) is not handle:
            raise EmergencyError(
                f"Emergency episode {handle.episode_id} is not pending (state: {handle.state.value})"
            )

        restored = 0
        for key, base_weight in handle.snapshot.items():
            if not self.network.has_road(*key):
                logger.warning(f"Road {key} removed during emergency {handle.episode_id}; skipped.")
                continue
            self.network.set_base_weight(*key, base_weight)
            restored += 1

        handle.snapshot.clear()
        handle.state = EmergencyState.RESTORED
        del self._pending[handle.episode_id]

        logger.info(f"Emergency {handle.episode_id} restored ({restored} road(s)).")
        return restored

    def restore_all(self) -> int:
        """Restore every pending episode, e.g. on shutdown."""
        return sum(self.restore(handle) for handle in self.pending_emergencies)
