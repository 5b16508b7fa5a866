"""Headless simulation driver on a simulated clock."""

import heapq
import itertools
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import numpy as np
from tqdm import tqdm

from network import RoadNetwork, create_grid_city
from congestion import CongestionLevel, CongestionModel
from control import EmergencyHandle, TrafficController
from utils import set_seed, format_time

logger = logging.getLogger(__name__)


class TrafficSimulation:
    """Drives a traffic controller through scheduled events.

    Plays the part of the interactive front-end: periodic congestion
    refreshes, optional redistribution, and an emergency whose restoration
    fires a fixed delay after it started. Time is simulated, nothing sleeps.
    """

    def __init__(self, controller: TrafficController, config: Any,
                 rng: Optional[np.random.Generator] = None):
        """Initialize simulation.

        Args:
            controller: Controller owning the road network
            config: Configuration object
            rng: Generator for congestion refreshes (seeded from config if None)
        """
        self.controller = controller
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng(config.seed)

        self.now = 0.0
        self._events: List = []
        self._sequence = itertools.count()

        # Run state
        self.ticks: List[Dict[str, Any]] = []
        self.emergencies: List[Dict[str, Any]] = []
        self._records: Dict[int, Dict[str, Any]] = {}
        self.refreshes = 0
        self.redistributions = 0
        self.roads_reset = 0

    @property
    def network(self) -> RoadNetwork:
        return self.controller.network

    def schedule(self, at: float, action: Callable[[], None]) -> None:
        """Queue an action at a simulated time; equal times run in queue order."""
        heapq.heappush(self._events, (at, next(self._sequence), action))

    def _record_tick(self) -> Dict[str, Any]:
        roads = self.network.roads()
        live = [road.live_weight for road in roads]
        counts = self.controller.congestion.level_counts()

        tick = {
            'time': self.now,
            'mean_live_weight': float(np.mean(live)) if live else 0.0,
            'max_live_weight': int(max(live)) if live else 0,
        }
        tick.update({level.value: counts[level] for level in CongestionLevel})
        self.ticks.append(tick)
        return tick

    def _refresh(self) -> None:
        self.controller.refresh_congestion(self.rng)
        self.refreshes += 1

        every = self.config.simulation.redistribute_every
        if every and self.refreshes % every == 0:
            self.roads_reset += self.controller.redistribute()
            self.redistributions += 1

        self._record_tick()

    def _start_emergency(self, start: int, end: int) -> None:
        handle = self.controller.simulate_emergency(start, end)
        record = {'start': start, 'end': end, 'time': self.now, 'path': [], 'cost': None}
        self.emergencies.append(record)
        if handle is None:
            return

        record.update({
            'episode_id': handle.episode_id,
            'path': handle.route.path,
            'cost': handle.route.cost,
            'perturbed_cost': self.controller.path_finder.path_cost(handle.route.path),
            'path_roads': len(handle.path_roads),
            'boundary_roads': len(handle.boundary_roads),
            'restored_at': None,
        })
        self._records[handle.episode_id] = record
        self.schedule(self.now + self.config.emergency.restore_delay,
                      lambda: self._restore(handle, record))

    def _restore(self, handle: EmergencyHandle, record: Dict[str, Any]) -> None:
        record['roads_restored'] = self.controller.restore(handle)
        record['restored_at'] = self.now

    def run(self) -> Dict[str, Any]:
        """Run the simulation until the configured duration.

        Emergencies still pending at the end are restored before returning.

        Returns:
            Simulation results dictionary
        """
        sim_config = self.config.simulation
        interval = self.config.congestion.refresh_interval
        if interval <= 0:
            raise ValueError(f"Refresh interval must be positive, got {interval}")

        num_refreshes = int(sim_config.duration // interval)
        for i in range(1, num_refreshes + 1):
            self.schedule(i * interval, self._refresh)

        if sim_config.emergency_start is not None and sim_config.emergency_end is not None:
            start, end = sim_config.emergency_start, sim_config.emergency_end
            self.schedule(sim_config.emergency_at, lambda: self._start_emergency(start, end))

        logger.info(f"Starting simulation: {sim_config.duration}s simulated, "
                    f"{num_refreshes} congestion refreshes")
        start_time = time.time()

        self._record_tick()
        with tqdm(total=num_refreshes, desc="Simulating", disable=not sim_config.show_progress) as pbar:
            while self._events and self._events[0][0] <= sim_config.duration:
                at, _, action = heapq.heappop(self._events)
                self.now = at
                before = len(self.ticks)
                action()
                pbar.update(len(self.ticks) - before)

        self.now = sim_config.duration
        for handle in self.controller.pending_emergencies:
            logger.info(f"Restoring emergency {handle.episode_id} still pending at end of run")
            self._restore(handle, self._records.get(handle.episode_id, {}))
        self._events.clear()

        wall_time = time.time() - start_time
        logger.info(f"Simulation completed in {format_time(wall_time)}")

        return {
            'ticks': self.ticks,
            'emergencies': self.emergencies,
            'refreshes': self.refreshes,
            'redistributions': self.redistributions,
            'roads_reset': self.roads_reset,
            'simulated_time': sim_config.duration,
            'wall_time': wall_time,
        }


def summarize_results(results: Dict[str, Any]) -> Dict[str, float]:
    """Flatten simulation results into headline statistics."""
    ticks = results['simulation']['ticks']
    mean_weights = [tick['mean_live_weight'] for tick in ticks]

    summary = {
        'intersections': results['network']['intersections'],
        'roads': results['network']['roads'],
        'refreshes': results['simulation']['refreshes'],
        'mean_live_weight': float(np.mean(mean_weights)) if mean_weights else 0.0,
        'peak_live_weight': max((tick['max_live_weight'] for tick in ticks), default=0),
        'redistributions': results['simulation']['redistributions'],
        'roads_reset': results['simulation']['roads_reset'],
        'emergencies': len(results['simulation']['emergencies']),
    }
    return summary


def run_simulation(config: Any) -> Dict[str, Any]:
    """Build a grid city and run a simulation on it.

    Args:
        config: Configuration object

    Returns:
        Network description and simulation results
    """
    # Set random seed
    rng = set_seed(config.seed)

    network = RoadNetwork(
        min_weight=config.network.min_weight,
        max_weight=config.network.max_weight,
        auto_create=config.network.auto_create_nodes
    )
    create_grid_city(
        rows=config.layout.rows,
        cols=config.layout.cols,
        rng=rng,
        min_weight=config.layout.min_weight,
        max_weight=config.layout.max_weight,
        network=network
    )

    congestion = CongestionModel(
        network,
        min_factor=config.congestion.min_factor,
        max_factor=config.congestion.max_factor,
        threshold=config.congestion.redistribute_threshold
    )
    controller = TrafficController(
        network,
        congestion=congestion,
        path_reduction=config.emergency.path_reduction,
        boundary_increase=config.emergency.boundary_increase,
        path_floor=config.emergency.path_floor,
        redistribute_threshold=config.congestion.redistribute_threshold
    )

    # Catch emergency endpoints that do not exist in the generated grid
    for node in (config.simulation.emergency_start, config.simulation.emergency_end):
        if node is not None and node not in network:
            raise ValueError(
                f"Emergency intersection {node} not in the {config.layout.rows}x{config.layout.cols} "
                f"grid (ids 1-{len(network)})"
            )

    simulation = TrafficSimulation(controller, config, rng)
    simulation_results = simulation.run()

    return {
        'network': {
            'intersections': len(network),
            'roads': network.num_roads,
            'base_weights': {f"{road.u}-{road.v}": road.base_weight for road in network.roads()},
        },
        'simulation': simulation_results
    }
