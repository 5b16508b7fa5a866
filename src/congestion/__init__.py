"""Congestion model: fluctuating road weights and load redistribution."""

import logging
from enum import Enum
from typing import Dict, Mapping

import numpy as np

from network import RoadKey, RoadNetwork

logger = logging.getLogger(__name__)

MIN_CONGESTION_FACTOR = 1.0
MAX_CONGESTION_FACTOR = 2.5
REDISTRIBUTE_THRESHOLD = 20


class CongestionLevel(Enum):
    """Coarse traffic level of a road, by live weight."""
    LIGHT = "light"
    MODERATE = "moderate"
    HEAVY = "heavy"


class WeightChange(Enum):
    INCREASED = "increased"
    DECREASED = "decreased"
    UNCHANGED = "unchanged"


def classify(live_weight: int) -> CongestionLevel:
    """Map a live weight to a congestion level.

    Args:
        live_weight: Congestion-adjusted travel time

    Returns:
        CongestionLevel: LIGHT up to 8, MODERATE up to 15, HEAVY above
    """
    if live_weight <= 8:
        return CongestionLevel.LIGHT
    elif live_weight <= 15:
        return CongestionLevel.MODERATE
    else:
        return CongestionLevel.HEAVY


def compare_live_weights(before: Mapping[RoadKey, int],
                         after: Mapping[RoadKey, int]) -> Dict[RoadKey, WeightChange]:
    """Compare two live weight snapshots road by road.

    Roads missing from ``before`` are reported as unchanged; roads missing
    from ``after`` (removed in between) are left out.
    """
    changes = {}
    for key, current in after.items():
        previous = before.get(key, current)
        if current > previous:
            changes[key] = WeightChange.INCREASED
        elif current < previous:
            changes[key] = WeightChange.DECREASED
        else:
            changes[key] = WeightChange.UNCHANGED
    return changes


class CongestionModel:
    """Mutates per-road congestion factors of a road network."""

    def __init__(self, network: RoadNetwork, min_factor: float = MIN_CONGESTION_FACTOR,
                 max_factor: float = MAX_CONGESTION_FACTOR,
                 threshold: int = REDISTRIBUTE_THRESHOLD):
        """Initialize congestion model.

        Args:
            network: Road network whose roads are mutated
            min_factor: Lower bound of drawn congestion factors (inclusive)
            max_factor: Upper bound of drawn congestion factors (exclusive)
            threshold: Default live weight above which redistribution resets a road
        """
        if not 1.0 <= min_factor < max_factor:
            raise ValueError(f"Invalid congestion factor range [{min_factor}, {max_factor})")

        self.network = network
        self.min_factor = min_factor
        self.max_factor = max_factor
        self.threshold = threshold

    def refresh(self, rng: np.random.Generator) -> int:
        """Draw a new congestion factor for every road.

        Roads are visited in key order so a seeded generator always yields
        the same assignment.

        Args:
            rng: Seedable random generator providing ``uniform(low, high)``

        Returns:
            int: Number of roads updated
        """
        # uniform() may round up to the upper bound
        upper = np.nextafter(self.max_factor, self.min_factor)

        roads = self.network.roads()
        for road in roads:
            factor = float(rng.uniform(self.min_factor, self.max_factor))
            road.congestion_factor = min(factor, float(upper))

        logger.info("Traffic conditions updated.")
        return len(roads)

    def redistribute(self, threshold: int = None) -> int:
        """Reset congestion on every road whose live weight exceeds a threshold.

        This is a crude load-shedding heuristic, not an optimizer: heavily
        congested roads simply go back to free flow.

        Args:
            threshold: Live weight limit (model default if None)

        Returns:
            int: Number of roads reset
        """
        if threshold is None:
            threshold = self.threshold

        reset = 0
        for road in self.network.roads():
            if road.live_weight > threshold:
                road.congestion_factor = 1.0
                reset += 1

        logger.info(f"Redistributed traffic: heavy congestion eased on {reset} road(s).")
        return reset

    def level_counts(self) -> Dict[CongestionLevel, int]:
        """Number of roads at each congestion level."""
        counts = {level: 0 for level in CongestionLevel}
        for road in self.network.roads():
            counts[classify(road.live_weight)] += 1
        return counts
