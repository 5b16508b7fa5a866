#!/usr/bin/env python3
"""Quick test script to verify the city traffic simulation works."""

import sys
from pathlib import Path

# Add src to path
sys.path.append(str(Path(__file__).parent / "src"))

from utils import set_seed
from utils.config import get_default_config
from network import create_grid_city
from control import TrafficController


def test_basic_functionality():
    """Test basic functionality of the traffic simulation."""
    print("🚦 Testing City Traffic Simulation")
    print("=" * 50)

    # Set random seed
    rng = set_seed(42)
    print("✅ Random seed set")

    # Load configuration
    config = get_default_config()
    print(f"✅ Configuration loaded: {config.layout.rows}x{config.layout.cols} grid")

    # Build the city
    print("\n🏙️ Building city...")
    network = create_grid_city(config.layout.rows, config.layout.cols, rng)
    controller = TrafficController(network)
    print(f"✅ City built: {len(network)} intersections, {network.num_roads} roads")
    assert network.num_roads == 85

    # Congestion
    print("\n📈 Updating traffic conditions...")
    controller.refresh_congestion(rng)
    heavy = sum(1 for road in network.roads() if road.live_weight > 20)
    print(f"✅ Roads above threshold: {heavy}")
    controller.redistribute()
    assert all(road.live_weight <= 20 or road.congestion_factor == 1.0 for road in network.roads())
    print("✅ Traffic redistributed")

    # Routing
    print("\n🧭 Finding shortest path...")
    route = controller.shortest_path(1, 50)
    print(f"✅ Path: {route.path}")
    print(f"✅ Total travel time: {route.cost}")
    assert route.path[0] == 1 and route.path[-1] == 50

    # Emergency
    print("\n🚑 Simulating emergency...")
    before = {road.key: road.base_weight for road in network.roads()}
    handle = controller.simulate_emergency(1, 50)
    print(f"✅ Perturbed {len(handle.path_roads)} path roads and "
          f"{len(handle.boundary_roads)} boundary roads")
    controller.restore(handle)
    assert {road.key: road.base_weight for road in network.roads()} == before
    print("✅ Weights restored")

    print("\n🎉 Basic tests passed!")
    print("\nTo run the full project:")
    print("1. Install dependencies: pip install -e .[test]")
    print("2. Run 'python simulate.py --emergency 1 50' to run a simulation")
    print("3. Run 'pytest' for the test suite")


if __name__ == "__main__":
    test_basic_functionality()
