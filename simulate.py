#!/usr/bin/env python3
"""Command line runner for the city traffic simulation."""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.append(str(Path(__file__).parent / "src"))

from utils import setup_logging, format_summary_table
from utils.config import Config, create_config_file
from simulation import run_simulation, summarize_results

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simulate congestion and emergency rerouting on a grid city")
    parser.add_argument("--config", type=str, default="configs/default.yaml",
                       help="Path to configuration file")
    parser.add_argument("--rows", type=int, help="Grid rows")
    parser.add_argument("--cols", type=int, help="Grid columns")
    parser.add_argument("--duration", type=float, help="Simulated seconds to run")
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--emergency", type=int, nargs=2, metavar=("START", "END"),
                       help="Dispatch an emergency vehicle between two intersections")
    parser.add_argument("--emergency_at", type=float, help="Simulated time of the emergency")
    parser.add_argument("--redistribute_every", type=int,
                       help="Redistribute traffic every N congestion refreshes")
    parser.add_argument("--output_dir", type=str, help="Output directory")
    parser.add_argument("--experiment_name", type=str, help="Experiment name")
    parser.add_argument("--no_progress", action="store_true", help="Hide the progress bar")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Override configuration values with command line arguments."""
    if args.rows:
        config.layout.rows = args.rows
    if args.cols:
        config.layout.cols = args.cols
    if args.duration:
        config.simulation.duration = args.duration
    if args.seed is not None:
        config.seed = args.seed
    if args.emergency:
        config.simulation.emergency_start, config.simulation.emergency_end = args.emergency
    if args.emergency_at is not None:
        config.simulation.emergency_at = args.emergency_at
    if args.redistribute_every is not None:
        config.simulation.redistribute_every = args.redistribute_every
    if args.output_dir:
        config.output_dir = args.output_dir
    if args.experiment_name:
        config.experiment_name = args.experiment_name
    if args.no_progress:
        config.simulation.show_progress = False
    return config


def main(argv=None):
    """Main simulation function."""
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    # Load configuration
    if Path(args.config).exists():
        logger.info(f"Loading configuration from {args.config}")
        config = Config.from_yaml(args.config)
    else:
        logger.info("Creating default configuration")
        create_config_file(args.config)
        config = Config.from_yaml(args.config)

    config = apply_overrides(config, args)
    logger.info(f"Configuration: {config}")

    results = run_simulation(config)

    for record in results['simulation']['emergencies']:
        if record['path']:
            logger.info(
                f"Emergency {record['start']} -> {record['end']}: path {record['path']}, "
                f"travel time {record['cost']} (during episode: {record['perturbed_cost']})"
            )
        else:
            logger.info(f"Emergency {record['start']} -> {record['end']}: no path found")

    summary = summarize_results(results)
    logger.info(f"\n{format_summary_table(summary)}")

    # Save results
    output_dir = Path(config.output_dir) / config.experiment_name
    output_dir.mkdir(parents=True, exist_ok=True)

    config.to_yaml(output_dir / "config.yaml")
    with open(output_dir / "results.json", "w") as f:
        json.dump({'summary': summary, **results}, f, indent=2)

    logger.info(f"Results saved to {output_dir}")
    return results


if __name__ == "__main__":
    main()
