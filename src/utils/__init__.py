"""Utility functions for the city traffic simulation."""

import logging
from typing import Dict, Optional

import numpy as np

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """Configure root logging for scripts.

    Args:
        level: Logging level
        log_file: Optional file to mirror log output to
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)


def set_seed(seed: int = 42) -> np.random.Generator:
    """Create a seeded random generator for reproducible runs.

    Args:
        seed: Random seed value

    Returns:
        np.random.Generator: Generator seeded with ``seed``, to be passed to
        congestion refreshes
    """
    logger.info(f"Random generator seeded with {seed}")
    return np.random.default_rng(seed)


def format_time(seconds: float) -> str:
    """Format time duration in a human-readable format.

    Args:
        seconds: Time duration in seconds

    Returns:
        str: Formatted time string
    """
    if seconds < 60:
        return f"{seconds:.2f}s"
    elif seconds < 3600:
        return f"{seconds/60:.2f}m"
    else:
        return f"{seconds/3600:.2f}h"


def format_summary_table(summary: Dict[str, float]) -> str:
    """Format a flat dictionary of run statistics as an aligned text table."""
    if not summary:
        return ""
    width = max(len(name) for name in summary)
    lines = ["Simulation Summary", "=" * (width + 14)]
    for name, value in summary.items():
        if isinstance(value, float):
            lines.append(f"{name:<{width}}  {value:>12.2f}")
        else:
            lines.append(f"{name:<{width}}  {value!s:>12}")
    return "\n".join(lines)
