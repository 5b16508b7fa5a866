"""Configuration management for the city traffic simulation."""

import logging
from dataclasses import dataclass, asdict
from typing import Optional
import yaml
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class NetworkConfig:
    """Configuration for the road network."""
    min_weight: int = 5
    max_weight: int = 30
    auto_create_nodes: bool = False


@dataclass
class CongestionConfig:
    """Configuration for the congestion model."""
    min_factor: float = 1.0
    max_factor: float = 2.5  # Exclusive
    redistribute_threshold: int = 20
    refresh_interval: float = 20.0  # Simulated seconds between refreshes


@dataclass
class EmergencyConfig:
    """Configuration for emergency rerouting."""
    path_reduction: int = 10
    boundary_increase: int = 5
    path_floor: int = 5  # Path roads are never lowered below this
    restore_delay: float = 5.0  # Simulated seconds until weights are restored


@dataclass
class LayoutConfig:
    """Configuration for the generated grid city."""
    rows: int = 5
    cols: int = 10
    min_weight: int = 5
    max_weight: int = 14


@dataclass
class SimulationConfig:
    """Configuration for a headless simulation run."""
    duration: float = 300.0  # Simulated seconds
    redistribute_every: int = 0  # Refreshes between redistributions, 0 disables
    emergency_start: Optional[int] = None
    emergency_end: Optional[int] = None
    emergency_at: float = 60.0
    show_progress: bool = True


@dataclass
class Config:
    """Main configuration class."""
    network: NetworkConfig = None
    congestion: CongestionConfig = None
    emergency: EmergencyConfig = None
    layout: LayoutConfig = None
    simulation: SimulationConfig = None

    # General settings
    seed: int = 42
    output_dir: str = "outputs"
    experiment_name: str = "city_simulation"

    def __post_init__(self):
        """Post-initialization setup."""
        # Initialize default configs if None
        if self.network is None:
            self.network = NetworkConfig()
        if self.congestion is None:
            self.congestion = CongestionConfig()
        if self.emergency is None:
            self.emergency = EmergencyConfig()
        if self.layout is None:
            self.layout = LayoutConfig()
        if self.simulation is None:
            self.simulation = SimulationConfig()

    @classmethod
    def from_yaml(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Config: Loaded configuration
        """
        with open(config_path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}

        # Convert nested dictionaries to config objects
        network_config = NetworkConfig(**config_dict.get('network', {}))
        congestion_config = CongestionConfig(**config_dict.get('congestion', {}))
        emergency_config = EmergencyConfig(**config_dict.get('emergency', {}))
        layout_config = LayoutConfig(**config_dict.get('layout', {}))
        simulation_config = SimulationConfig(**config_dict.get('simulation', {}))

        # Extract general settings
        general_settings = {k: v for k, v in config_dict.items()
                          if k not in ['network', 'congestion', 'emergency', 'layout', 'simulation']}

        return cls(
            network=network_config,
            congestion=congestion_config,
            emergency=emergency_config,
            layout=layout_config,
            simulation=simulation_config,
            **general_settings
        )

    def to_yaml(self, config_path: str) -> None:
        """Save configuration to YAML file.

        Args:
            config_path: Path to save YAML configuration file
        """
        with open(config_path, 'w') as f:
            yaml.dump(asdict(self), f, default_flow_style=False, indent=2)


def get_default_config() -> Config:
    """Get default configuration.

    Returns:
        Config: Default configuration
    """
    return Config()


def create_config_file(config_path: str = "configs/default.yaml") -> None:
    """Create a default configuration file.

    Args:
        config_path: Path to save the configuration file
    """
    config = get_default_config()
    Path(config_path).parent.mkdir(parents=True, exist_ok=True)
    config.to_yaml(config_path)
    logger.info(f"Default configuration saved to {config_path}")
