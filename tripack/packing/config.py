"""
Packing configuration.

Every tunable constant of the relaxation lives in PackingConfig so tests and
callers can vary them independently. Values can be overridden from a YAML
mapping with load_config().
"""

import logging
import math
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class PackingConfig:
    """Configuration for triangular tile packing."""
    # Sector pairing (degrees)
    sector_threshold: float = 60.0  # half-width of a sector for neighbor pairing
    widened_sector_threshold: float = 70.0  # retry width for empty sectors

    # Interaction weights: w(d, d0) = (d / d0) ** weight_exponent
    weight_exponent: float = -12.0
    pair_weight_distance: float = 2.0  # d0 for tile/tile interactions
    edge_weight_distance: float = 1.0  # d0 for tile/edge interactions
    boundary_band_depth: float = 4.0  # depth of the band probed beyond an edge

    # Removal ranking
    contact_threshold: float = 0.15  # matched edge midpoints closer than this = tight contact
    edge_contact_threshold: float = 0.1  # sector midpoint to edge distance for a tight contact
    contact_bonus: int = 10  # rank bonus per tight tile contact
    edge_contact_bonus: int = 1  # rank bonus per tight edge contact

    # Removal gate
    quality_gate: float = 0.85  # removal only while K is below this
    stagnation_budget: int = 7200  # steps without a new energy minimum before removal
    min_tiles: int = 1  # never remove below this many tiles

    # Integration
    time_step: float = 1.0 / 60.0  # seconds per step
    max_speed: float = 120.0  # clamp on linear velocity, 2 units per step at 60 Hz
    collision_radius: float = 0.1  # radius attached to each rigid body
    coincident_offset: float = 1e-6  # separation substituted for coincident centers

    # Initialization
    use_exact_area: bool = True  # False = Monte-Carlo area and ray-crossing containment
    area_samples: int = 0xFFF
    max_sampling_attempts: int = 100000  # per tile, rejection sampling inside the polygon

    # Stop conditions
    max_steps: int = 60000
    target_quality: Optional[float] = None  # stop once K >= this with zero energy
    settle_steps: int = 60  # consecutive steps the target must hold

    # Diagnostics
    log_every: int = 100  # steps between progress log lines
    energy_window: int = 100  # recent energies kept by the convergence tracker

    def validate(self) -> "PackingConfig":
        """Check value ranges.

        Raises:
            ConfigError: on the first invalid value found
        """
        if not 0 < self.sector_threshold <= self.widened_sector_threshold < 90:
            raise ConfigError(
                "Sector thresholds must satisfy 0 < sector_threshold <= "
                f"widened_sector_threshold < 90, got {self.sector_threshold} "
                f"and {self.widened_sector_threshold}"
            )
        positive = {
            "pair_weight_distance": self.pair_weight_distance,
            "edge_weight_distance": self.edge_weight_distance,
            "boundary_band_depth": self.boundary_band_depth,
            "time_step": self.time_step,
            "max_speed": self.max_speed,
            "collision_radius": self.collision_radius,
            "coincident_offset": self.coincident_offset,
        }
        for name, value in positive.items():
            if not (math.isfinite(value) and value > 0):
                raise ConfigError(f"{name} must be positive, got {value}")
        if not 0 < self.quality_gate <= 1:
            raise ConfigError(f"quality_gate must be in (0, 1], got {self.quality_gate}")
        if self.min_tiles < 1:
            raise ConfigError(f"min_tiles must be at least 1, got {self.min_tiles}")
        for name in ("stagnation_budget", "max_steps", "settle_steps"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative, got {getattr(self, name)}")
        for name in ("area_samples", "max_sampling_attempts", "log_every", "energy_window"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be at least 1, got {getattr(self, name)}")
        if self.target_quality is not None and not self.target_quality > 0:
            raise ConfigError(f"target_quality must be positive, got {self.target_quality}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def with_overrides(self, **overrides: Any) -> "PackingConfig":
        """Copy with selected fields replaced, skipping None values."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {unknown}")
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values).validate()


def load_config(path: Union[str, Path],
                base: Optional[PackingConfig] = None) -> PackingConfig:
    """Load configuration overrides from a YAML mapping.

    Args:
        path: YAML file whose top-level keys are PackingConfig field names
        base: Configuration to override (defaults to PackingConfig())

    Raises:
        ConfigError: if the file is missing, a symlink, not a mapping, or
            names unknown keys
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    # Security: Check for symlinks to prevent reading unintended files
    if config_path.is_symlink():
        raise ConfigError(f"Configuration file cannot be a symlink: {config_path}")

    with open(config_path, "r") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Configuration file must contain a mapping, got {type(data).__name__}"
        )

    config = (base or PackingConfig()).with_overrides(**data)
    logger.info("Loaded packing configuration from %s (%d overrides)",
                config_path, len(data))
    return config
