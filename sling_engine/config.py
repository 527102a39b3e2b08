"""
Sling Siege Engine — Configuration

Play-field geometry, physics constants and type catalogs, supplied once at
startup and never mutated by the engine. Coordinates are screen pixels with
y growing downward; time is in simulated seconds.
"""

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Mapping, Optional, Union

import yaml

from sling_engine.catalog import (
    BLOCK_TYPES,
    PROJECTILE_TYPES,
    BlockType,
    ConfigurationError,
    ProjectileType,
    build_block_catalog,
    build_projectile_catalog,
)


@dataclass(frozen=True)
class PhysicsConfig:
    """Physics constants and play-field geometry."""
    field_width: float = 1000.0
    field_height: float = 600.0
    ground_height: float = 20.0
    launch_x: float = 150.0
    launch_y: float = 460.0
    gravity: float = 120.0
    air_resistance: float = 0.99
    dt: float = 0.05
    velocity_scale: float = 12.0
    max_samples: int = 400
    min_launch_speed: float = 0.5
    velocity_normalization: float = 20.0
    velocity_cap: float = 2.0
    critical_damage_threshold: float = 20.0
    damage_multiplier: float = 1.0
    projectile_radius: float = 15.0
    destroy_reward: int = 100
    support_tolerance_y: float = 6.0
    support_tolerance_x: float = 10.0
    drag_divisor: float = 5.0

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not math.isfinite(value):
                raise ConfigurationError(f"Physics config '{f.name}' must be finite, got {value}")

        positive = ("field_width", "field_height", "dt", "velocity_scale",
                    "velocity_normalization", "velocity_cap", "projectile_radius", "drag_divisor")
        for name in positive:
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"Physics config '{name}' must be positive, got {getattr(self, name)}")

        non_negative = ("ground_height", "min_launch_speed", "critical_damage_threshold",
                        "damage_multiplier", "destroy_reward", "support_tolerance_y", "support_tolerance_x")
        for name in non_negative:
            if getattr(self, name) < 0:
                raise ConfigurationError(f"Physics config '{name}' must be >= 0, got {getattr(self, name)}")

        if not 0.0 < self.air_resistance < 1.0:
            raise ConfigurationError(f"air_resistance must be in (0, 1), got {self.air_resistance}")
        for name in ("max_samples", "destroy_reward"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"Physics config '{name}' must be an integer, got {value!r}")
        if self.max_samples < 1:
            raise ConfigurationError(f"max_samples must be >= 1, got {self.max_samples}")
        if self.ground_height >= self.field_height:
            raise ConfigurationError("ground_height must be smaller than field_height")

    @property
    def ground_y(self) -> float:
        """y coordinate of the ground surface."""
        return self.field_height - self.ground_height

    @property
    def launch_origin(self):
        return (self.launch_x, self.launch_y)

    @classmethod
    def from_dict(cls, overrides: Optional[Mapping] = None) -> "PhysicsConfig":
        """Merge overrides onto the defaults; unknown keys are rejected."""
        overrides = dict(overrides or {})
        unknown = set(overrides) - set(DEFAULT_PHYSICS_CONFIG)
        if unknown:
            raise ConfigurationError(f"Unknown physics config keys: {sorted(unknown)}")
        merged = {**DEFAULT_PHYSICS_CONFIG, **overrides}
        # YAML may spell whole numbers as floats (400.0); fractional values are rejected later
        for name in ("max_samples", "destroy_reward"):
            value = merged[name]
            if isinstance(value, float) and value.is_integer():
                merged[name] = int(value)
        return cls(**merged)


# Defaults as a plain dict, for merging with YAML overrides
DEFAULT_PHYSICS_CONFIG = {f.name: f.default for f in fields(PhysicsConfig)}


@dataclass(frozen=True)
class GameConfig:
    """Everything the engine reads: physics constants plus both catalogs."""
    physics: PhysicsConfig = field(default_factory=PhysicsConfig)
    block_types: Mapping[str, BlockType] = field(default_factory=lambda: BLOCK_TYPES)
    projectile_types: Mapping[str, ProjectileType] = field(default_factory=lambda: PROJECTILE_TYPES)

    @classmethod
    def from_dict(cls, data: Optional[Mapping] = None) -> "GameConfig":
        """Build from a parsed config mapping with optional physics/block_types/projectile_types sections."""
        data = data or {}
        physics = PhysicsConfig.from_dict(data.get("physics"))
        block_types = (
            build_block_catalog(data["block_types"]) if data.get("block_types") else BLOCK_TYPES
        )
        projectile_types = (
            build_projectile_catalog(data["projectile_types"]) if data.get("projectile_types")
            else PROJECTILE_TYPES
        )
        return cls(physics=physics, block_types=block_types, projectile_types=projectile_types)


DEFAULT_CONFIG = GameConfig()


def load_game_config(path: Union[str, Path]) -> GameConfig:
    """Load a GameConfig from a YAML file."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: expected a mapping at top level")
    return GameConfig.from_dict(data)
