"""
Sling Siege Engine
Projectile flight, block collision, damage and structural scoring.
"""

from sling_engine.ballistics import (
    TrajectorySample,
    aim_from_drag,
    compute_launch_velocity,
    effective_velocity,
    simulate_trajectory,
)
from sling_engine.catalog import (
    BLOCK_TYPES,
    PROJECTILE_TYPES,
    BlockType,
    ConfigurationError,
    ProjectileType,
)
from sling_engine.collision import (
    Block,
    CollisionEvent,
    circle_intersects_block,
)
from sling_engine.config import (
    DEFAULT_CONFIG,
    GameConfig,
    PhysicsConfig,
    load_game_config,
)
from sling_engine.damage import compute_damage
from sling_engine.session import GameOverError, GameSession, ShotRecord
from sling_engine.simulator import ShotResult, simulate_shot
from sling_engine.structure import structural_damage, structural_score

__all__ = [
    "TrajectorySample",
    "aim_from_drag",
    "compute_launch_velocity",
    "effective_velocity",
    "simulate_trajectory",
    "BLOCK_TYPES",
    "PROJECTILE_TYPES",
    "BlockType",
    "ConfigurationError",
    "ProjectileType",
    "Block",
    "CollisionEvent",
    "circle_intersects_block",
    "DEFAULT_CONFIG",
    "GameConfig",
    "PhysicsConfig",
    "load_game_config",
    "compute_damage",
    "GameOverError",
    "GameSession",
    "ShotRecord",
    "ShotResult",
    "simulate_shot",
    "structural_damage",
    "structural_score",
]
