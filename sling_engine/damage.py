"""
Sling Siege Engine — Damage Model

Impact damage from effective velocity, projectile and block material.
"""

import math

from sling_engine.catalog import lookup_block_type, lookup_projectile_type
from sling_engine.config import DEFAULT_CONFIG, GameConfig


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward +inf (2.5 → 3, -2.5 → -2)."""
    return int(math.floor(value + 0.5))


def velocity_factor(velocity: float, config: GameConfig = DEFAULT_CONFIG) -> float:
    """Normalized impact velocity, capped so extreme launches stay bounded."""
    physics = config.physics
    return min(max(velocity, 0.0) / physics.velocity_normalization, physics.velocity_cap)


def compute_damage(
    velocity: float,
    projectile_type: str,
    block_type: str,
    config: GameConfig = DEFAULT_CONFIG,
) -> int:
    """Damage dealt by one impact.

        damage = round(base_damage * min(v / v_norm, v_cap) / density * multiplier)

    Args:
        velocity: Effective velocity at the impact sample (launch speed
            attenuated by air resistance, see ballistics.effective_velocity).
        projectile_type: Projectile catalog tag.
        block_type: Block catalog tag.
        config: Physics constants and catalogs.

    Raises:
        ConfigurationError: unknown projectile or block tag.
    """
    projectile = lookup_projectile_type(projectile_type, config.projectile_types)
    block = lookup_block_type(block_type, config.block_types)
    raw = (
        projectile.base_damage
        * velocity_factor(velocity, config)
        / block.density
        * config.physics.damage_multiplier
    )
    return round_half_up(raw)


def is_critical(damage: float, config: GameConfig = DEFAULT_CONFIG) -> bool:
    """A critical hit spends the rest of the shot."""
    return damage > config.physics.critical_damage_threshold
