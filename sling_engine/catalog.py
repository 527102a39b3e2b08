"""
Sling Siege Engine — Type Catalogs

Static block and projectile definitions keyed by string tag.
Catalogs are read-only lookup tables; an unknown tag is a setup bug and
raises ConfigurationError instead of falling back to a default type.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional


class ConfigurationError(ValueError):
    """Raised when a block/projectile tag or a config value is invalid."""


# ---------- Data Classes ----------
@dataclass(frozen=True)
class BlockType:
    """Material properties of a destructible block."""
    name: str
    health: float             # damage budget before the block is destroyed
    density: float            # divides incoming damage
    color: str = "#8B4513"    # display color, unused by the simulation

    def __post_init__(self):
        if not self.health > 0:
            raise ConfigurationError(f"Block type '{self.name}': health must be positive, got {self.health}")
        if not self.density > 0:
            raise ConfigurationError(f"Block type '{self.name}': density must be positive, got {self.density}")


@dataclass(frozen=True)
class ProjectileType:
    """Physical properties of a launched bird."""
    name: str
    mass: float
    base_damage: float
    ability: Optional[str] = None

    def __post_init__(self):
        if not self.mass > 0:
            raise ConfigurationError(f"Projectile type '{self.name}': mass must be positive, got {self.mass}")
        if self.base_damage < 0:
            raise ConfigurationError(
                f"Projectile type '{self.name}': base_damage must be non-negative, got {self.base_damage}"
            )


# Predefined block types
WOOD  = BlockType(name="wood",  health=50.0,  density=1.0, color="#8B4513")
STONE = BlockType(name="stone", health=120.0, density=2.5, color="#A9A9A9")
GLASS = BlockType(name="glass", health=25.0,  density=0.6, color="#ADD8E6")

# Predefined projectile types
RED_BIRD    = ProjectileType(name="red",    mass=1.0, base_damage=30.0)
BLUE_BIRD   = ProjectileType(name="blue",   mass=0.6, base_damage=18.0, ability="split")
YELLOW_BIRD = ProjectileType(name="yellow", mass=0.8, base_damage=25.0, ability="speed_boost")

BLOCK_TYPES: Mapping[str, BlockType] = MappingProxyType({t.name: t for t in (WOOD, STONE, GLASS)})
PROJECTILE_TYPES: Mapping[str, ProjectileType] = MappingProxyType(
    {t.name: t for t in (RED_BIRD, BLUE_BIRD, YELLOW_BIRD)}
)


# ---------- Lookups ----------
def lookup_block_type(tag: str, catalog: Mapping[str, BlockType] = BLOCK_TYPES) -> BlockType:
    """Resolve a block type tag, failing fast on unknown tags."""
    try:
        return catalog[tag]
    except KeyError:
        raise ConfigurationError(
            f"Unknown block type '{tag}' (known: {sorted(catalog)})"
        ) from None


def lookup_projectile_type(
    tag: str, catalog: Mapping[str, ProjectileType] = PROJECTILE_TYPES,
) -> ProjectileType:
    """Resolve a projectile type tag, failing fast on unknown tags."""
    try:
        return catalog[tag]
    except KeyError:
        raise ConfigurationError(
            f"Unknown projectile type '{tag}' (known: {sorted(catalog)})"
        ) from None


def build_block_catalog(raw: Mapping[str, Mapping]) -> Mapping[str, BlockType]:
    """Build an immutable block catalog from a {tag: {health, density, color}} mapping."""
    catalog = {}
    for tag, props in raw.items():
        try:
            catalog[tag] = BlockType(
                name=tag,
                health=float(props["health"]),
                density=float(props["density"]),
                color=str(props.get("color", "#8B4513")),
            )
        except KeyError as exc:
            raise ConfigurationError(f"Block type '{tag}' missing field {exc}") from None
    return MappingProxyType(catalog)


def build_projectile_catalog(raw: Mapping[str, Mapping]) -> Mapping[str, ProjectileType]:
    """Build an immutable projectile catalog from a {tag: {mass, base_damage, ability}} mapping."""
    catalog = {}
    for tag, props in raw.items():
        try:
            catalog[tag] = ProjectileType(
                name=tag,
                mass=float(props["mass"]),
                base_damage=float(props["base_damage"]),
                ability=props.get("ability"),
            )
        except KeyError as exc:
            raise ConfigurationError(f"Projectile type '{tag}' missing field {exc}") from None
    return MappingProxyType(catalog)
