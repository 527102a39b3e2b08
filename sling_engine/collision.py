"""
Sling Siege Engine — Collision Detection

Hit detection between the circular bird and axis-aligned rectangular blocks.
Uses the closest-point test: clamp the circle center into the rectangle and
compare squared distances, so no square roots and no tolerance slop.
"""

import math
from dataclasses import dataclass
from typing import Mapping

import numpy as np

from sling_engine.catalog import BLOCK_TYPES, BlockType, lookup_block_type


# ---------- Data Classes ----------
@dataclass
class Block:
    """A destructible rectangle. (x, y) is the top-left corner, y grows downward."""
    id: int
    x: float
    y: float
    width: float = 60.0
    height: float = 60.0
    type: str = "wood"
    damage: float = 0.0           # accumulated, never decreases

    @property
    def left(self) -> float:
        return self.x

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def top(self) -> float:
        return self.y

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2.0

    def is_destroyed(self, catalog: Mapping[str, BlockType] = BLOCK_TYPES) -> bool:
        """True once accumulated damage reaches the type's health budget."""
        return self.damage >= lookup_block_type(self.type, catalog).health

    def to_dict(self) -> dict:
        """JSON-serializable representation."""
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "type": self.type,
            "damage": self.damage,
        }


@dataclass(frozen=True)
class CollisionEvent:
    """One recorded impact of a shot."""
    block_id: int
    x: float
    y: float
    damage: int
    t: float


# ---------- Validation ----------
def validate_block(block: Block, catalog: Mapping[str, BlockType] = BLOCK_TYPES) -> None:
    """Reject blocks the simulation cannot reason about.

    Raises:
        ValueError: non-finite coordinates, non-positive size or negative damage.
        ConfigurationError: block type missing from the catalog.
    """
    coords = (block.x, block.y, block.width, block.height, block.damage)
    if not all(math.isfinite(v) for v in coords):
        raise ValueError(f"Block {block.id}: non-finite geometry or damage {coords}")
    if block.width <= 0 or block.height <= 0:
        raise ValueError(f"Block {block.id}: width and height must be positive, got {block.width}x{block.height}")
    if block.damage < 0:
        raise ValueError(f"Block {block.id}: damage must be non-negative, got {block.damage}")
    lookup_block_type(block.type, catalog)


# ---------- Hit Detection ----------
def closest_point_on_block(px: float, py: float, block: Block) -> np.ndarray:
    """Point of the block rectangle closest to (px, py), by per-axis clamping."""
    return np.array([
        np.clip(px, block.left, block.right),
        np.clip(py, block.top, block.bottom),
    ])


def circle_intersects_block(px: float, py: float, radius: float, block: Block) -> bool:
    """True if a circle of `radius` centered at (px, py) overlaps the block.

    Touching (distance exactly equal to radius) counts as a hit.
    """
    closest = closest_point_on_block(px, py, block)
    dx = px - closest[0]
    dy = py - closest[1]
    return bool(dx * dx + dy * dy <= radius * radius)


# ---------- Smoke Test ----------
if __name__ == "__main__":
    from rich.console import Console

    console = Console()
    console.print("\n[bold cyan]═══ Sling Siege Collision Smoke Test ═══[/bold cyan]\n")

    block = Block(id=1, x=100.0, y=520.0, width=60.0, height=60.0, type="wood")

    console.print("[bold]Test 1:[/bold] Center inside the block")
    assert circle_intersects_block(130.0, 550.0, 15.0, block)
    console.print("  ✅ Hit detected\n")

    console.print("[bold]Test 2:[/bold] Touching an edge exactly")
    assert circle_intersects_block(85.0, 550.0, 15.0, block)
    assert not circle_intersects_block(84.9, 550.0, 15.0, block)
    console.print("  ✅ Edge contact is a hit, 0.1px further is a miss\n")

    console.print("[bold]Test 3:[/bold] Near a corner")
    # Corner at (100, 520); point 12/12 away diagonally → distance ≈ 16.97 > 15
    assert not circle_intersects_block(88.0, 508.0, 15.0, block)
    # 10/10 away → distance ≈ 14.14 < 15
    assert circle_intersects_block(90.0, 510.0, 15.0, block)
    console.print("  ✅ Corner test uses true Euclidean distance\n")

    console.print("[bold green]All collision tests passed![/bold green]\n")
