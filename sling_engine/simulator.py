"""
Sling Siege Engine — Shot Simulator

Resolves one shot end to end: trajectory → per-sample collision polling →
damage accumulation → removal of destroyed blocks → reward.

simulate_shot is a pure function. It copies the incoming blocks, never
mutates caller data and keeps no state between calls, so identical inputs
always give an identical ShotResult. Callers are expected to resolve one
shot at a time and fold each result into their own game state.
"""

from dataclasses import dataclass, replace
from typing import List, Sequence, Tuple

from sling_engine.ballistics import TrajectorySample, effective_velocity, simulate_trajectory
from sling_engine.catalog import lookup_block_type, lookup_projectile_type
from sling_engine.collision import Block, CollisionEvent, circle_intersects_block, validate_block
from sling_engine.config import DEFAULT_CONFIG, GameConfig
from sling_engine.damage import compute_damage, is_critical


# ---------- Data Classes ----------
@dataclass(frozen=True)
class ShotResult:
    """Outcome of one shot."""
    blocks: Tuple[Block, ...]                     # survivors, carrying their accumulated damage
    trajectory: Tuple[TrajectorySample, ...]      # truncated at a critical hit
    collisions: Tuple[CollisionEvent, ...]
    blocks_destroyed: int
    total_damage: int
    reward: int
    destroyed_ids: Tuple[int, ...] = ()
    critical_hit: bool = False

    @property
    def hit(self) -> bool:
        return len(self.collisions) > 0


# ---------- Simulation ----------
def _validate_shot_inputs(blocks: Sequence[Block], projectile_type: str, config: GameConfig) -> None:
    lookup_projectile_type(projectile_type, config.projectile_types)
    for block in blocks:
        validate_block(block, config.block_types)
        if block.is_destroyed(config.block_types):
            raise ValueError(
                f"Block {block.id} is already destroyed (damage={block.damage}); "
                "destroyed blocks must not be passed back in"
            )


def simulate_shot(
    blocks: Sequence[Block],
    angle_degrees: float,
    speed: float,
    projectile_type: str,
    config: GameConfig = DEFAULT_CONFIG,
) -> ShotResult:
    """Fire one bird at a block snapshot.

    Every trajectory sample is tested against every still-standing block, in
    input order. Each overlap deals damage computed from the effective
    velocity at that sample. A hit whose damage exceeds
    critical_damage_threshold ends the shot at once: later blocks at the same
    sample and all later samples are never tested.

    reward = blocks_destroyed * destroy_reward + total_damage

    Args:
        blocks: Current live blocks. Not modified.
        angle_degrees: Launch elevation, positive = upward.
        speed: Launch speed. Below min_launch_speed the shot is a clean miss.
        projectile_type: Projectile catalog tag.
        config: Physics constants and catalogs.

    Raises:
        ValueError: non-finite angle/speed or malformed / already destroyed block.
        ConfigurationError: unknown projectile or block tag.
    """
    physics = config.physics
    _validate_shot_inputs(blocks, projectile_type, config)

    working: List[Block] = [replace(b) for b in blocks]
    trajectory = simulate_trajectory(angle_degrees, speed, physics)

    if not trajectory:
        return ShotResult(
            blocks=tuple(working),
            trajectory=(),
            collisions=(),
            blocks_destroyed=0,
            total_damage=0,
            reward=0,
        )

    healths = [lookup_block_type(b.type, config.block_types).health for b in working]
    collisions: List[CollisionEvent] = []
    critical_hit = False

    for step, sample in enumerate(trajectory):
        velocity = effective_velocity(speed, step, physics)

        for block, health in zip(working, healths):
            if block.damage >= health:
                continue
            if not circle_intersects_block(sample.x, sample.y, physics.projectile_radius, block):
                continue

            damage = compute_damage(velocity, projectile_type, block.type, config)
            block.damage += damage
            collisions.append(CollisionEvent(
                block_id=block.id, x=sample.x, y=sample.y, damage=damage, t=sample.t,
            ))

            if is_critical(damage, config):
                critical_hit = True
                break

        if critical_hit:
            trajectory = trajectory[:step + 1]
            break

    survivors = tuple(b for b, health in zip(working, healths) if b.damage < health)
    destroyed_ids = tuple(b.id for b, health in zip(working, healths) if b.damage >= health)

    blocks_destroyed = len(blocks) - len(survivors)
    total_damage = sum(c.damage for c in collisions)

    return ShotResult(
        blocks=survivors,
        trajectory=tuple(trajectory),
        collisions=tuple(collisions),
        blocks_destroyed=blocks_destroyed,
        total_damage=total_damage,
        reward=blocks_destroyed * physics.destroy_reward + total_damage,
        destroyed_ids=destroyed_ids,
        critical_hit=critical_hit,
    )


# ---------- Smoke Test ----------
if __name__ == "__main__":
    from rich.console import Console
    from rich.table import Table

    from sling_engine.structure import structural_score

    console = Console()
    console.print("\n[bold cyan]═══ Sling Siege Shot Simulator Smoke Test ═══[/bold cyan]\n")

    tower = [
        Block(id=1, x=600.0, y=520.0, type="wood"),
        Block(id=2, x=600.0, y=460.0, type="stone"),
        Block(id=3, x=660.0, y=520.0, type="glass"),
    ]

    # Test 1: Angle sweep, print what each shot does
    console.print("[bold]Test 1:[/bold] Angle sweep at speed 30 (red bird)")
    table = Table(title="Shots")
    table.add_column("Angle", style="cyan")
    table.add_column("Samples", style="cyan")
    table.add_column("Hits", style="yellow")
    table.add_column("Destroyed", style="red")
    table.add_column("Reward", style="green")
    table.add_column("Structure", style="magenta")
    before = structural_score(tower)
    for angle in range(0, 65, 5):
        result = simulate_shot(tower, float(angle), 30.0, "red")
        table.add_row(
            f"{angle}°", str(len(result.trajectory)), str(len(result.collisions)),
            str(result.blocks_destroyed), str(result.reward),
            f"{before} → {structural_score(result.blocks)}",
        )
        assert result.reward == result.blocks_destroyed * 100 + result.total_damage
    console.print(table)
    console.print("  ✅ Reward formula holds for every shot\n")

    # Test 2: Zero speed is a clean miss
    console.print("[bold]Test 2:[/bold] Zero speed")
    miss = simulate_shot(tower, 45.0, 0.0, "red")
    assert miss.blocks == tuple(tower) and miss.reward == 0
    console.print("  ✅ Blocks unchanged, reward 0\n")

    # Test 3: Caller data untouched
    console.print("[bold]Test 3:[/bold] Input blocks are not mutated")
    assert all(b.damage == 0.0 for b in tower)
    console.print("  ✅ Input snapshot still pristine\n")

    console.print("[bold green]All shot simulator tests passed![/bold green]\n")
