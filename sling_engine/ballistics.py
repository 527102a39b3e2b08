"""
Sling Siege Engine — Projectile Ballistics

Discrete time-stepped trajectory of a point-mass bird under constant gravity,
with horizontal displacement decayed by air resistance at every step.

Coordinate system: x=right, y=down (screen pixels), origin top-left.
Angles are degrees at the API boundary, radians internally.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from sling_engine.config import DEFAULT_CONFIG, PhysicsConfig


# ---------- Data Classes ----------
@dataclass(frozen=True)
class TrajectorySample:
    """Projectile center at one time step."""
    x: float
    y: float
    t: float          # elapsed simulated seconds


# ---------- Physics Functions ----------
def _check_finite(angle_degrees: float, speed: float) -> None:
    if not (math.isfinite(angle_degrees) and math.isfinite(speed)):
        raise ValueError(f"Launch angle and speed must be finite, got angle={angle_degrees}, speed={speed}")


def compute_launch_velocity(
    angle_degrees: float,
    speed: float,
    physics: PhysicsConfig = DEFAULT_CONFIG.physics,
) -> np.ndarray:
    """Convert launch angle and speed into an initial velocity vector [vx, vy].

    vy is negated because screen y grows downward: a positive angle launches up.
    """
    _check_finite(angle_degrees, speed)
    rad = np.radians(angle_degrees)
    scaled = speed * physics.velocity_scale
    return np.array([scaled * np.cos(rad), -scaled * np.sin(rad)], dtype=np.float64)


def effective_velocity(speed: float, step: int, physics: PhysicsConfig = DEFAULT_CONFIG.physics) -> float:
    """Launch speed attenuated by air resistance after `step` samples."""
    return float(speed * physics.air_resistance ** step)


def simulate_trajectory(
    angle_degrees: float,
    speed: float,
    physics: PhysicsConfig = DEFAULT_CONFIG.physics,
    origin: Sequence[float] = None,
    max_samples: int = None,
) -> List[TrajectorySample]:
    """Sample the flight path of one shot.

    At step i (t = i * dt):
        x = x0 + vx * t * air_resistance**i
        y = y0 + vy * t + 0.5 * g * t²

    Sampling stops before the first point that reaches the ground, leaves the
    play field sideways or rises above its top edge, or at max_samples.

    Args:
        angle_degrees: Launch elevation. 0 = horizontal, positive = upward.
        speed: Launch speed in drag units (see aim_from_drag).
        physics: Physics constants and field geometry.
        origin: Launch point [x, y]. Defaults to the configured sling position.
        max_samples: Cap on samples. Defaults to physics.max_samples.

    Returns:
        List of TrajectorySample in time order. Empty when speed is below
        physics.min_launch_speed (a "miss", not an error).
    """
    _check_finite(angle_degrees, speed)
    if speed < physics.min_launch_speed:
        return []

    x0, y0 = origin if origin is not None else physics.launch_origin
    n = physics.max_samples if max_samples is None else int(max_samples)
    if n <= 0:
        return []

    vx, vy = compute_launch_velocity(angle_degrees, speed, physics)

    steps = np.arange(n, dtype=np.float64)
    t = steps * physics.dt
    x = x0 + vx * t * physics.air_resistance ** steps
    y = y0 + vy * t + 0.5 * physics.gravity * t ** 2

    out_of_field = (
        ~np.isfinite(x)
        | ~np.isfinite(y)
        | (y >= physics.ground_y)
        | (y < 0.0)
        | (x > physics.field_width)
        | (x < 0.0)
    )
    stop = int(np.argmax(out_of_field)) if out_of_field.any() else n

    return [
        TrajectorySample(x=float(x[i]), y=float(y[i]), t=float(t[i]))
        for i in range(stop)
    ]


def aim_from_drag(
    anchor: Tuple[float, float],
    release: Tuple[float, float],
    physics: PhysicsConfig = DEFAULT_CONFIG.physics,
) -> Tuple[float, float]:
    """Translate a sling drag into (angle_degrees, speed).

    The horizontal pull is mirrored and the vertical one is not: dragging
    up-left from the anchor launches up-right, dragging down-left launches
    below the horizon. Speed is the pull distance divided by drag_divisor.
    """
    dx = anchor[0] - release[0]
    dy = anchor[1] - release[1]
    angle = math.degrees(math.atan2(dy, dx))
    speed = math.hypot(dx, dy) / physics.drag_divisor
    return angle, speed


# ---------- Smoke Test ----------
if __name__ == "__main__":
    from rich.console import Console
    from rich.table import Table

    console = Console()
    console.print("\n[bold cyan]═══ Sling Siege Ballistics Smoke Test ═══[/bold cyan]\n")

    physics = DEFAULT_CONFIG.physics

    # Test 1: 30° launch at medium power
    console.print("[bold]Test 1:[/bold] 30° launch, speed 25")
    traj = simulate_trajectory(30.0, 25.0)
    table = Table(title="Trajectory (every 10th sample)")
    table.add_column("Step", style="cyan")
    table.add_column("t (s)", style="cyan")
    table.add_column("Position (x, y)", style="green")
    table.add_column("Effective speed", style="yellow")
    for i, s in enumerate(traj):
        if i % 10 == 0 or i == len(traj) - 1:
            table.add_row(str(i), f"{s.t:.2f}", f"({s.x:.1f}, {s.y:.1f})",
                          f"{effective_velocity(25.0, i):.2f}")
    console.print(table)
    assert traj[0].x == physics.launch_x and traj[0].y == physics.launch_y
    assert all(s.y < physics.ground_y for s in traj)
    console.print(f"  ✅ {len(traj)} samples, last at ({traj[-1].x:.1f}, {traj[-1].y:.1f})\n")

    # Test 2: Zero speed = no trajectory
    console.print("[bold]Test 2:[/bold] Zero speed")
    assert simulate_trajectory(45.0, 0.0) == []
    console.print("  ✅ Zero speed → empty trajectory\n")

    # Test 3: Drag-to-aim mapping
    console.print("[bold]Test 3:[/bold] Drag to aim")
    angle, speed = aim_from_drag((150.0, 460.0), (50.0, 360.0))
    console.print(f"  Pull up-left 100px/100px → angle={angle:.1f}°, speed={speed:.1f}")
    assert abs(angle - 45.0) < 1e-9
    console.print("  ✅ Horizontal pull mirrored into launch direction\n")

    console.print("[bold green]All ballistics tests passed![/bold green]\n")
