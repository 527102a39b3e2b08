"""
Sling Siege Engine — Game Session

Caller-side progression for one level: live blocks, remaining birds,
cumulative score and shot history. Each shot measures the structure before
and after simulate_shot; the supported blocks lost are the points scored.
"""

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from sling_engine.catalog import lookup_projectile_type
from sling_engine.collision import Block
from sling_engine.config import DEFAULT_CONFIG, GameConfig
from sling_engine.simulator import ShotResult, simulate_shot
from sling_engine.structure import structural_score

PLAYING = "playing"
WON = "won"
LOST = "lost"


class GameOverError(RuntimeError):
    """Raised when shooting after the game has been won or lost."""


@dataclass(frozen=True)
class ShotRecord:
    """One entry of the shot history."""
    angle: float
    speed: float
    projectile_type: str
    result: ShotResult
    score_before: int
    score_after: int

    @property
    def score_gained(self) -> int:
        return max(0, self.score_before - self.score_after)

    @property
    def accuracy(self) -> str:
        return "Hit!" if self.result.blocks_destroyed > 0 else "Miss!"


class GameSession:
    """Plays one level shot by shot.

    Shots resolve synchronously, so a session never has more than one shot
    in flight. The session owns its block list; the engine only ever sees
    snapshots of it.
    """

    def __init__(
        self,
        blocks: Sequence[Block],
        projectiles: Sequence[str] = ("red", "red", "red"),
        config: GameConfig = DEFAULT_CONFIG,
    ):
        for tag in projectiles:
            lookup_projectile_type(tag, config.projectile_types)

        self.config = config
        self._initial_blocks: List[Block] = [replace(b) for b in blocks]
        self._initial_projectiles: List[str] = list(projectiles)
        self.reset()

    def reset(self) -> None:
        """Restore the level's starting blocks and birds."""
        self.blocks: List[Block] = [replace(b) for b in self._initial_blocks]
        self.projectiles: List[str] = list(self._initial_projectiles)
        self.score: int = 0
        self.total_reward: int = 0
        self.history: List[ShotRecord] = []
        self.status: str = PLAYING
        self._update_status()

    @property
    def birds_left(self) -> int:
        return len(self.projectiles)

    @property
    def next_projectile(self) -> Optional[str]:
        return self.projectiles[0] if self.projectiles else None

    @property
    def structure_score(self) -> int:
        return structural_score(self.blocks, self.config)

    @property
    def last_shot(self) -> Optional[ShotRecord]:
        return self.history[-1] if self.history else None

    def _update_status(self) -> None:
        if not self.blocks:
            self.status = WON
        elif not self.projectiles:
            self.status = LOST
        else:
            self.status = PLAYING

    def shoot(self, angle: float, speed: float) -> ShotRecord:
        """Fire the next bird and fold the result into the session.

        Raises:
            GameOverError: the level is already won or lost.
        """
        if self.status != PLAYING:
            raise GameOverError(f"Cannot shoot: game is {self.status}")

        projectile = self.projectiles[0]
        score_before = structural_score(self.blocks, self.config)
        result = simulate_shot(self.blocks, angle, speed, projectile, self.config)
        score_after = structural_score(result.blocks, self.config)

        record = ShotRecord(
            angle=angle,
            speed=speed,
            projectile_type=projectile,
            result=result,
            score_before=score_before,
            score_after=score_after,
        )

        self.blocks = list(result.blocks)
        self.projectiles.pop(0)
        self.score += record.score_gained
        self.total_reward += result.reward
        self.history.append(record)
        self._update_status()
        return record
