"""
Sling Siege RL Training — Slingshot Gymnasium Environment

One episode plays one level: each step fires the next bird, and the episode
ends when every block is gone (won) or the birds run out (lost).

Observation space (MAX_BLOCKS * 8 + 2 + n_projectile_types floats):
    per block slot: present, x, y, width, height, health left, density, supported
    + birds left + projectile one-hot + structural score fraction

Action space (2 floats):
    angle [-1,1] → [ANGLE_MIN, ANGLE_MAX] degrees, speed [-1,1] → [SPEED_MIN, SPEED_MAX]
"""

import sys
import os

import gymnasium as gym
import numpy as np
from gymnasium import spaces

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sling_engine.catalog import ConfigurationError, lookup_block_type
from sling_engine.session import PLAYING, WON, GameSession
from sling_engine.structure import supported_mask
from rl_training.envs.level_registry import LevelRegistry


MAX_BLOCKS = 12
BLOCK_FEATURES = 8

ANGLE_MIN, ANGLE_MAX = -10.0, 80.0     # degrees
SPEED_MIN, SPEED_MAX = 5.0, 40.0       # drag units


class SlingshotEnv(gym.Env):
    """Multi-shot block-destruction environment.

    If level_name is None, each reset picks a level uniformly from the registry.
    Reward per step: shot reward / 100 + supported blocks knocked out.
    """

    metadata = {"render_modes": ["human"]}

    def __init__(
        self,
        level_name: str = None,
        registry: LevelRegistry = None,
        render_mode: str = None,
    ):
        super().__init__()

        self.registry = registry if registry is not None else LevelRegistry.from_yaml(max_blocks=MAX_BLOCKS)
        self.config = self.registry.config
        self.level_name = level_name
        if level_name is not None:
            self.registry.get(level_name)
        for name in self.registry.names:
            size = len(self.registry.get(name).blocks)
            if size > MAX_BLOCKS:
                raise ConfigurationError(
                    f"Level '{name}' has {size} blocks; the observation holds at most {MAX_BLOCKS}"
                )
        self.render_mode = render_mode

        self.projectile_tags = sorted(self.config.projectile_types)
        self.max_density = max(t.density for t in self.config.block_types.values())
        self.max_birds = max(self.registry.get(n).birds for n in self.registry.names)
        self.obs_dim = MAX_BLOCKS * BLOCK_FEATURES + 2 + len(self.projectile_tags)

        self.observation_space = spaces.Box(
            low=-np.inf, high=np.inf, shape=(self.obs_dim,), dtype=np.float32
        )
        self.action_space = spaces.Box(
            low=-1.0, high=1.0, shape=(2,), dtype=np.float32
        )

        # State
        self.session: GameSession = None
        self.current_level: str = None
        self.initial_block_count: int = 0

        # Stats tracking
        self.episode_count: int = 0
        self.win_count: int = 0
        self.last_record = None

    @staticmethod
    def action_to_shot(action: np.ndarray):
        """Map a [-1, 1]² action to (angle_degrees, speed)."""
        action = np.clip(action, -1.0, 1.0)
        angle = ANGLE_MIN + (float(action[0]) + 1.0) * 0.5 * (ANGLE_MAX - ANGLE_MIN)
        speed = SPEED_MIN + (float(action[1]) + 1.0) * 0.5 * (SPEED_MAX - SPEED_MIN)
        return angle, speed

    def _get_observation(self) -> np.ndarray:
        """Build the fixed-size observation vector."""
        physics = self.config.physics
        # Support is judged on the full snapshot, then cut to the slot count
        supported = supported_mask(self.session.blocks, self.config)[:MAX_BLOCKS]
        blocks = self.session.blocks[:MAX_BLOCKS]

        slots = np.zeros((MAX_BLOCKS, BLOCK_FEATURES))
        for i, block in enumerate(blocks):
            block_type = lookup_block_type(block.type, self.config.block_types)
            slots[i] = [
                1.0,
                block.x / physics.field_width,
                block.y / physics.field_height,
                block.width / physics.field_width,
                block.height / physics.field_height,
                1.0 - block.damage / block_type.health,
                block_type.density / self.max_density,
                float(supported[i]),
            ]

        projectile_onehot = np.zeros(len(self.projectile_tags))
        if self.session.next_projectile is not None:
            projectile_onehot[self.projectile_tags.index(self.session.next_projectile)] = 1.0

        structure = self.session.structure_score / max(self.initial_block_count, 1)

        obs = np.concatenate([
            slots.ravel(),
            [self.session.birds_left / self.max_birds],
            projectile_onehot,
            [structure],
        ]).astype(np.float32)

        # Safety net: clamp NaN/inf to prevent training crash
        obs = np.nan_to_num(obs, nan=0.0, posinf=10.0, neginf=-10.0)

        return obs

    def _info(self) -> dict:
        return {
            "level": self.current_level,
            "blocks_left": len(self.session.blocks),
            "birds_left": self.session.birds_left,
            "structure_score": self.session.structure_score,
            "status": self.session.status,
        }

    def reset(self, seed=None, options=None):
        """Start a new episode on the configured (or a random) level."""
        super().reset(seed=seed)

        if self.level_name is not None:
            self.current_level = self.level_name
        else:
            index = int(self.np_random.integers(0, self.registry.count))
            self.current_level = self.registry.names[index]

        self.session = self.registry.new_session(self.current_level)
        self.initial_block_count = len(self.session.blocks)
        self.last_record = None

        return self._get_observation(), self._info()

    def step(self, action: np.ndarray):
        """Fire the next bird."""
        angle, speed = self.action_to_shot(action)
        record = self.session.shoot(angle, speed)
        self.last_record = record

        result = record.result
        reward = result.reward / 100.0 + record.score_gained

        terminated = self.session.status != PLAYING
        truncated = False

        info = self._info()
        info.update({
            "hit": result.hit,
            "blocks_destroyed": result.blocks_destroyed,
            "total_damage": result.total_damage,
            "shot_reward": result.reward,
            "score_gained": record.score_gained,
            "critical_hit": result.critical_hit,
            "angle": angle,
            "speed": speed,
        })

        if terminated:
            self.episode_count += 1
            won = self.session.status == WON
            if won:
                self.win_count += 1
            info["won"] = won

        return self._get_observation(), float(reward), terminated, truncated, info

    @property
    def success_rate(self) -> float:
        """Fraction of finished episodes that were won."""
        if self.episode_count == 0:
            return 0.0
        return self.win_count / self.episode_count


# ---------- Smoke Test ----------
if __name__ == "__main__":
    from rich.console import Console

    console = Console()
    console.print("\n[bold cyan]═══ Sling Siege Environment Smoke Test ═══[/bold cyan]\n")

    console.print("[bold]Test 1:[/bold] Environment creation and space validation")
    env = SlingshotEnv()
    console.print(f"  Observation space: {env.observation_space}")
    console.print(f"  Action space: {env.action_space}")
    assert env.action_space.shape == (2,)
    console.print("  ✅ Spaces correct")

    console.print("\n[bold]Test 2:[/bold] Reset")
    obs, info = env.reset(seed=42)
    console.print(f"  Level: {info['level']}, blocks: {info['blocks_left']}, birds: {info['birds_left']}")
    assert obs.shape == env.observation_space.shape
    console.print("  ✅ Reset returns valid obs")

    console.print("\n[bold]Test 3:[/bold] 50 random episodes")
    wins = 0
    for i in range(50):
        obs, _ = env.reset(seed=i)
        terminated = False
        while not terminated:
            obs, r, terminated, _, info = env.step(env.action_space.sample())
            assert np.isfinite(r)
        wins += int(info["won"])
    console.print(f"  Random agent won {wins}/50 episodes")
    console.print("  ✅ Environment runs 50 episodes without errors")

    console.print("\n[bold green]All environment tests passed![/bold green]\n")
