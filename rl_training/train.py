"""
Sling Siege RL Training — Main Training Script

Runs PPO over the level curriculum with Stable-Baselines3. Levels are played
in the order they appear in levels.yaml; the agent moves on once its win rate
on the current level reaches that level's success_threshold.

Usage:
    python rl_training/train.py --device cpu --num-envs 8
    python rl_training/train.py --timesteps 200000 --start-level classic_fort
    python rl_training/train.py --quick-test
"""

import argparse
import os
import sys
import time
from collections import deque
from pathlib import Path

import torch
from rich.console import Console

from stable_baselines3 import PPO
from stable_baselines3.common.callbacks import BaseCallback, CallbackList
from stable_baselines3.common.logger import configure
from stable_baselines3.common.utils import get_linear_fn, set_random_seed
from stable_baselines3.common.vec_env import SubprocVecEnv, DummyVecEnv, VecNormalize
from stable_baselines3.common.monitor import Monitor

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from rl_training.envs.level_registry import DEFAULT_LEVELS_PATH, LevelRegistry
from rl_training.envs.slingshot_env import MAX_BLOCKS, SlingshotEnv

console = Console()

# ---------- Paths ----------
CHECKPOINTS_DIR = Path(__file__).resolve().parent / "checkpoints"
LOGS_DIR = Path(__file__).resolve().parent / "logs"


def get_device(requested: str = "cpu") -> str:
    """Determine best available device."""
    if requested == "cuda":
        if torch.cuda.is_available():
            return "cuda"
        console.print("[yellow]⚠ CUDA not available, falling back to CPU[/yellow]")
    return "cpu"


def make_env(rank: int, seed: int, level_name: str, levels_path: Path, log_dir: Path = None):
    """Factory function that returns a callable to create a Monitor-wrapped SlingshotEnv."""
    def _init():
        registry = LevelRegistry.from_yaml(levels_path, max_blocks=MAX_BLOCKS)
        env = SlingshotEnv(level_name=level_name, registry=registry)
        monitor_path = str(log_dir / f"monitor_{rank}") if log_dir else None
        env = Monitor(env, filename=monitor_path, info_keywords=("won",))
        env.reset(seed=seed + rank)
        return env
    set_random_seed(seed + rank)
    return _init


def create_vec_env(num_envs: int, level_name: str, levels_path: Path,
                   seed: int = 42, log_dir: Path = None):
    """Create a vectorized environment with Monitor wrappers."""
    factories = [make_env(i, seed, level_name, levels_path, log_dir) for i in range(num_envs)]
    if num_envs > 1:
        return SubprocVecEnv(factories, start_method="fork")
    return DummyVecEnv(factories)


# ---------- Custom Callbacks ----------

class LevelCurriculumCallback(BaseCallback):
    """Tracks win rate on the current level and signals when to advance."""

    def __init__(
        self,
        registry: LevelRegistry,
        current_level: int,
        checkpoint_dir: Path,
        window_size: int = 200,
        min_episodes: int = 500,
        verbose: int = 1,
    ):
        super().__init__(verbose)
        self.registry = registry
        self.current_level = current_level
        self.checkpoint_dir = checkpoint_dir
        self.window_size = window_size
        self.min_episodes = min_episodes

        self.win_history = deque(maxlen=window_size)
        self.episode_count = 0
        self.level_episode_count = 0
        self.best_win_rate = 0.0
        self.level_complete = False  # Signal to outer loop for level advancement

    @property
    def level(self):
        return self.registry.get_by_index(self.current_level)

    @property
    def win_rate(self) -> float:
        if len(self.win_history) == 0:
            return 0.0
        return sum(self.win_history) / len(self.win_history)

    def _on_step(self) -> bool:
        for info in self.locals.get("infos", []):
            if "won" in info:
                self.win_history.append(1.0 if info["won"] else 0.0)
                self.episode_count += 1
                self.level_episode_count += 1

        if self.episode_count > 0 and self.episode_count % 100 == 0:
            self.logger.record("curriculum/level", self.current_level)
            self.logger.record("curriculum/level_name", self.level.name)
            self.logger.record("curriculum/win_rate", self.win_rate)
            self.logger.record("curriculum/episodes", self.episode_count)

        if self.win_rate > self.best_win_rate and len(self.win_history) >= 50:
            self.best_win_rate = self.win_rate
            self._save_best()

        if (
            self.win_rate >= self.level.success_threshold
            and self.level_episode_count >= self.min_episodes
            and len(self.win_history) >= self.window_size
            and self.current_level < self.registry.count - 1
        ):
            self.level_complete = True
            return False  # Stop current model.learn() to trigger level swap

        return True

    def _save_best(self) -> None:
        path = self.checkpoint_dir / f"{self.level.name}_best.zip"
        self.model.save(str(path))
        vecnorm_path = self.checkpoint_dir / f"vecnormalize_{self.level.name}_best.pkl"
        self.training_env.save(str(vecnorm_path))

    def advance_level(self) -> None:
        """Move to the next level. Called by the outer training loop."""
        old_name = self.level.name
        self.current_level += 1
        console.print(f"\n[bold green]🎯 Level advanced: {old_name} → {self.level.name}[/bold green]")
        console.print(f"   Win rate was: {self.win_rate:.1%}")

        self.win_history.clear()
        self.best_win_rate = 0.0
        self.level_episode_count = 0
        self.level_complete = False


# ---------- Training Function ----------
def train(
    device: str = "cpu",
    start_level: str = None,
    levels_path: Path = DEFAULT_LEVELS_PATH,
    total_timesteps: int = 1_000_000,
    num_envs: int = 8,
    chunk_timesteps: int = 50_000,
    quick_test: bool = False,
):
    """Main training loop with level progression and vectorized envs."""
    registry = LevelRegistry.from_yaml(levels_path, max_blocks=MAX_BLOCKS)
    level_index = 0
    if start_level is not None:
        registry.get(start_level)
        level_index = registry.names.index(start_level)
    level_name = registry.names[level_index]

    if quick_test:
        total_timesteps = 256 * num_envs
        chunk_timesteps = total_timesteps

    console.print(f"\n[bold cyan]═══ Sling Siege Training ═══[/bold cyan]")
    console.print(f"  Device: {device}")
    console.print(f"  Parallel envs: {num_envs}")
    console.print(f"  Total timesteps: {total_timesteps:,}")
    console.print(f"  Levels: {registry.names}")
    console.print(f"  Starting level: {level_index} ({level_name})")

    CHECKPOINTS_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)

    env = VecNormalize(
        create_vec_env(num_envs, level_name, levels_path, log_dir=LOGS_DIR),
        norm_obs=True, norm_reward=True, clip_obs=10.0, clip_reward=10.0,
    )

    policy_kwargs = dict(
        net_arch=dict(pi=[256, 256], vf=[256, 256]),
        activation_fn=torch.nn.Tanh,
    )
    model = PPO(
        "MlpPolicy",
        env,
        policy_kwargs=policy_kwargs,
        learning_rate=get_linear_fn(3e-4, 1e-4, 1.0),
        n_steps=256 if quick_test else 1024,
        batch_size=256,
        n_epochs=5,
        gamma=0.99,
        clip_range=0.2,
        ent_coef=0.01,
        max_grad_norm=0.5,
        verbose=1,
        device=device,
        tensorboard_log=str(LOGS_DIR),
    )

    curriculum_cb = LevelCurriculumCallback(
        registry=registry,
        current_level=level_index,
        checkpoint_dir=CHECKPOINTS_DIR,
    )
    callback = CallbackList([curriculum_cb])

    console.print(f"\n[bold]Starting training...[/bold]\n")
    start_time = time.time()
    timesteps_used = 0

    try:
        while timesteps_used < total_timesteps:
            budget = min(chunk_timesteps, total_timesteps - timesteps_used)
            name = curriculum_cb.level.name
            console.print(f"\n[bold cyan]── Level {curriculum_cb.current_level}: {name} "
                          f"(budget: {budget:,} steps) ──[/bold cyan]")

            model.set_logger(configure(str(LOGS_DIR / f"ppo_{name}"), ["stdout", "tensorboard"]))
            model.learn(
                total_timesteps=budget,
                callback=callback,
                progress_bar=False,
                tb_log_name=f"ppo_{name}",
                reset_num_timesteps=False,
            )
            timesteps_used += budget

            if curriculum_cb.level_complete:
                vecnorm_path = CHECKPOINTS_DIR / f"vecnormalize_{name}_final.pkl"
                env.save(str(vecnorm_path))
                curriculum_cb.advance_level()

                env.close()
                new_vec_env = create_vec_env(num_envs, curriculum_cb.level.name, levels_path, log_dir=LOGS_DIR)
                # Carry normalization stats over to the next level
                env = VecNormalize.load(str(vecnorm_path), new_vec_env)
                env.training = True
                model.set_env(env)

    except KeyboardInterrupt:
        console.print("\n[yellow]Training interrupted by user[/yellow]")

    elapsed = time.time() - start_time

    final_path = CHECKPOINTS_DIR / f"final_level{curriculum_cb.current_level}.zip"
    model.save(str(final_path))
    env.save(str(CHECKPOINTS_DIR / f"vecnormalize_final_level{curriculum_cb.current_level}.pkl"))
    env.close()

    console.print(f"\n[bold cyan]═══ Training Summary ═══[/bold cyan]")
    console.print(f"  Time: {elapsed:.0f}s ({elapsed/60:.1f}min)")
    console.print(f"  Episodes: {curriculum_cb.episode_count:,}")
    console.print(f"  Timesteps used: {timesteps_used:,} / {total_timesteps:,}")
    console.print(f"  Final level: {curriculum_cb.current_level} ({curriculum_cb.level.name})")
    console.print(f"  Final win rate: {curriculum_cb.win_rate:.1%}")
    console.print(f"  Model saved: {final_path}")

    return model


# ---------- CLI ----------
def main():
    parser = argparse.ArgumentParser(description="Sling Siege RL Training")
    parser.add_argument("--device", type=str, default="cpu", choices=["cpu", "cuda"],
                        help="Training device (default: cpu)")
    parser.add_argument("--start-level", type=str, default=None, dest="start_level",
                        help="Level name to start the curriculum at")
    parser.add_argument("--levels", type=str, default=str(DEFAULT_LEVELS_PATH),
                        help="Path to levels YAML")
    parser.add_argument("--timesteps", type=int, default=1_000_000,
                        help="Total training timesteps (default: 1M)")
    parser.add_argument("--num-envs", type=int, default=8, dest="num_envs",
                        help="Number of parallel environments (default: 8)")
    parser.add_argument("--quick-test", action="store_true", dest="quick_test",
                        help="Quick test mode (minimal training)")
    args = parser.parse_args()

    train(
        device=get_device(args.device),
        start_level=args.start_level,
        levels_path=Path(args.levels),
        total_timesteps=args.timesteps,
        num_envs=args.num_envs,
        quick_test=args.quick_test,
    )


if __name__ == "__main__":
    main()
