"""
Sling Siege RL Training — Evaluation Script

Evaluate a trained model, a random policy or a greedy grid-search baseline
on every level, with win/damage metrics and 2D trajectory plots.

Usage:
    python rl_training/evaluate.py --model rl_training/checkpoints/final_level4.zip
    python rl_training/evaluate.py --random --episodes 50
    python rl_training/evaluate.py --greedy --episodes 1 --visualize
"""

import argparse
import os
import sys
from pathlib import Path

import numpy as np
import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for saving plots
import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle
from rich.console import Console
from rich.table import Table

from stable_baselines3 import PPO
from stable_baselines3.common.vec_env import DummyVecEnv, VecNormalize

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sling_engine.simulator import simulate_shot
from sling_engine.structure import structural_score
from rl_training.envs.level_registry import DEFAULT_LEVELS_PATH, LevelRegistry
from rl_training.envs.slingshot_env import MAX_BLOCKS, SlingshotEnv

console = Console()

LOGS_DIR = Path(__file__).resolve().parent / "logs"
PLOTS_DIR = LOGS_DIR / "eval_plots"


def greedy_action(env: SlingshotEnv, angle_steps: int = 19, speed_steps: int = 15) -> np.ndarray:
    """Pick the grid action that knocks out the most structure on this shot.

    Ties are broken by shot reward. Shots are simulated on the current
    snapshot only; the session itself is left untouched.
    """
    session = env.session
    before = structural_score(session.blocks, env.config)
    best_key, best_action = None, np.zeros(2, dtype=np.float32)

    for a in np.linspace(-1.0, 1.0, angle_steps):
        for s in np.linspace(-1.0, 1.0, speed_steps):
            action = np.array([a, s], dtype=np.float32)
            angle, speed = env.action_to_shot(action)
            result = simulate_shot(session.blocks, angle, speed, session.next_projectile, env.config)
            lost = max(0, before - structural_score(result.blocks, env.config))
            key = (lost, result.reward)
            if best_key is None or key > best_key:
                best_key, best_action = key, action

    return best_action


def evaluate_level(
    model,
    level_name: str,
    registry: LevelRegistry,
    n_episodes: int = 100,
    policy: str = "model",
    vec_normalize: VecNormalize = None,
) -> dict:
    """Play n_episodes of one level and collect win / damage statistics.

    policy: "model", "random" or "greedy".
    """
    env = SlingshotEnv(level_name=level_name, registry=registry)

    wins = 0
    total_reward = 0.0
    shots_fired = 0
    blocks_destroyed = 0
    total_damage = 0
    critical_hits = 0
    trajectories = []

    for i in range(n_episodes):
        obs, info = env.reset(seed=i)
        env.action_space.seed(i)
        terminated = False

        while not terminated:
            if policy == "random":
                action = env.action_space.sample()
            elif policy == "greedy":
                action = greedy_action(env)
            else:
                obs_in = vec_normalize.normalize_obs(obs) if vec_normalize is not None else obs
                action, _ = model.predict(obs_in, deterministic=True)

            obs, reward, terminated, _, info = env.step(action)
            total_reward += reward
            shots_fired += 1
            blocks_destroyed += info["blocks_destroyed"]
            total_damage += info["total_damage"]
            critical_hits += int(info["critical_hit"])

            # Keep the first episode's shots for plotting
            if i == 0:
                result = env.last_record.result
                trajectories.append({
                    "points": [(s.x, s.y) for s in result.trajectory],
                    "hits": [(c.x, c.y) for c in result.collisions],
                    "hit": result.hit,
                })

        wins += int(info["won"])

    env.close()

    return {
        "win_rate": wins / n_episodes,
        "wins": wins,
        "total": n_episodes,
        "avg_reward": total_reward / n_episodes,
        "avg_shots": shots_fired / n_episodes,
        "avg_destroyed": blocks_destroyed / n_episodes,
        "avg_damage": total_damage / n_episodes,
        "critical_rate": critical_hits / max(shots_fired, 1),
        "trajectories": trajectories,
    }


def visualize_trajectories(
    results: dict,
    level_name: str,
    registry: LevelRegistry,
    save_dir: Path,
) -> str:
    """Plot the first episode's shots over the level's starting layout. Returns path."""
    trajectories = results["trajectories"]
    if not trajectories:
        return ""

    physics = registry.config.physics
    fig, ax = plt.subplots(figsize=(12, 7))

    for block in registry.get(level_name).build_blocks():
        color = registry.config.block_types[block.type].color
        ax.add_patch(Rectangle((block.x, block.y), block.width, block.height,
                               facecolor=color, edgecolor="black", alpha=0.8))

    for i, traj in enumerate(trajectories):
        if not traj["points"]:
            continue
        xs, ys = zip(*traj["points"])
        color = "green" if traj["hit"] else "red"
        ax.plot(xs, ys, color=color, alpha=0.8, linewidth=1.5, label=f"Shot {i+1}")
        for hx, hy in traj["hits"]:
            ax.scatter(hx, hy, color="orange", s=40, marker="x", zorder=5)

    ax.axhline(physics.ground_y, color="darkgreen", linewidth=3)
    ax.scatter(physics.launch_x, physics.launch_y, color="blue", s=60, zorder=5)
    ax.set_xlim(0, physics.field_width)
    ax.set_ylim(physics.field_height, 0)  # y grows downward
    ax.set_aspect("equal")
    ax.set_xlabel("x [px]")
    ax.set_ylabel("y [px]")
    ax.set_title(
        f"Sling Siege — {level_name}\n"
        f"Win rate: {results['win_rate']:.1%} | Avg reward: {results['avg_reward']:.1f}",
        fontsize=12,
    )
    ax.legend(loc="upper left")

    save_dir.mkdir(parents=True, exist_ok=True)
    path = save_dir / f"trajectories_{level_name}.png"
    plt.savefig(str(path), dpi=150, bbox_inches="tight")
    plt.close(fig)

    return str(path)


def evaluate(
    model_path: str = None,
    vecnorm_path: str = None,
    levels_path: Path = DEFAULT_LEVELS_PATH,
    n_episodes: int = 100,
    level_name: str = "all",
    visualize: bool = False,
    policy: str = "model",
):
    """Main evaluation function."""
    console.print(f"\n[bold cyan]═══ Sling Siege Evaluation ═══[/bold cyan]")

    registry = LevelRegistry.from_yaml(levels_path, max_blocks=MAX_BLOCKS)
    model = None
    vec_normalize = None

    if policy == "model":
        if model_path is None:
            console.print("[red]Error: --model required (or use --random / --greedy)[/red]")
            return
        console.print(f"  Model: {model_path}")
        model = PPO.load(model_path)

        if vecnorm_path and os.path.exists(vecnorm_path):
            dummy_env = DummyVecEnv([lambda: SlingshotEnv(registry=registry)])
            vec_normalize = VecNormalize.load(vecnorm_path, dummy_env)
            vec_normalize.training = False
            vec_normalize.norm_reward = False
            console.print(f"  VecNormalize: [green]Loaded from {os.path.basename(vecnorm_path)}[/green]")
        else:
            console.print("  VecNormalize: [yellow]⚠ No stats given — using raw observations[/yellow]")
    else:
        console.print(f"  Using {policy} policy (baseline)")

    names = registry.names if level_name == "all" else [registry.get(level_name).name]

    console.print(f"  Episodes per level: {n_episodes}")
    console.print(f"  Levels: {names}\n")

    table = Table(title="Evaluation Results")
    table.add_column("Level", style="cyan")
    table.add_column("Win Rate", justify="right")
    table.add_column("Avg Reward", justify="right")
    table.add_column("Avg Shots", justify="right")
    table.add_column("Destroyed", justify="right", style="red")
    table.add_column("Damage", justify="right", style="yellow")
    table.add_column("Critical", justify="right", style="magenta")
    table.add_column("Wins / Total", justify="right")

    all_results = {}
    for name in names:
        console.print(f"  Evaluating: {name}...")
        results = evaluate_level(
            model=model,
            level_name=name,
            registry=registry,
            n_episodes=n_episodes,
            policy=policy,
            vec_normalize=vec_normalize,
        )
        all_results[name] = results

        table.add_row(
            name,
            f"{results['win_rate']:.1%}",
            f"{results['avg_reward']:.2f}",
            f"{results['avg_shots']:.1f}",
            f"{results['avg_destroyed']:.2f}",
            f"{results['avg_damage']:.1f}",
            f"{results['critical_rate']:.1%}",
            f"{results['wins']}/{results['total']}",
        )

        if visualize:
            plot_path = visualize_trajectories(results, name, registry, PLOTS_DIR)
            if plot_path:
                console.print(f"    📊 Plot saved: {plot_path}")

    console.print()
    console.print(table)
    console.print()

    total_wins = sum(r["wins"] for r in all_results.values())
    total_eps = sum(r["total"] for r in all_results.values())
    console.print(f"  Overall: {total_wins}/{total_eps} levels cleared ({total_wins/total_eps:.1%})")

    if vec_normalize is not None:
        vec_normalize.close()

    return all_results


# ---------- CLI ----------
def main():
    parser = argparse.ArgumentParser(description="Sling Siege RL Evaluation")
    parser.add_argument("--model", type=str, default=None,
                        help="Path to trained model checkpoint")
    parser.add_argument("--vecnorm", type=str, default=None,
                        help="Path to VecNormalize stats (.pkl)")
    parser.add_argument("--levels", type=str, default=str(DEFAULT_LEVELS_PATH),
                        help="Path to levels YAML")
    parser.add_argument("--episodes", type=int, default=100,
                        help="Number of episodes per level")
    parser.add_argument("--level", type=str, default="all",
                        help="Specific level name or 'all'")
    parser.add_argument("--visualize", action="store_true",
                        help="Generate trajectory plots")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--random", action="store_true",
                       help="Evaluate random policy (baseline)")
    group.add_argument("--greedy", action="store_true",
                       help="Evaluate greedy grid-search policy (baseline)")
    args = parser.parse_args()

    policy = "random" if args.random else "greedy" if args.greedy else "model"
    evaluate(
        model_path=args.model,
        vecnorm_path=args.vecnorm,
        levels_path=Path(args.levels),
        n_episodes=args.episodes,
        level_name=args.level,
        visualize=args.visualize,
        policy=policy,
    )


if __name__ == "__main__":
    main()
