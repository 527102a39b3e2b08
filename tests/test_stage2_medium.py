"""
Sling Siege Test Suite — Stage 2: MEDIUM

Full shots, multi-shot sessions and the level / environment layer.
These tests verify the components work together correctly.

Tests:
    - Shot simulation: misses, destruction, critical truncation
    - Damage accumulation over several samples
    - Snapshot semantics (inputs never mutated)
    - Support scoring corner cases
    - Game session progression (won / lost / game over)
    - Level registry loading and validation
    - Gymnasium environment spaces and episodes
"""

import json

import numpy as np
import pytest

from sling_engine.ballistics import simulate_trajectory
from sling_engine.catalog import ConfigurationError
from sling_engine.collision import Block
from sling_engine.config import load_game_config
from sling_engine.session import LOST, PLAYING, WON, GameOverError, GameSession
from sling_engine.simulator import simulate_shot
from sling_engine.structure import structural_score
from rl_training.envs.level_registry import LevelRegistry
from rl_training.envs.slingshot_env import MAX_BLOCKS, SlingshotEnv


# ============================================================
# 1. Shot Simulation
# ============================================================

class TestShotSimulation:
    """Test one shot end to end."""

    def test_zero_speed_changes_nothing(self, fort_blocks):
        """Speed 0: original blocks back, nothing destroyed, no reward."""
        for angle in (0.0, 45.0, 90.0):
            result = simulate_shot(fort_blocks, angle, 0.0, "red")
            assert list(result.blocks) == fort_blocks
            assert result.blocks_destroyed == 0
            assert result.reward == 0
            assert result.trajectory == ()
            assert not result.hit

    def test_critical_hit_destroys_and_stops(self):
        """Wood block over the sling: 60 damage at step 0 destroys it and ends the shot."""
        blocks = [
            Block(id=1, x=130.0, y=440.0, width=40.0, height=40.0, type="wood"),
            Block(id=2, x=140.0, y=450.0, width=40.0, height=40.0, type="glass"),
        ]
        result = simulate_shot(blocks, 30.0, 40.0, "red")

        assert result.blocks_destroyed == 1
        assert result.destroyed_ids == (1,)
        assert result.critical_hit
        assert len(result.trajectory) == 1
        assert len(result.collisions) == 1
        assert result.collisions[0].damage == 60
        # The glass block overlaps the same sample but is never tested
        survivor = result.blocks[0]
        assert survivor.id == 2
        assert survivor.damage == 0.0
        assert result.reward == 100 + 60

    def test_horizontal_shot_breaks_glass(self):
        """Flat shot reaches the glass block at step 13 with 44 damage."""
        glass = Block(id=7, x=300.0, y=440.0, type="glass")
        result = simulate_shot([glass], 0.0, 20.0, "red")

        assert result.blocks == ()
        assert result.blocks_destroyed == 1
        assert result.total_damage == 44
        assert result.reward == 144
        assert len(result.trajectory) == 14
        assert result.trajectory[-1].x == result.collisions[0].x

    def test_stone_soaks_repeated_hits(self):
        """Non-critical hits keep accumulating while the bird passes through."""
        stone = Block(id=3, x=300.0, y=440.0, type="stone")
        result = simulate_shot([stone], 0.0, 20.0, "red")

        assert not result.critical_hit
        assert len(result.collisions) > 1
        assert all(c.block_id == 3 for c in result.collisions)
        assert all(c.damage <= 20 for c in result.collisions)
        assert result.blocks_destroyed == 0
        assert result.blocks[0].damage == result.total_damage
        assert len(result.trajectory) == len(simulate_trajectory(0.0, 20.0))

    def test_no_critical_damages_every_block(self, no_critical_config):
        """Without truncation both overlapping blocks take the launch hit."""
        blocks = [
            Block(id=1, x=130.0, y=440.0, width=40.0, height=40.0, type="stone"),
            Block(id=2, x=140.0, y=450.0, width=40.0, height=40.0, type="stone"),
        ]
        result = simulate_shot(blocks, 30.0, 40.0, "red", no_critical_config)
        hit_ids = {c.block_id for c in result.collisions}
        assert hit_ids == {1, 2}
        assert result.collisions[0].block_id == 1

    def test_reward_formula(self, fort_blocks):
        for angle in range(-10, 80, 5):
            result = simulate_shot(fort_blocks, float(angle), 30.0, "red")
            assert result.reward == result.blocks_destroyed * 100 + result.total_damage
            assert result.total_damage == sum(c.damage for c in result.collisions)

    def test_inputs_not_mutated(self, fort_blocks):
        before = [b.to_dict() for b in fort_blocks]
        for angle in range(-10, 80, 5):
            simulate_shot(fort_blocks, float(angle), 35.0, "red")
        assert [b.to_dict() for b in fort_blocks] == before

    def test_survivors_are_copies(self, fort_blocks):
        result = simulate_shot(fort_blocks, 20.0, 30.0, "red")
        for survivor in result.blocks:
            assert all(survivor is not b for b in fort_blocks)

    def test_survivor_damage_below_health(self, fort_blocks):
        for angle in range(-10, 80, 5):
            result = simulate_shot(fort_blocks, float(angle), 40.0, "yellow")
            for b in result.blocks:
                assert b.damage < {"wood": 50, "stone": 120, "glass": 25}[b.type]

    def test_preexisting_damage_carries(self):
        """A nearly broken block falls to a small extra hit."""
        stone = Block(id=3, x=300.0, y=440.0, type="stone", damage=110.0)
        result = simulate_shot([stone], 0.0, 20.0, "red")
        assert result.blocks_destroyed == 1
        assert result.destroyed_ids == (3,)


# ============================================================
# 2. Structural Score Corner Cases
# ============================================================

class TestSupportRules:
    """Test the one-level support check."""

    def test_support_is_one_level_deep(self):
        """A block on a floating block still scores; the floater does not."""
        floater = Block(id=1, x=100.0, y=300.0)
        rider = Block(id=2, x=100.0, y=240.0)
        assert structural_score([floater, rider]) == 1

    def test_horizontal_tolerance(self):
        """Upper center must sit within the lower span widened by 10px."""
        lower = Block(id=1, x=100.0, y=520.0)
        inside = Block(id=2, x=135.0, y=460.0)     # center 165 <= 170
        outside = Block(id=3, x=145.0, y=460.0)    # center 175 > 170
        assert structural_score([lower, inside]) == 2
        assert structural_score([lower, outside]) == 1

    def test_vertical_tolerance(self):
        lower = Block(id=1, x=100.0, y=520.0)
        assert structural_score([lower, Block(id=2, x=100.0, y=454.0)]) == 2
        assert structural_score([lower, Block(id=2, x=100.0, y=453.0)]) == 1

    def test_removing_base_drops_score(self, tower_blocks):
        assert structural_score(tower_blocks[1:]) == 0

    def test_order_independent(self, tower_blocks):
        assert structural_score(tower_blocks[::-1]) == structural_score(tower_blocks)

    def test_scoring_is_idempotent(self, fort_blocks, tower_blocks):
        """Scoring twice gives the same value and leaves the blocks untouched."""
        for blocks in (fort_blocks, tower_blocks, []):
            before = [b.to_dict() for b in blocks]
            first = structural_score(blocks)
            second = structural_score(blocks)
            assert first == second
            assert [b.to_dict() for b in blocks] == before


# ============================================================
# 3. Game Session
# ============================================================

class TestGameSession:
    """Test multi-shot progression."""

    def test_initial_state(self, tower_blocks):
        session = GameSession(tower_blocks)
        assert session.status == PLAYING
        assert session.birds_left == 3
        assert session.next_projectile == "red"
        assert session.structure_score == 2
        assert session.last_shot is None

    def test_clearing_level_wins(self):
        """Flat shot takes out the lone glass block on the ground."""
        session = GameSession([Block(id=1, x=300.0, y=520.0, type="glass")])
        record = session.shoot(0.0, 20.0)

        assert record.result.blocks_destroyed == 1
        assert record.score_gained == 1
        assert record.accuracy == "Hit!"
        assert session.status == WON
        assert session.score == 1
        assert session.birds_left == 2

    def test_running_out_of_birds_loses(self, tower_blocks):
        session = GameSession(tower_blocks, projectiles=["red", "blue"])
        for _ in range(2):
            record = session.shoot(45.0, 0.0)
            assert record.accuracy == "Miss!"
        assert session.status == LOST
        assert len(session.history) == 2

    def test_shoot_after_game_over_raises(self, tower_blocks):
        session = GameSession(tower_blocks, projectiles=["red"])
        session.shoot(45.0, 0.0)
        with pytest.raises(GameOverError):
            session.shoot(45.0, 10.0)

    def test_empty_level_already_won(self):
        session = GameSession([])
        assert session.status == WON
        with pytest.raises(GameOverError):
            session.shoot(45.0, 20.0)

    def test_projectiles_fired_in_order(self, tower_blocks):
        session = GameSession(tower_blocks, projectiles=["yellow", "blue", "red"])
        fired = [session.shoot(45.0, 0.0).projectile_type for _ in range(3)]
        assert fired == ["yellow", "blue", "red"]

    def test_reset_restores_level(self):
        session = GameSession([Block(id=1, x=300.0, y=520.0, type="glass")])
        session.shoot(0.0, 20.0)
        session.reset()
        assert session.status == PLAYING
        assert len(session.blocks) == 1
        assert session.blocks[0].damage == 0.0
        assert session.birds_left == 3
        assert session.score == 0

    def test_session_does_not_alias_caller_blocks(self):
        blocks = [Block(id=1, x=300.0, y=440.0, type="stone")]
        session = GameSession(blocks)
        session.shoot(0.0, 20.0)
        assert blocks[0].damage == 0.0
        assert session.blocks[0].damage > 0.0

    def test_unknown_projectile_rejected(self, tower_blocks):
        with pytest.raises(ConfigurationError):
            GameSession(tower_blocks, projectiles=["red", "green"])


# ============================================================
# 4. Level Registry
# ============================================================

class TestLevelRegistry:
    """Test level loading and validation."""

    def test_bundled_levels_load(self, registry):
        assert registry.count == 5
        assert registry.names[0] == "glass_single"
        assert registry.names[-1] == "castle"

    def test_levels_start_fully_supported(self, registry):
        for name in registry.names:
            blocks = registry.get(name).build_blocks()
            assert structural_score(blocks, registry.config) == len(blocks), name

    def test_block_ids_default_to_position(self, registry):
        blocks = registry.get("classic_fort").build_blocks()
        assert [b.id for b in blocks] == [1, 2, 3]
        assert [b.type for b in blocks] == ["wood", "stone", "wood"]

    def test_unknown_level_raises(self, registry):
        with pytest.raises(ConfigurationError, match="atlantis"):
            registry.get("atlantis")

    def test_duplicate_level_rejected(self, registry):
        with pytest.raises(ConfigurationError):
            registry.add_level("castle", [{"x": 0, "y": 520}])

    def test_unknown_block_type_rejected(self, registry):
        with pytest.raises(ConfigurationError):
            registry.add_level("marble_hall", [{"x": 600, "y": 520, "type": "marble"}])

    def test_missing_block_field_rejected(self, registry):
        with pytest.raises(ConfigurationError, match="x"):
            registry.add_level("no_x", [{"y": 520}])

    def test_duplicate_block_ids_rejected(self, registry):
        with pytest.raises(ConfigurationError):
            registry.add_level("twins", [{"id": 1, "x": 600, "y": 520}, {"id": 1, "x": 660, "y": 520}])

    def test_empty_projectiles_rejected(self, registry):
        with pytest.raises(ConfigurationError):
            registry.add_level("unarmed", [{"x": 600, "y": 520}], projectiles=[])

    def test_block_limit_enforced(self):
        registry = LevelRegistry(max_blocks=2)
        registry.add_level("pair", [{"x": 600, "y": 520}, {"x": 660, "y": 520}])
        with pytest.raises(ConfigurationError, match="limit"):
            registry.add_level("trio", [{"x": 600 + 60 * i, "y": 520} for i in range(3)])

    def test_env_rejects_oversized_level(self):
        registry = LevelRegistry()
        registry.add_level("wall", [{"x": 20.0 + 70 * i, "y": 520} for i in range(MAX_BLOCKS + 1)])
        with pytest.raises(ConfigurationError, match="wall"):
            SlingshotEnv(registry=registry)

    def test_add_and_remove(self, registry):
        registry.add_level("extra", [{"x": 600, "y": 520, "type": "glass"}], ["blue"])
        assert "extra" in registry.names
        assert registry.remove_level("extra")
        assert not registry.remove_level("extra")

    def test_sessions_are_independent(self, registry):
        a = registry.new_session("glass_single")
        b = registry.new_session("glass_single")
        a.shoot(0.0, 20.0)
        assert b.blocks[0].damage == 0.0
        assert b.birds_left == 3

    def test_json_serialization(self, registry):
        data = json.loads(registry.to_json())
        assert data["count"] == registry.count
        assert data["levels"][0]["blocks"][0]["type"] == "glass"

    def test_custom_yaml(self, tmp_path):
        path = tmp_path / "levels.yaml"
        path.write_text(
            "physics:\n"
            "  gravity: 200.0\n"
            "levels:\n"
            "  - name: lone\n"
            "    projectiles: [yellow]\n"
            "    blocks:\n"
            "      - {x: 500, y: 520, type: stone}\n"
        )
        registry = LevelRegistry.from_yaml(path)
        assert registry.names == ["lone"]
        assert registry.config.physics.gravity == 200.0
        assert registry.get("lone").birds == 1

    def test_load_game_config(self, tmp_path):
        path = tmp_path / "game.yaml"
        path.write_text(
            "block_types:\n"
            "  ice: {health: 10.0, density: 0.5}\n"
            "projectile_types:\n"
            "  pebble: {mass: 0.2, base_damage: 5.0}\n"
        )
        config = load_game_config(path)
        assert set(config.block_types) == {"ice"}
        assert set(config.projectile_types) == {"pebble"}
        assert config.block_types["ice"].health == 10.0


# ============================================================
# 5. Environment
# ============================================================

class TestSlingshotEnv:
    """Test the gymnasium wrapper."""

    def test_spaces(self, default_env):
        assert default_env.observation_space.shape == (MAX_BLOCKS * 8 + 2 + 3,)
        assert default_env.observation_space.dtype == np.float32
        assert default_env.action_space.shape == (2,)
        assert default_env.action_space.low.min() == -1.0
        assert default_env.action_space.high.max() == 1.0

    def test_action_mapping(self):
        assert SlingshotEnv.action_to_shot(np.array([-1.0, -1.0])) == (-10.0, 5.0)
        assert SlingshotEnv.action_to_shot(np.array([1.0, 1.0])) == (80.0, 40.0)
        angle, speed = SlingshotEnv.action_to_shot(np.array([0.0, 0.0]))
        assert np.isclose(angle, 35.0)
        assert np.isclose(speed, 22.5)

    def test_out_of_range_action_clipped(self):
        assert SlingshotEnv.action_to_shot(np.array([5.0, -5.0])) == (80.0, 5.0)

    def test_reset_obs(self, glass_env):
        obs, info = glass_env.reset(seed=0)
        assert obs.shape == glass_env.observation_space.shape
        assert obs.dtype == np.float32
        assert info["level"] == "glass_single"
        assert info["blocks_left"] == 1
        assert info["birds_left"] == 3
        # First block slot is present, the rest are padding
        assert obs[0] == 1.0
        assert obs[8] == 0.0

    def test_reset_info_keys(self, default_env):
        _, info = default_env.reset(seed=1)
        for key in ("level", "blocks_left", "birds_left", "structure_score", "status"):
            assert key in info

    def test_step_reward(self, glass_env):
        glass_env.reset(seed=0)
        action = np.array([0.0, 0.0], dtype=np.float32)
        obs, reward, terminated, truncated, info = glass_env.step(action)
        record = glass_env.last_record
        assert reward == pytest.approx(record.result.reward / 100.0 + record.score_gained)
        assert truncated is False
        assert info["birds_left"] == 2 or terminated

    def test_episode_ends_within_bird_count(self, default_env):
        for seed in range(20):
            default_env.reset(seed=seed)
            birds = default_env.session.birds_left
            steps = 0
            terminated = False
            while not terminated:
                _, _, terminated, _, info = default_env.step(default_env.action_space.sample())
                steps += 1
            assert steps <= birds
            assert "won" in info
            assert info["won"] == (info["status"] == WON)

    def test_random_level_selection(self, default_env):
        seen = set()
        for seed in range(50):
            _, info = default_env.reset(seed=seed)
            seen.add(info["level"])
        assert len(seen) > 1

    def test_success_rate_tracking(self, glass_env):
        assert glass_env.success_rate == 0.0
        for seed in range(5):
            glass_env.reset(seed=seed)
            terminated = False
            while not terminated:
                _, _, terminated, _, _ = glass_env.step(np.array([1.0, -1.0], dtype=np.float32))
        assert glass_env.episode_count == 5
        assert 0.0 <= glass_env.success_rate <= 1.0
