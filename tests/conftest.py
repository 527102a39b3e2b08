"""
Sling Siege Test Suite — Shared Fixtures

Provides reusable pytest fixtures for all test stages.
"""

import sys
from dataclasses import replace
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sling_engine.collision import Block
from sling_engine.config import DEFAULT_CONFIG, GameConfig, PhysicsConfig
from rl_training.envs.level_registry import LevelRegistry
from rl_training.envs.slingshot_env import SlingshotEnv


# ---------- Config Fixtures ----------
@pytest.fixture
def default_config():
    """Stock physics constants and catalogs."""
    return DEFAULT_CONFIG


@pytest.fixture
def no_critical_config():
    """Critical threshold out of reach, so shots never stop early."""
    physics = replace(PhysicsConfig(), critical_damage_threshold=1e9)
    return GameConfig(physics=physics)


# ---------- Block Fixtures ----------
@pytest.fixture
def ground_block():
    """Single wood block resting on the ground (bottom = 580)."""
    return Block(id=1, x=100.0, y=520.0, width=60.0, height=60.0, type="wood")


@pytest.fixture
def tower_blocks():
    """Two wood blocks stacked directly on top of each other."""
    return [
        Block(id=1, x=100.0, y=520.0, width=60.0, height=60.0, type="wood"),
        Block(id=2, x=100.0, y=460.0, width=60.0, height=60.0, type="wood"),
    ]


@pytest.fixture
def fort_blocks():
    """Mixed-material fort in the flight path of low shots."""
    return [
        Block(id=1, x=600.0, y=520.0, type="wood"),
        Block(id=2, x=630.0, y=460.0, type="stone"),
        Block(id=3, x=660.0, y=520.0, type="wood"),
        Block(id=4, x=300.0, y=520.0, type="glass"),
    ]


# ---------- Registry / Environment Fixtures ----------
@pytest.fixture
def registry():
    """Level registry loaded from the bundled levels.yaml."""
    return LevelRegistry.from_yaml()


@pytest.fixture
def default_env(registry):
    """Environment that picks a random level on every reset."""
    env = SlingshotEnv(registry=registry)
    yield env
    env.close()


@pytest.fixture
def glass_env(registry):
    """Easiest level: one glass block, three red birds."""
    env = SlingshotEnv(level_name="glass_single", registry=registry)
    yield env
    env.close()


@pytest.fixture
def seeded_rng():
    """Seeded numpy RNG for determinism."""
    return np.random.default_rng(seed=42)
