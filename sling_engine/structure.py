"""
Sling Siege Engine — Structural Support Scoring

Block-on-block scoring: a block earns 1 point if it rests on the ground or
directly on another block of the same snapshot, else 0.

Support is checked one level deep only. A block sitting on a floating block
still scores, as long as that supporter is present in the snapshot.
Both tolerances come from PhysicsConfig; a stack a few pixels out of line
still counts as stacked.
"""

from typing import List, Sequence

import numpy as np

from sling_engine.collision import Block
from sling_engine.config import DEFAULT_CONFIG, GameConfig


def supported_mask(blocks: Sequence[Block], config: GameConfig = DEFAULT_CONFIG) -> np.ndarray:
    """Boolean array, True where blocks[i] is supported.

    Block i is supported when either:
      - its bottom is within support_tolerance_y of ground_y, or below it
      - some other block j has its top within support_tolerance_y of i's
        bottom, and i's horizontal center lies inside j's span widened by
        support_tolerance_x on both sides
    """
    if len(blocks) == 0:
        return np.zeros(0, dtype=bool)

    physics = config.physics
    tol_y = physics.support_tolerance_y
    tol_x = physics.support_tolerance_x

    x = np.array([b.x for b in blocks], dtype=np.float64)
    y = np.array([b.y for b in blocks], dtype=np.float64)
    w = np.array([b.width for b in blocks], dtype=np.float64)
    h = np.array([b.height for b in blocks], dtype=np.float64)

    bottom = y + h
    center = x + w / 2.0

    on_ground = (np.abs(bottom - physics.ground_y) <= tol_y) | (bottom > physics.ground_y)

    # Pairwise [i, j]: does block j hold up block i?
    aligned = np.abs(bottom[:, None] - y[None, :]) <= tol_y
    under_center = (center[:, None] >= x[None, :] - tol_x) & (center[:, None] <= (x + w)[None, :] + tol_x)
    stacked = aligned & under_center
    np.fill_diagonal(stacked, False)

    return on_ground | stacked.any(axis=1)


def structural_score(blocks: Sequence[Block], config: GameConfig = DEFAULT_CONFIG) -> int:
    """Number of supported blocks in the snapshot, 0 <= score <= len(blocks)."""
    return int(supported_mask(blocks, config).sum())


def supported_block_ids(blocks: Sequence[Block], config: GameConfig = DEFAULT_CONFIG) -> List[int]:
    """Ids of the blocks that score, in input order."""
    mask = supported_mask(blocks, config)
    return [b.id for b, ok in zip(blocks, mask) if ok]


def structural_damage(
    before: Sequence[Block],
    after: Sequence[Block],
    config: GameConfig = DEFAULT_CONFIG,
) -> int:
    """Supported blocks lost between two snapshots, never negative."""
    return max(0, structural_score(before, config) - structural_score(after, config))
