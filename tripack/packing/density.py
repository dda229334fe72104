"""
Density adjustment: deleting tiles the outline cannot accommodate.

The initial tile count is an upper bound taken from the area ratio, so most
outlines start over-full. When the configuration stops improving while
overlaps remain severe, the worst-seated tile is deleted and relaxation
continues with one tile fewer.
"""

import logging
import math
from typing import Optional, Sequence

from ..geometry.vectors import EPSILON
from ..layout.abstraction import TileField
from .config import PackingConfig
from .convergence import SimulationState
from .forces import RemovalRank

logger = logging.getLogger(__name__)


class DensityAdjuster:
    """Chooses and removes one tile when the run has stalled."""

    def __init__(self, config: Optional[PackingConfig] = None):
        self.config = config or PackingConfig()

    def select_candidate(self, ranks: Sequence[RemovalRank]) -> Optional[int]:
        """Pick the removal candidate.

        Tiles are ranked by (bonus, score): few tight contacts first, then the
        most negative overlap score. The candidate is the first ranked tile
        whose |score| is at least the mean |score|.
        """
        if not ranks:
            return None
        mean_abs = sum(abs(rank.score) for rank in ranks) / len(ranks)
        for rank in sorted(ranks):
            if abs(rank.score) >= mean_abs:
                return rank.index
        return None

    def update_pause(self, state: SimulationState) -> bool:
        """Advance the pause accumulator.

        A uniform draw is taken every step; the accumulator grows when
        exp(1 - E / E_prev) falls below it, i.e. more often the less the
        energy has dropped.

        Returns:
            True when the accumulator was incremented
        """
        if state.previous_energy > EPSILON:
            ratio = state.energy / state.previous_energy
        elif state.energy <= EPSILON:
            ratio = 0.0
        else:
            ratio = math.inf
        draw = state.rng.random()
        if math.exp(1.0 - ratio) < draw:
            state.pause += 1
            return True
        return False

    def should_remove(self, state: SimulationState, tile_count: int) -> bool:
        """Removal gate: poor quality, stalled progress, tiles to spare."""
        if state.quality >= self.config.quality_gate:
            return False
        if tile_count <= self.config.min_tiles:
            return False
        return (state.pause > tile_count * tile_count
                or state.stagnation > self.config.stagnation_budget)

    def adjust(self, tiles: TileField, state: SimulationState,
               ranks: Sequence[RemovalRank]) -> Optional[int]:
        """Run the pause gate and remove a tile if the gate opens.

        Returns:
            Index of the removed tile, or None
        """
        candidate = self.select_candidate(ranks)
        self.update_pause(state)

        if candidate is None or not self.should_remove(state, len(tiles)):
            return None

        tile_count = len(tiles)
        pause, stagnation = state.pause, state.stagnation
        tiles.remove(candidate)
        tiles.zero_velocities()
        state.reset_convergence()
        state.removals += 1

        logger.info(
            "Removed tile %d at frame %d: %d -> %d tiles (K=%.3f, pause=%d, stagnation=%d)",
            candidate, state.frame, tile_count, len(tiles),
            state.quality, pause, stagnation,
        )
        return candidate
