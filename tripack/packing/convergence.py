"""
Convergence bookkeeping for the packing loop.

SimulationState carries everything that survives from one step to the next:
energies, the stagnation counter, the pause accumulator and the RNG stream.
ConvergenceTracker folds the raw energy of a step into that state.
"""

import logging
import math
import random
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional

from ..layout.abstraction import TilePose

logger = logging.getLogger(__name__)


@dataclass
class SimulationState:
    """Mutable state of one packing run."""
    rng: random.Random
    seed: int

    # Energy bookkeeping
    energy: float = math.inf
    previous_energy: float = math.inf
    min_energy: float = math.inf
    stagnation: int = 0  # steps since min_energy last improved

    # Progress
    frame: int = 0
    pause: int = 0  # pause gate accumulator
    quality: float = 1.0
    removals: int = 0

    # Best configuration seen at the current tile count
    best_poses: Optional[List[TilePose]] = None
    best_energy: float = math.inf
    best_quality: float = 1.0
    best_frame: int = -1

    @classmethod
    def seeded(cls, seed: Optional[int] = None) -> "SimulationState":
        """Create a state whose RNG stream is fixed by ``seed``.

        Without a seed the current time is used, and reported back through
        ``state.seed`` so the run can be repeated.
        """
        if seed is None:
            seed = int(time.time())
        return cls(rng=random.Random(seed), seed=seed)

    def reset_convergence(self):
        """Forget convergence history after the tile count changed."""
        self.pause = 0
        self.previous_energy = math.inf
        self.min_energy = math.inf
        self.stagnation = 0
        # A snapshot with a different tile count cannot be restored
        self.best_poses = None
        self.best_energy = math.inf
        self.best_quality = 1.0
        self.best_frame = -1


class ConvergenceTracker:
    """Updates energy, minimum energy and stagnation after each step."""

    def __init__(self, window: int = 100):
        self.history: Deque[float] = deque(maxlen=window)

    def update(self, state: SimulationState, raw_energy: float, quality: float) -> bool:
        """Record the outcome of one step.

        Args:
            state: State to update in place
            raw_energy: Energy summed from both sides of every overlap; halved
                here so each overlap counts once
            quality: Smallest actual/required separation of the step

        Returns:
            True when the step set a new minimum energy
        """
        state.previous_energy = state.energy
        state.energy = raw_energy / 2.0
        state.quality = quality

        improved = state.energy < state.min_energy
        if improved:
            state.stagnation = 0
            state.min_energy = state.energy
        else:
            state.stagnation += 1

        state.frame += 1
        self.history.append(state.energy)
        return improved

    def reset(self):
        self.history.clear()

    @property
    def recent_mean(self) -> float:
        """Mean energy over the tracked window (inf before the first step)."""
        if not self.history:
            return math.inf
        return sum(self.history) / len(self.history)
