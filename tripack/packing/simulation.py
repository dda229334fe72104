"""
Tile packing simulation loop.

Places equilateral-triangle tiles inside a polygon and relaxes them towards a
dense, overlap-free arrangement:

1. Initialization - the tile count is the polygon area divided by the tile
   area; tiles are scattered at uniform random positions inside the polygon
   with uniform random orientations
2. Relaxation - each step finds sector neighbors and overlaps on a frozen
   snapshot, turns them into velocities and advances the rigid-body store
3. Density adjustment - when progress stalls with severe overlaps left, one
   tile is deleted and relaxation continues

All randomness comes from one seeded RNG stream, so a run is reproducible
from its seed.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..errors import ConfigError, PlacementError
from ..geometry.predicates import ExactPredicates, get_predicates
from ..geometry.vectors import EPSILON, TILE_AREA
from ..layout.abstraction import Outline, TileField, TilePose
from ..layout.rigid_body import KinematicBodyStore
from .config import PackingConfig
from .convergence import ConvergenceTracker, SimulationState
from .density import DensityAdjuster
from .forces import ForceModel
from .neighbors import NeighborFinder
from .overlaps import OverlapDetector

logger = logging.getLogger(__name__)


class StopReason(Enum):
    """Why a run ended."""
    STEP_BUDGET = "step_budget"
    TARGET_QUALITY = "target_quality"
    STOPPED = "stopped"  # stop_check returned True


@dataclass
class StepDiagnostics:
    """Per-step progress record."""
    frame: int
    tile_count: int
    energy: float
    quality: float
    removed: Optional[int] = None  # index of the tile deleted this step


@dataclass
class PackingResult:
    """Final state of a packing run."""
    outline: Outline
    tiles: List[TilePose]  # normalized units
    seed: int
    steps: int
    energy: float
    quality: float
    initial_count: int
    removals: int
    stop_reason: StopReason
    history: List[StepDiagnostics] = field(default_factory=list)

    @property
    def tile_count(self) -> int:
        return len(self.tiles)

    def world_tiles(self) -> List[TilePose]:
        """Tile poses mapped back to the input polygon's units."""
        return [TilePose(self.outline.to_world(t.position), t.orientation)
                for t in self.tiles]

    def to_dict(self) -> Dict[str, Any]:
        """Serializable summary with tiles in input units."""
        return {
            "seed": self.seed,
            "scale": self.outline.scale,
            "tile_count": self.tile_count,
            "initial_count": self.initial_count,
            "removals": self.removals,
            "steps": self.steps,
            "energy": self.energy,
            "quality": self.quality,
            "stop_reason": self.stop_reason.value,
            "tiles": [
                {"x": t.position[0], "y": t.position[1], "orientation": t.orientation}
                for t in self.world_tiles()
            ],
        }


class TilePacker:
    """
    Packs triangular tiles into a polygon by iterative relaxation.

    Usage:
        packer = TilePacker.from_polygon(vertices, edge_length=1.0, seed=7)
        result = packer.run()
    """

    def __init__(self, outline: Outline, config: Optional[PackingConfig] = None,
                 seed: Optional[int] = None, tile_count: Optional[int] = None,
                 store=None, predicates: Optional[ExactPredicates] = None):
        """
        Args:
            outline: Normalized container outline
            config: Packing configuration
            seed: RNG seed; None derives one from the current time
            tile_count: Fixed initial tile count instead of the area estimate
            store: Rigid-body store (defaults to KinematicBodyStore)
            predicates: Geometry predicates (defaults to the variant selected
                by ``config.use_exact_area``)
        """
        self.config = (config or PackingConfig()).validate()
        if tile_count is not None and tile_count < 0:
            raise ConfigError(f"tile_count must not be negative, got {tile_count}")

        self.outline = outline
        self.state = SimulationState.seeded(seed)
        self.predicates = predicates or get_predicates(
            self.config.use_exact_area,
            samples=self.config.area_samples,
            rng=self.state.rng,
        )
        self.store = store if store is not None else KinematicBodyStore(
            self.config.collision_radius
        )
        self.tiles = TileField(self.store)

        self.neighbor_finder = NeighborFinder(self.config)
        self.overlap_detector = OverlapDetector(self.predicates)
        self.force_model = ForceModel(self.config, self.predicates)
        self.tracker = ConvergenceTracker(self.config.energy_window)
        self.adjuster = DensityAdjuster(self.config)

        self.history: List[StepDiagnostics] = []
        self.initial_count = 0
        self._tile_count_override = tile_count
        self._initialized = False

    @classmethod
    def from_polygon(cls, vertices: Sequence[Sequence[float]],
                     edge_length: Optional[float] = None, **kwargs) -> "TilePacker":
        """Validate a polygon in input units and build a packer for it.

        Raises:
            InvalidPolygonError: before any body is created
        """
        return cls(Outline.from_vertices(vertices, edge_length), **kwargs)

    def estimate_tile_count(self) -> int:
        """Upper bound on tiles: polygon area over tile area."""
        if self._tile_count_override is not None:
            return self._tile_count_override
        area = self.predicates.polygon_area(self.outline.points)
        return int(area / TILE_AREA)

    def initialize(self) -> TileField:
        """Scatter the initial tiles inside the outline.

        Raises:
            PlacementError: if a tile cannot be placed within the attempt
                budget (a very thin polygon)
        """
        if self._initialized:
            return self.tiles

        count = self.estimate_tile_count()
        min_x, min_y, max_x, max_y = self.outline.get_bounding_box()
        rng = self.state.rng
        for i in range(count):
            for _ in range(self.config.max_sampling_attempts):
                position = (rng.uniform(min_x, max_x), rng.uniform(min_y, max_y))
                if self.predicates.point_in_polygon(self.outline.points, position):
                    break
            else:
                raise PlacementError(
                    f"Could not place tile {i + 1}/{count} inside the polygon after "
                    f"{self.config.max_sampling_attempts} attempts"
                )
            self.tiles.add(position, rng.uniform(0.0, 360.0))

        self.initial_count = count
        self._initialized = True
        logger.info("Initialized %d tiles (seed=%d, outline vertices=%d, scale=%.4g)",
                    count, self.state.seed, len(self.outline), self.outline.scale)
        return self.tiles

    def step(self) -> StepDiagnostics:
        """Advance the simulation by one step."""
        if not self._initialized:
            self.initialize()

        poses = self.tiles.snapshot()
        neighbors = self.neighbor_finder.find(poses)
        overlaps = self.overlap_detector.detect(poses, self.outline)
        forces = self.force_model.compute(poses, neighbors, overlaps, self.outline)

        self.tiles.set_velocities(forces.linear, forces.angular)
        self.store.step(self.config.time_step)

        if self.tracker.update(self.state, forces.raw_energy, forces.quality):
            # Energy was measured on the snapshot, not the integrated poses
            self.state.best_poses = poses
            self.state.best_energy = self.state.energy
            self.state.best_quality = self.state.quality
            self.state.best_frame = self.state.frame

        removed = self.adjuster.adjust(self.tiles, self.state, forces.ranks)
        if removed is not None:
            self.tracker.reset()

        diagnostics = StepDiagnostics(
            frame=self.state.frame,
            tile_count=len(self.tiles),
            energy=self.state.energy,
            quality=self.state.quality,
            removed=removed,
        )
        self.history.append(diagnostics)

        if logger.isEnabledFor(logging.DEBUG) and self.state.frame % self.config.log_every == 0:
            logger.debug(
                "Frame %d: tiles=%d energy=%.4f mean_energy=%.4f K=%.4f pause=%d stagnation=%d",
                self.state.frame, len(self.tiles), self.state.energy,
                self.tracker.recent_mean, self.state.quality,
                self.state.pause, self.state.stagnation,
            )
        return diagnostics

    def run(self, max_steps: Optional[int] = None,
            callback: Optional[Callable[[StepDiagnostics], None]] = None,
            stop_check: Optional[Callable[[SimulationState], bool]] = None
            ) -> PackingResult:
        """
        Run the relaxation until a stop condition holds.

        Stops when:
        - the step budget is spent
        - ``target_quality`` is set and the arrangement has held K at or above
          it with zero energy for ``settle_steps`` consecutive steps
        - ``stop_check(state)`` returns True (checked between steps)

        Args:
            max_steps: Step budget (defaults to ``config.max_steps``)
            callback: Called with the diagnostics of every step
            stop_check: Cooperative cancellation hook

        Returns:
            PackingResult with the final tiles in normalized units
        """
        self.initialize()
        budget = self.config.max_steps if max_steps is None else max_steps
        target = self.config.target_quality
        settled = 0
        steps = 0
        reason = StopReason.STEP_BUDGET

        for _ in range(budget):
            if stop_check is not None and stop_check(self.state):
                reason = StopReason.STOPPED
                break

            diagnostics = self.step()
            steps += 1
            if callback:
                callback(diagnostics)

            if target is not None:
                if diagnostics.quality >= target and diagnostics.energy <= EPSILON:
                    settled += 1
                else:
                    settled = 0
                if settled >= max(self.config.settle_steps, 1):
                    reason = StopReason.TARGET_QUALITY
                    break

        # Leave the field at rest
        self.tiles.zero_velocities()

        if (reason is StopReason.STEP_BUDGET and target is not None
                and self.state.quality < target):
            logger.warning(
                "Step budget of %d exhausted with K=%.3f below target %.3f (%d tiles)",
                budget, self.state.quality, target, len(self.tiles),
            )
        logger.info(
            "Packing finished (%s): %d steps, %d -> %d tiles, energy=%.4f, K=%.3f",
            reason.value, steps, self.initial_count, len(self.tiles),
            self.state.energy, self.state.quality,
        )
        return self.result(reason, steps)

    def restore_best(self) -> bool:
        """Move the tiles back to the lowest-energy snapshot of the current
        tile count.

        Returns:
            False when no snapshot is available (e.g. right after a removal)
        """
        best = self.state.best_poses
        if best is None or len(best) != len(self.tiles):
            return False
        self.tiles.restore(best)
        self.tiles.zero_velocities()
        logger.info("Restored best configuration from frame %d (energy=%.4f)",
                    self.state.best_frame, self.state.best_energy)
        return True

    def best_result(self, reason: StopReason = StopReason.STEP_BUDGET,
                    steps: Optional[int] = None) -> Optional[PackingResult]:
        """Restore the best snapshot and report it.

        Energy, quality and history describe the snapshot's frame rather
        than the last step. Returns None when nothing can be restored.
        """
        if not self.restore_best():
            return None
        result = self.result(reason, steps)
        result.energy = self.state.best_energy
        result.quality = self.state.best_quality
        result.history = [d for d in result.history if d.frame <= self.state.best_frame]
        return result

    def result(self, reason: StopReason = StopReason.STEP_BUDGET,
               steps: Optional[int] = None) -> PackingResult:
        """Snapshot the current field as a PackingResult."""
        return PackingResult(
            outline=self.outline,
            tiles=self.tiles.snapshot(),
            seed=self.state.seed,
            steps=self.state.frame if steps is None else steps,
            energy=self.state.energy,
            quality=self.state.quality,
            initial_count=self.initial_count,
            removals=self.state.removals,
            stop_reason=reason,
            history=list(self.history),
        )


def pack_polygon(vertices: Sequence[Sequence[float]],
                 edge_length: Optional[float] = None,
                 count: Optional[int] = None,
                 seed: Optional[int] = None,
                 config: Optional[PackingConfig] = None,
                 max_steps: Optional[int] = None,
                 restore_best: bool = False) -> PackingResult:
    """Pack tiles into a polygon in one call.

    Args:
        vertices: Polygon vertices in input units
        edge_length: Tile edge length in input units (None = already normalized)
        count: Fixed initial tile count instead of the area estimate
        seed: RNG seed
        config: Packing configuration
        max_steps: Step budget override
        restore_best: Return the lowest-energy snapshot of the final tile
            count instead of the last pose
    """
    packer = TilePacker.from_polygon(
        vertices, edge_length, config=config, seed=seed, tile_count=count
    )
    result = packer.run(max_steps=max_steps)
    if restore_best:
        best = packer.best_result(result.stop_reason, result.steps)
        if best is not None:
            return best
    return result
