"""Packing engine: neighbor search, overlap detection, forces and the relaxation loop."""

from .config import PackingConfig, load_config
from .convergence import ConvergenceTracker, SimulationState
from .density import DensityAdjuster
from .forces import ForceModel, ForceResult, InteractionType, RemovalRank
from .neighbors import NeighborFinder, sector_of
from .overlaps import OverlapDetector, OverlapTable
from .simulation import PackingResult, StepDiagnostics, StopReason, TilePacker, pack_polygon

__all__ = [
    "PackingConfig",
    "load_config",
    "ConvergenceTracker",
    "SimulationState",
    "DensityAdjuster",
    "ForceModel",
    "ForceResult",
    "InteractionType",
    "RemovalRank",
    "NeighborFinder",
    "sector_of",
    "OverlapDetector",
    "OverlapTable",
    "PackingResult",
    "StepDiagnostics",
    "StopReason",
    "TilePacker",
    "pack_polygon",
]
