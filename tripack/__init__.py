"""
Tripack - Triangular Tile Packing

Packs equilateral-triangle tiles into a simple polygon by iterative
relaxation: tiles align with their sector neighbors, are pushed apart where
they overlap, are pushed back inside where they cross the outline, and are
deleted one at a time while the outline stays over-full.
"""

__version__ = "0.1.0"

from .errors import (
    ConfigError,
    DegenerateGeometryError,
    InvalidPolygonError,
    PlacementError,
    SectorResolutionError,
    TripackError,
    UnknownBodyError,
)
from .layout.abstraction import Outline, TilePose
from .packing.config import PackingConfig, load_config
from .packing.simulation import PackingResult, TilePacker, pack_polygon

__all__ = [
    "ConfigError",
    "DegenerateGeometryError",
    "InvalidPolygonError",
    "PlacementError",
    "SectorResolutionError",
    "TripackError",
    "UnknownBodyError",
    "Outline",
    "TilePose",
    "PackingConfig",
    "load_config",
    "PackingResult",
    "TilePacker",
    "pack_polygon",
]
