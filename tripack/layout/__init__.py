"""Container outline, tile field, rigid-body store and file I/O."""

from .abstraction import Outline, Tile, TileField, TilePose
from .polygon_io import parse_polygon, read_polygon, read_result, write_result
from .rigid_body import KinematicBodyStore

__all__ = [
    "Outline",
    "Tile",
    "TileField",
    "TilePose",
    "parse_polygon",
    "read_polygon",
    "read_result",
    "write_result",
    "KinematicBodyStore",
]
