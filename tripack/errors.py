"""
Error types raised by the tile packer.

Everything derives from TripackError so callers can catch the whole family.
Several types also derive from the builtin they refine (ValueError, KeyError)
so generic handlers keep working.
"""

from typing import Optional


class TripackError(Exception):
    """Base class for all tile packer errors."""
    pass


class InvalidPolygonError(TripackError, ValueError):
    """Raised when an input polygon cannot be packed (too few vertices,
    self-intersecting, zero area, or a non-positive tile size)."""
    pass


class DegenerateGeometryError(TripackError):
    """Raised when a computation hits a vector or distance below epsilon."""
    pass


class SectorResolutionError(DegenerateGeometryError):
    """Raised when a relative vector falls in none of a tile's three sectors.

    This cannot happen for finite poses, so it signals corrupted pose data
    (NaN positions or orientations) rather than a packing problem.
    """

    def __init__(self, message: str, tile: Optional[int] = None,
                 other: Optional[int] = None):
        super().__init__(message)
        self.tile = tile
        self.other = other


class PlacementError(TripackError):
    """Raised when initial tiles cannot be sampled inside the polygon."""
    pass


class UnknownBodyError(TripackError, KeyError):
    """Raised when a rigid-body handle is not known to the store."""
    pass


class ConfigError(TripackError, ValueError):
    """Raised for invalid packing configuration values or files."""
    pass
