"""Plane geometry for triangular tiles: vector helpers and predicates."""

from .predicates import ApproximatePredicates, ExactPredicates, get_predicates
from .vectors import (
    EPSILON,
    TILE_AREA,
    angle_diff,
    distance_to_line,
    heading,
    normalize_angle,
    sector_midpoint,
    sector_side,
    triangle_vertices,
    unit,
)

__all__ = [
    "ApproximatePredicates",
    "ExactPredicates",
    "get_predicates",
    "EPSILON",
    "TILE_AREA",
    "angle_diff",
    "distance_to_line",
    "heading",
    "normalize_angle",
    "sector_midpoint",
    "sector_side",
    "triangle_vertices",
    "unit",
]
