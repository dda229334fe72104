"""
Plane vector helpers for tile geometry.

Points and vectors are plain (x, y) tuples. Angles are in degrees and use the
heading convention of the tile model: heading ``a`` maps to the unit vector
``(sin a, cos a)``, so 0 degrees points along +y and headings grow clockwise.

A tile is an equilateral triangle with circumradius 1. Its three sectors face
``orientation + 120 * k`` for k in 0..2; the side facing sector k runs between
the vertices at ``heading - 60`` and ``heading + 60`` and its midpoint sits at
distance 0.5 (the inradius) from the center.
"""

import math
from typing import List, Optional, Tuple

from ..errors import DegenerateGeometryError

Point = Tuple[float, float]
Vector = Tuple[float, float]

# Shared epsilon for every near-zero guard in the packer
EPSILON = 1e-9

SECTOR_COUNT = 3
SECTOR_SPAN = 120.0
INRADIUS = 0.5
# Area of an equilateral triangle with circumradius 1
TILE_AREA = 3.0 * math.sqrt(3.0) / 4.0


def normalize_angle(angle: float) -> float:
    """Wrap an angle in degrees into (-180, 180]."""
    wrapped = math.fmod(angle, 360.0)
    if wrapped > 180.0:
        wrapped -= 360.0
    elif wrapped <= -180.0:
        wrapped += 360.0
    return wrapped


def angle_diff(initial: float, final: float) -> float:
    """Signed rotation in (-180, 180] that turns ``initial`` into ``final``."""
    return normalize_angle(final - initial)


def heading(angle: float) -> Vector:
    """Unit vector for a heading in degrees."""
    rad = math.radians(angle)
    return (math.sin(rad), math.cos(rad))


def add(a: Vector, b: Vector) -> Vector:
    return (a[0] + b[0], a[1] + b[1])


def sub(a: Vector, b: Vector) -> Vector:
    return (a[0] - b[0], a[1] - b[1])


def scale(v: Vector, factor: float) -> Vector:
    return (v[0] * factor, v[1] * factor)


def dot(a: Vector, b: Vector) -> float:
    return a[0] * b[0] + a[1] * b[1]


def cross(a: Vector, b: Vector) -> float:
    return a[0] * b[1] - a[1] * b[0]


def length(v: Vector) -> float:
    return math.hypot(v[0], v[1])


def unit(v: Vector) -> Vector:
    """Normalize a vector.

    Raises:
        DegenerateGeometryError: if the vector is shorter than EPSILON
    """
    norm = length(v)
    if not norm >= EPSILON:
        raise DegenerateGeometryError(
            f"Cannot normalize vector ({v[0]:.3g}, {v[1]:.3g}): length {norm:.3g}"
        )
    return (v[0] / norm, v[1] / norm)


def distance_to_line(p: Point, u: Point, v: Point) -> float:
    """Perpendicular distance from ``p`` to the infinite line through u and v."""
    e1 = sub(u, v)
    e1_length = length(e1)
    if e1_length < EPSILON:
        raise DegenerateGeometryError(
            f"Line through ({u[0]:.3g}, {u[1]:.3g}) has zero length"
        )
    return abs(cross(e1, sub(p, v))) / e1_length


def line_intersection(p1: Point, p2: Point, q1: Point, q2: Point) -> Optional[Point]:
    """Intersection of the infinite lines p1-p2 and q1-q2, None when parallel."""
    dp = sub(p2, p1)
    dq = sub(q2, q1)
    det = cross(dp, dq)
    if abs(det) < EPSILON:
        return None
    t = cross(sub(q1, p1), dq) / det
    return (p1[0] + t * dp[0], p1[1] + t * dp[1])


def sector_heading(orientation: float, k: int) -> float:
    """Heading of sector ``k`` of a tile, wrapped into (-180, 180]."""
    return normalize_angle(orientation + SECTOR_SPAN * k)


def triangle_vertices(center: Point, orientation: float) -> List[Point]:
    """Vertices of the tile footprint centered at ``center``."""
    return [
        add(center, heading(orientation + offset))
        for offset in (-60.0, -180.0, 60.0)
    ]


def sector_side(center: Point, orientation: float, k: int) -> Tuple[Point, Point]:
    """Endpoints of the triangle side facing sector ``k``."""
    a = orientation + SECTOR_SPAN * k
    return (add(center, heading(a - 60.0)), add(center, heading(a + 60.0)))


def sector_midpoint(center: Point, orientation: float, k: int) -> Point:
    """Midpoint of the triangle side facing sector ``k``."""
    return add(center, scale(heading(orientation + SECTOR_SPAN * k), INRADIUS))
