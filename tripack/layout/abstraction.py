"""
Layout Abstraction Layer

Data model shared by the packing components: the container outline, the tile
poses read from the rigid-body store, and the live tile field.

All packing math runs in normalized units where a tile has circumradius 1.
An input polygon measured in arbitrary units is divided by
``edge_length / sqrt(3)`` on the way in; ``Outline.scale`` maps results back.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from shapely.geometry import LinearRing

from ..errors import InvalidPolygonError
from ..geometry.vectors import EPSILON, Point, Vector, normalize_angle, triangle_vertices

logger = logging.getLogger(__name__)


def signed_area(points: Sequence[Point]) -> float:
    """Shoelace area, positive for counter-clockwise rings."""
    total = 0.0
    n = len(points)
    for i in range(n):
        x1, y1 = points[i]
        x2, y2 = points[(i + 1) % n]
        total += x1 * y2 - x2 * y1
    return total / 2.0


def _clean_vertices(vertices: Sequence[Sequence[float]]) -> List[Point]:
    """Convert to float tuples and drop repeated consecutive vertices,
    including an explicit closing vertex equal to the first one."""
    cleaned: List[Point] = []
    for vertex in vertices:
        if len(vertex) != 2:
            raise InvalidPolygonError(f"Vertex must have two coordinates: {vertex!r}")
        x, y = float(vertex[0]), float(vertex[1])
        if not (math.isfinite(x) and math.isfinite(y)):
            raise InvalidPolygonError(f"Vertex has non-finite coordinates: {vertex!r}")
        if cleaned and abs(cleaned[-1][0] - x) < EPSILON and abs(cleaned[-1][1] - y) < EPSILON:
            continue
        cleaned.append((x, y))
    while (len(cleaned) > 1 and abs(cleaned[0][0] - cleaned[-1][0]) < EPSILON
           and abs(cleaned[0][1] - cleaned[-1][1]) < EPSILON):
        cleaned.pop()
    return cleaned


@dataclass
class Outline:
    """The container polygon in normalized units.

    Points are ordered counter-clockwise so the left normal of every edge
    points into the polygon.
    """
    points: List[Point]
    # Input units per normalized unit
    scale: float = 1.0

    @classmethod
    def from_vertices(cls, vertices: Sequence[Sequence[float]],
                      edge_length: Optional[float] = None) -> "Outline":
        """Validate and normalize an input polygon.

        Args:
            vertices: Polygon vertices in input units, implicitly closed
            edge_length: Tile edge length in input units. None keeps the
                coordinates as given (they are already normalized).

        Raises:
            InvalidPolygonError: on fewer than 3 distinct vertices, a
                self-intersecting ring, zero area or a bad edge length
        """
        if vertices is None or len(vertices) < 3:
            count = 0 if vertices is None else len(vertices)
            raise InvalidPolygonError(
                f"Polygon needs at least 3 vertices, got {count}"
            )

        if edge_length is None:
            scale = 1.0
        else:
            if not (math.isfinite(edge_length) and edge_length > 0):
                raise InvalidPolygonError(
                    f"Tile edge length must be positive, got {edge_length}"
                )
            scale = edge_length / math.sqrt(3.0)

        points = _clean_vertices(vertices)
        if len(points) < 3:
            raise InvalidPolygonError(
                f"Polygon needs at least 3 distinct vertices, got {len(points)}"
            )
        points = [(x / scale, y / scale) for x, y in points]

        if not LinearRing(points).is_simple:
            raise InvalidPolygonError("Polygon outline is self-intersecting")

        area = signed_area(points)
        if abs(area) < EPSILON:
            raise InvalidPolygonError("Polygon has zero area")
        if area < 0:
            points.reverse()

        return cls(points=points, scale=scale)

    def __len__(self) -> int:
        return len(self.points)

    def edges(self) -> List[Tuple[Point, Point]]:
        """Edges as (start, end) pairs, closing back to the first vertex."""
        n = len(self.points)
        return [(self.points[i], self.points[(i + 1) % n]) for i in range(n)]

    def get_bounding_box(self) -> Tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y) in normalized units."""
        xs = [p[0] for p in self.points]
        ys = [p[1] for p in self.points]
        return (min(xs), min(ys), max(xs), max(ys))

    def to_world(self, point: Point) -> Point:
        """Map a normalized point back to input units."""
        return (point[0] * self.scale, point[1] * self.scale)


@dataclass(frozen=True)
class TilePose:
    """Immutable view of one tile for the duration of a step."""
    position: Point
    orientation: float  # degrees, wrapped into (-180, 180]

    @property
    def vertices(self) -> List[Point]:
        return triangle_vertices(self.position, self.orientation)


@dataclass
class Tile:
    """A tile in the field: its body handle and last read pose."""
    handle: int
    position: Point
    orientation: float

    def pose(self) -> TilePose:
        return TilePose(self.position, normalize_angle(self.orientation))


class TileField:
    """The live collection of tiles, backed by a rigid-body store.

    Tiles are only added during initialization and only removed by the
    density adjuster. Removal swaps the last tile into the freed slot, so
    indices are stable within a step but not across removals.
    """

    def __init__(self, store):
        self.store = store
        self._handles: List[int] = []

    def __len__(self) -> int:
        return len(self._handles)

    @property
    def handles(self) -> List[int]:
        return list(self._handles)

    def add(self, position: Point, orientation: float) -> int:
        """Create a tile body and return its index."""
        self._handles.append(self.store.create(position, orientation))
        return len(self._handles) - 1

    def tiles(self) -> List[Tile]:
        """Current tiles with poses read from the store."""
        result = []
        for handle in self._handles:
            position, orientation = self.store.get_pose(handle)
            result.append(Tile(handle=handle, position=position, orientation=orientation))
        return result

    def snapshot(self) -> List[TilePose]:
        """Freeze all poses for one step, orientations wrapped."""
        return [tile.pose() for tile in self.tiles()]

    def set_velocities(self, linear: Sequence[Vector], angular: Sequence[float]):
        if len(linear) != len(self._handles) or len(angular) != len(self._handles):
            raise ValueError(
                f"Expected {len(self._handles)} velocities, got "
                f"{len(linear)} linear and {len(angular)} angular"
            )
        for handle, lin, ang in zip(self._handles, linear, angular):
            self.store.set_velocity(handle, lin, ang)

    def zero_velocities(self):
        for handle in self._handles:
            self.store.set_velocity(handle, (0.0, 0.0), 0.0)

    def remove(self, index: int) -> int:
        """Swap-remove tile ``index`` and destroy its body.

        Returns:
            The handle of the destroyed body
        """
        handle = self._handles[index]
        self._handles[index] = self._handles[-1]
        self._handles.pop()
        self.store.destroy(handle)
        return handle

    def restore(self, poses: Sequence[TilePose]):
        """Teleport tiles back to saved poses (same count required)."""
        if len(poses) != len(self._handles):
            raise ValueError(
                f"Saved configuration has {len(poses)} tiles, field has {len(self._handles)}"
            )
        for handle, pose in zip(self._handles, poses):
            self.store.set_pose(handle, pose.position, pose.orientation)
