"""
Geometry Predicates

Area, containment and intersection tests used by the packer. The exact
implementation delegates to shapely, whose GEOS predicates are evaluated
robustly, so touching footprints count as intersecting and a point on the
polygon boundary is not inside.

The approximate implementation keeps the intersection tests but swaps area
and containment for a ray-crossing test and a Monte-Carlo area estimate. It
exists for inputs where only a rough tile count is wanted.
"""

import logging
import random
from typing import Dict, List, Optional, Sequence, Tuple

from shapely.geometry import LineString, Point as ShapelyPoint, Polygon
from shapely.strtree import STRtree

from .vectors import Point

logger = logging.getLogger(__name__)

# Default sample count for the Monte-Carlo area estimate
DEFAULT_AREA_SAMPLES = 0xFFF


class ExactPredicates:
    """Robust predicates backed by shapely."""

    def __init__(self):
        # Polygon rings are reused across thousands of containment queries
        self._polygon_cache: Dict[Tuple[Point, ...], Polygon] = {}

    def _polygon(self, points: Sequence[Point]) -> Polygon:
        key = tuple((float(x), float(y)) for x, y in points)
        polygon = self._polygon_cache.get(key)
        if polygon is None:
            polygon = Polygon(key)
            if len(self._polygon_cache) > 64:
                self._polygon_cache.clear()
            self._polygon_cache[key] = polygon
        return polygon

    def polygon_area(self, points: Sequence[Point]) -> float:
        """Unsigned area of a simple polygon."""
        return abs(self._polygon(points).area)

    def point_in_polygon(self, points: Sequence[Point], point: Point) -> bool:
        """True when ``point`` lies strictly inside the polygon."""
        return self._polygon(points).contains(ShapelyPoint(point))

    def segments_intersect(self, a: Point, b: Point, c: Point, d: Point) -> bool:
        """True when closed segments a-b and c-d share a point."""
        return LineString([a, b]).intersects(LineString([c, d]))

    def triangle_intersects_segment(self, triangle: Sequence[Point],
                                    a: Point, b: Point) -> bool:
        """True when the closed triangle region meets segment a-b."""
        return Polygon(triangle).intersects(LineString([a, b]))

    def triangle_intersects_triangle(self, first: Sequence[Point],
                                     second: Sequence[Point]) -> bool:
        """True when two closed triangle regions meet (touching included)."""
        return Polygon(first).intersects(Polygon(second))

    def footprint_index(self, triangles: Sequence[Sequence[Point]]) -> "FootprintIndex":
        """Spatial index over one step's tile footprints."""
        return FootprintIndex(triangles)


class FootprintIndex:
    """
    Triangle footprints of one pose snapshot, built once and queried through
    an STRtree. Query results agree with ``triangle_intersects_triangle`` and
    ``triangle_intersects_segment``.
    """

    def __init__(self, triangles: Sequence[Sequence[Point]]):
        self.polygons: List[Polygon] = [Polygon(t) for t in triangles]
        self.tree = STRtree(self.polygons) if self.polygons else None

    def intersecting_pairs(self) -> List[Tuple[int, int]]:
        """Unordered pairs (i < j) of meeting footprints, sorted."""
        if self.tree is None:
            return []
        # Shapely 2 bulk query: row 0 indexes the input, row 1 the tree
        inputs, hits = self.tree.query(self.polygons, predicate="intersects")
        return sorted({(int(i), int(j)) for i, j in zip(inputs, hits) if i < j})

    def meeting_segment(self, a: Point, b: Point) -> List[int]:
        """Sorted indices of footprints meeting closed segment a-b."""
        if self.tree is None:
            return []
        hits = self.tree.query(LineString([a, b]), predicate="intersects")
        return sorted(int(i) for i in hits)


class ApproximatePredicates(ExactPredicates):
    """Sampling-based area and ray-crossing containment.

    Intersection tests are inherited unchanged, so overlap detection is the
    same as the exact variant.
    """

    def __init__(self, samples: int = DEFAULT_AREA_SAMPLES,
                 rng: Optional[random.Random] = None):
        super().__init__()
        if samples <= 0:
            raise ValueError(f"samples must be positive, got {samples}")
        self.samples = samples
        self.rng = rng or random.Random(0)

    def polygon_area(self, points: Sequence[Point]) -> float:
        """Estimate area from the fraction of bounding-box samples inside."""
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        min_x, max_x = min(xs), max(xs)
        min_y, max_y = min(ys), max(ys)

        inside = 0
        for _ in range(self.samples):
            sample = (self.rng.uniform(min_x, max_x), self.rng.uniform(min_y, max_y))
            if self.point_in_polygon(points, sample):
                inside += 1

        area = (max_x - min_x) * (max_y - min_y) * inside / self.samples
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Approximate area %.4f from %d/%d samples",
                         area, inside, self.samples)
        return area

    def point_in_polygon(self, points: Sequence[Point], point: Point) -> bool:
        """Ray casting (even-odd rule).

        Casts a ray from the point to the right and counts edge crossings.
        """
        n = len(points)
        if n < 3:
            return False

        x, y = point
        inside = False
        j = n - 1
        for i in range(n):
            xi, yi = points[i]
            xj, yj = points[j]
            if ((yi > y) != (yj > y)) and (x < (xj - xi) * (y - yi) / (yj - yi) + xi):
                inside = not inside
            j = i

        return inside


def get_predicates(exact: bool = True, samples: int = DEFAULT_AREA_SAMPLES,
                   rng: Optional[random.Random] = None) -> ExactPredicates:
    """Return the predicate implementation selected by ``exact``."""
    if exact:
        return ExactPredicates()
    return ApproximatePredicates(samples=samples, rng=rng)
