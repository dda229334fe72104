"""
Force Model

Turns the neighbor and overlap tables of one step into a corrective linear
and angular velocity per tile, and measures how badly the configuration
overlaps.

Interactions applied to each tile:
1. Neighbor alignment - one per resolved sector, pulls facing edges together
   and turns the tile so the edges become parallel
2. Overlap correction - one per intersecting tile, pushes the pair apart
3. Boundary correction - one per intersecting outline edge, pushes the tile
   back inside along the edge's inward normal

Every interaction carries a weight that grows steeply at short range
(``(d / d0) ** -12``). A tile's velocity is the weighted mean of its
interactions, so the closest contacts dominate.

The step also yields:
- energy E: summed overlap severity, counted once from each side of a pair
- quality K: the smallest actual/required separation over all overlaps
- removal ranks: per-tile (bonus, score) used to pick a tile to delete
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from ..errors import SectorResolutionError
from ..geometry.predicates import ExactPredicates
from ..geometry.vectors import (
    EPSILON,
    INRADIUS,
    SECTOR_COUNT,
    SECTOR_SPAN,
    Point,
    Vector,
    add,
    angle_diff,
    cross,
    distance_to_line,
    dot,
    heading,
    length,
    line_intersection,
    scale,
    sector_heading,
    sector_midpoint,
    sector_side,
    sub,
    unit,
)
from ..layout.abstraction import Outline, TilePose
from .config import PackingConfig
from .neighbors import NeighborTable, pair_offset, sector_of
from .overlaps import OverlapTable

logger = logging.getLogger(__name__)


class InteractionType(Enum):
    """Kinds of interaction in the force model."""
    NEIGHBOR = "neighbor"    # Sector alignment with the nearest tile
    OVERLAP = "overlap"      # Separation of intersecting tiles
    BOUNDARY = "boundary"    # Push back from an outline edge


@dataclass
class Interaction:
    """One weighted contribution to a tile's velocity."""
    linear: Vector  # already multiplied by weight
    angular: float  # degrees per second, already multiplied by weight
    weight: float
    kind: InteractionType
    source: int  # other tile index, or edge index for BOUNDARY


@dataclass
class PairGeometry:
    """Shared measurements of an ordered tile pair (self -> other)."""
    offset: Vector  # other center minus self center
    distance: float
    self_heading: float
    other_heading: float
    ang_diff: float  # rotation of self that faces the other's sector squarely
    required: float  # separation at which the facing edges just touch
    kr: float  # radial term, negative while closer than required
    kt: float  # tangential term, slides edges into line
    tangent: Vector
    weight: float
    self_midpoint: Point  # relative to self center
    other_midpoint: Point  # relative to self center

    @property
    def ratio(self) -> float:
        """Actual over required separation."""
        return self.distance / self.required

    def interaction(self, kind: InteractionType, source: int) -> Interaction:
        direction = scale(self.offset, 1.0 / self.distance)
        linear = add(scale(direction, self.kr), scale(self.tangent, self.kt))
        return Interaction(
            linear=scale(linear, self.weight),
            angular=self.weight * 0.5 * self.ang_diff,
            weight=self.weight,
            kind=kind,
            source=source,
        )


@dataclass(order=True)
class RemovalRank:
    """Removal ranking entry; sorts by (bonus, score, index)."""
    bonus: int = 0  # tight contacts; well-seated tiles rank later
    score: float = 0.0  # accumulated overlap penalty (<= 0)
    index: int = 0


@dataclass
class ForceResult:
    """Output of one force computation."""
    linear: List[Vector]
    angular: List[float]
    interactions: List[List[Interaction]]
    ranks: List[RemovalRank]
    # Overlap severity summed over both sides of every pair
    raw_energy: float = 0.0
    quality: float = 1.0
    overlap_pairs: int = 0
    edge_hits: int = 0
    clamped: int = 0  # tiles whose speed hit max_speed


class ForceModel:
    """Computes per-tile corrective velocities for one step."""

    def __init__(self, config: Optional[PackingConfig] = None,
                 predicates: Optional[ExactPredicates] = None):
        self.config = config or PackingConfig()
        self.predicates = predicates or ExactPredicates()

    def weight(self, distance: float, reference: float) -> float:
        """Short-range weight (d / d0) ** -12, negligible beyond d0."""
        return (max(distance, EPSILON) / reference) ** self.config.weight_exponent

    def _offset(self, poses: Sequence[TilePose], i: int, j: int) -> Vector:
        # Same offset the neighbor search sorted the pair by
        return pair_offset(poses, i, j, self.config.coincident_offset)

    def _sector_of(self, orientation: float, v: Vector, tile: int, other: int) -> int:
        try:
            return sector_of(
                orientation, v,
                (self.config.sector_threshold, self.config.widened_sector_threshold),
            )
        except SectorResolutionError as e:
            raise SectorResolutionError(str(e), tile=tile, other=other) from e

    def pair_geometry(self, poses: Sequence[TilePose], i: int, j: int,
                      self_heading: float, offset: Optional[Vector] = None) -> PairGeometry:
        """Measure the ordered pair (i, j) with tile i facing ``self_heading``.

        The other tile faces back with its sector containing the direction
        towards tile i. Two tiles meeting edge to edge at a misalignment
        ``ang_diff`` need a wider gap than perfectly aligned tiles:

            required = (0.5 + sin(30 + |ang_diff|)) / (max(v.n, -v.n') / |v|)
        """
        v = offset if offset is not None else self._offset(poses, i, j)
        distance = length(v)
        other = poses[j]

        n = heading(self_heading)
        t = heading(self_heading + 90.0)
        l = self._sector_of(other.orientation, scale(v, -1.0), j, i)
        other_heading = sector_heading(other.orientation, l)
        n2 = heading(other_heading)
        ang = angle_diff(self_heading, other_heading + 180.0)

        alignment = max(dot(v, n), -dot(v, n2)) / distance
        # Vanishes for back-to-back headings (|ang_diff| = 180)
        span = max(0.5 + math.sin(math.radians(30.0 + abs(ang))), EPSILON)
        required = span / max(alignment, EPSILON)

        other_midpoint = add(v, scale(n2, INRADIUS))
        d0 = self.config.pair_weight_distance
        return PairGeometry(
            offset=v,
            distance=distance,
            self_heading=self_heading,
            other_heading=other_heading,
            ang_diff=ang,
            required=required,
            kr=1.0 - (distance / required) ** -2,
            kt=0.5 * dot(other_midpoint, t),
            tangent=t,
            weight=self.weight(required, d0) + self.weight(distance, d0),
            self_midpoint=scale(n, INRADIUS),
            other_midpoint=other_midpoint,
        )

    def compute(self, poses: Sequence[TilePose], neighbors: NeighborTable,
                overlaps: OverlapTable, outline: Outline) -> ForceResult:
        """Compute velocities, energy, quality and removal ranks.

        Args:
            poses: Pose snapshot of the step (never mutated here)
            neighbors: Sector neighbor table for the same snapshot
            overlaps: Overlap table for the same snapshot
            outline: Container outline (counter-clockwise)

        Returns:
            ForceResult with raw (double-counted) energy
        """
        count = len(poses)
        result = ForceResult(
            linear=[(0.0, 0.0)] * count,
            angular=[0.0] * count,
            interactions=[[] for _ in range(count)],
            ranks=[RemovalRank(index=i) for i in range(count)],
        )
        edges = outline.edges()

        for i in range(count):
            pose = poses[i]
            interactions = result.interactions[i]
            rank = result.ranks[i]

            # 1. Neighbor alignment
            for k in range(SECTOR_COUNT):
                j = neighbors[i][k]
                if j is None:
                    continue
                pair = self.pair_geometry(poses, i, j, sector_heading(pose.orientation, k))
                interactions.append(pair.interaction(InteractionType.NEIGHBOR, j))
                gap = length(sub(pair.self_midpoint, pair.other_midpoint))
                if gap < self.config.contact_threshold:
                    rank.bonus += self.config.contact_bonus

            # 2. Overlap correction
            for j in overlaps.tiles[i]:
                v = self._offset(poses, i, j)
                k = self._sector_of(pose.orientation, v, i, j)
                pair = self.pair_geometry(
                    poses, i, j, pose.orientation + SECTOR_SPAN * k, offset=v
                )
                interactions.append(pair.interaction(InteractionType.OVERLAP, j))
                ratio = pair.ratio
                result.raw_energy += max(0.0, 1.0 / max(ratio, EPSILON) - 1.0)
                result.quality = min(result.quality, ratio)
                rank.score -= max(0.0, 1.0 - ratio)
                result.overlap_pairs += 1

            # 3. Boundary correction
            for e in overlaps.edges[i]:
                u, w = edges[e]
                correction = self._boundary_interaction(pose, u, w, e)
                if correction is None:
                    continue
                interaction, ratio, edge_gap = correction
                interactions.append(interaction)
                result.raw_energy += max(0.0, 1.0 / max(ratio, EPSILON) - 1.0)
                result.quality = min(result.quality, ratio)
                rank.score -= max(0.0, 1.0 - ratio)
                if edge_gap < self.config.edge_contact_threshold:
                    rank.bonus += self.config.edge_contact_bonus
                result.edge_hits += 1

            result.linear[i], result.angular[i], clamped = self._blend(interactions)
            if clamped:
                result.clamped += 1

        result.overlap_pairs //= 2

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Forces: tiles=%d overlap_pairs=%d edge_hits=%d raw_energy=%.4f K=%.4f clamped=%d",
                count, result.overlap_pairs, result.edge_hits,
                result.raw_energy, result.quality, result.clamped,
            )
        return result

    def _blend(self, interactions: List[Interaction]) -> Tuple[Vector, float, bool]:
        """Weight-normalized sum of interactions, speed clamped."""
        weight_sum = sum(it.weight for it in interactions)
        if not weight_sum > EPSILON:
            return (0.0, 0.0), 0.0, False

        vx = sum(it.linear[0] for it in interactions) / weight_sum
        vy = sum(it.linear[1] for it in interactions) / weight_sum
        angular = sum(it.angular for it in interactions) / weight_sum

        speed = math.hypot(vx, vy)
        if speed > self.config.max_speed:
            factor = self.config.max_speed / speed
            return (vx * factor, vy * factor), angular, True
        return (vx, vy), angular, False

    def _boundary_interaction(self, pose: TilePose, u: Point, w: Point,
                              edge_index: int) -> Optional[Tuple[Interaction, float, float]]:
        """Correction pushing a tile back across outline edge u-w.

        The tile's protrusion is measured inside a band that extends
        ``boundary_band_depth`` beyond the edge: every point where a side of
        the triangle crosses the band, plus the outer endpoint of a side that
        crosses it only once, is a candidate, and the farthest from the edge
        line sets the protrusion depth.

        Returns:
            (interaction, actual/required ratio, distance from the nearest
            sector midpoint to the edge), or None when no push is needed
        """
        center = pose.position
        inward = unit((u[1] - w[1], w[0] - u[0]))
        dis = distance_to_line(center, u, w)

        k = 0
        edge_gap = math.inf
        for l in range(SECTOR_COUNT):
            gap = distance_to_line(sector_midpoint(center, pose.orientation, l), u, w)
            if gap < edge_gap:
                edge_gap = gap
                k = l
        self_heading = pose.orientation + SECTOR_SPAN * k
        edge_angle = math.degrees(math.atan2(w[1] - u[1], w[0] - u[0]))
        ang = angle_diff(self_heading, 180.0 - edge_angle)

        band = scale(inward, self.config.boundary_band_depth)
        box = [(u, w), (u, sub(u, band)), (w, sub(w, band))]
        edge_vector = sub(w, u)

        protrusion: List[Point] = []
        for l in range(SECTOR_COUNT):
            t1, t2 = sector_side(center, pose.orientation, l)
            crossings = 0
            hit_u = hit_w = False
            for b1, b2 in box:
                if not self.predicates.segments_intersect(t1, t2, b1, b2):
                    continue
                point = line_intersection(t1, t2, b1, b2)
                if point is None:
                    continue
                # Corners of the band are shared by two box segments; count once
                if length(sub(u, point)) < EPSILON:
                    hit_u = True
                elif length(sub(w, point)) < EPSILON:
                    hit_w = True
                else:
                    crossings += 1
                    protrusion.append(point)
            crossings += int(hit_u) + int(hit_w)
            if crossings == 1:
                # One endpoint of the side lies inside the band
                if cross(edge_vector, sub(t1, w)) < 0:
                    protrusion.append(t1)
                else:
                    protrusion.append(t2)

        max_dis = max((distance_to_line(p, u, w) for p in protrusion), default=0.0)
        required = max(dis + max_dis, EPSILON)
        actual = max(dis, EPSILON)

        kn = 1.0 - (actual / required) ** -2
        if kn > 0:
            return None

        d0 = self.config.edge_weight_distance
        weight = self.weight(required, d0) + self.weight(dis, d0)
        interaction = Interaction(
            linear=scale(inward, -weight * kn),
            angular=ang * weight,
            weight=weight,
            kind=InteractionType.BOUNDARY,
            source=edge_index,
        )
        return interaction, actual / required, edge_gap
