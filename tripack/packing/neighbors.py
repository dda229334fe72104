"""
Sector neighbor search.

Each tile faces three sectors, 120 degrees apart. A tile may pair with one
neighbor per sector: the closest tile whose center lies within the sector
threshold (60 degrees) of the sector heading. Sectors left empty are retried
with the widened threshold (70 degrees).
"""

import hashlib
import logging
import math
from typing import List, Optional, Sequence, Tuple

from ..errors import SectorResolutionError
from ..geometry.vectors import (
    EPSILON,
    SECTOR_COUNT,
    Vector,
    dot,
    heading,
    length,
    scale,
    sector_heading,
    sub,
    unit,
)
from ..layout.abstraction import TilePose
from .config import PackingConfig

logger = logging.getLogger(__name__)

# Per tile, the neighbor index for each sector (None when unresolved)
NeighborTable = List[List[Optional[int]]]


def _deterministic_direction(key: str) -> Vector:
    """Unit vector derived from a string key.

    Uses an MD5 hash so coincident tiles separate the same way on every run.
    """
    h = hashlib.md5(key.encode()).hexdigest()
    # First 8 hex chars for x, next 8 for y, each mapped to [-1, 1]
    x_val = int(h[:8], 16) / 0xFFFFFFFF * 2 - 1
    y_val = int(h[8:16], 16) / 0xFFFFFFFF * 2 - 1
    if math.hypot(x_val, y_val) < EPSILON:
        return (1.0, 0.0)
    return unit((x_val, y_val))


def pair_offset(poses: Sequence[TilePose], i: int, j: int,
                coincident_offset: float = 1e-6) -> Vector:
    """Vector from tile i to tile j.

    Coincident centers get a tiny deterministic offset, opposite for
    (i, j) and (j, i), so both tiles are pushed apart. Non-finite offsets
    are returned unchanged.
    """
    v = sub(poses[j].position, poses[i].position)
    if not length(v) < EPSILON:
        return v
    low, high = min(i, j), max(i, j)
    direction = _deterministic_direction(f"{low}_{high}")
    if i > j:
        direction = scale(direction, -1.0)
    return scale(direction, coincident_offset)


def sector_of(orientation: float, v: Vector,
              thresholds: Tuple[float, ...] = (60.0, 70.0)) -> int:
    """Index of the first sector of a tile whose heading is within a threshold
    of the relative vector ``v``. Thresholds are tried in order.

    Raises:
        SectorResolutionError: if no sector matches any threshold, which only
            happens for non-finite input
    """
    v_length = length(v)
    for threshold in thresholds:
        limit = math.cos(math.radians(threshold)) * v_length
        for k in range(SECTOR_COUNT):
            if limit <= dot(v, heading(sector_heading(orientation, k))):
                return k
    raise SectorResolutionError(
        f"Vector ({v[0]:.3g}, {v[1]:.3g}) matches no sector of a tile "
        f"oriented at {orientation:.3g} degrees"
    )


class NeighborFinder:
    """Finds up to three sector neighbors per tile."""

    def __init__(self, config: Optional[PackingConfig] = None):
        self.config = config or PackingConfig()

    @property
    def thresholds(self) -> Tuple[float, float]:
        return (self.config.sector_threshold, self.config.widened_sector_threshold)

    def find(self, poses: Sequence[TilePose]) -> NeighborTable:
        """Assign neighbors for every tile in a pose snapshot.

        Candidates within the primary threshold take precedence; a sector
        with none falls back to candidates within the widened threshold.
        Ties in distance keep the lower index, so repeated calls on the
        same snapshot give identical tables.

        Raises:
            SectorResolutionError: if another tile lies in none of a tile's
                sectors even at the widened threshold
        """
        cos_primary = math.cos(math.radians(self.config.sector_threshold))
        cos_widened = math.cos(math.radians(self.config.widened_sector_threshold))

        table: NeighborTable = []
        for i, pose in enumerate(poses):
            normals = [heading(sector_heading(pose.orientation, k))
                       for k in range(SECTOR_COUNT)]
            primary: List[Optional[Tuple[float, int]]] = [None] * SECTOR_COUNT
            widened: List[Optional[Tuple[float, int]]] = [None] * SECTOR_COUNT

            for j in range(len(poses)):
                if i == j:
                    continue
                v = pair_offset(poses, i, j, self.config.coincident_offset)
                distance = length(v)
                matched = False
                for k, n in enumerate(normals):
                    projection = dot(v, n)
                    if cos_primary * distance <= projection:
                        matched = True
                        if primary[k] is None or distance < primary[k][0]:
                            primary[k] = (distance, j)
                    elif cos_widened * distance <= projection:
                        matched = True
                        if widened[k] is None or distance < widened[k][0]:
                            widened[k] = (distance, j)
                if not matched:
                    raise SectorResolutionError(
                        f"Tile {j} lies in no sector of tile {i} "
                        f"(orientation {pose.orientation:.3g}, offset "
                        f"({v[0]:.3g}, {v[1]:.3g}))",
                        tile=i,
                        other=j,
                    )

            row: List[Optional[int]] = []
            for k in range(SECTOR_COUNT):
                choice = primary[k] or widened[k]
                row.append(choice[1] if choice else None)
            table.append(row)

        if logger.isEnabledFor(logging.DEBUG):
            resolved = sum(1 for row in table for j in row if j is not None)
            logger.debug("Neighbor search: tiles=%d resolved_sectors=%d/%d",
                         len(poses), resolved, SECTOR_COUNT * len(poses))
        return table
