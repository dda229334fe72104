"""
Overlap detection between tile footprints and against the outline.

The footprints of a snapshot are indexed once per step; candidate pairs and
edge hits come from the index's bounding-box query refined by the exact
intersection predicate.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..geometry.predicates import ExactPredicates
from ..layout.abstraction import Outline, TilePose

logger = logging.getLogger(__name__)


@dataclass
class OverlapTable:
    """Per-tile overlap lists for one step."""
    # tiles[i] lists every tile j whose footprint meets tile i's
    tiles: List[List[int]] = field(default_factory=list)
    # edges[i] lists every outline edge index tile i's footprint meets
    edges: List[List[int]] = field(default_factory=list)

    @property
    def pair_count(self) -> int:
        """Unordered overlapping tile pairs."""
        return sum(len(row) for row in self.tiles) // 2

    @property
    def edge_count(self) -> int:
        return sum(len(row) for row in self.edges)

    @property
    def empty(self) -> bool:
        return not any(self.tiles) and not any(self.edges)


class OverlapDetector:
    """Lists tile/tile and tile/edge footprint intersections."""

    def __init__(self, predicates: Optional[ExactPredicates] = None):
        self.predicates = predicates or ExactPredicates()

    def detect(self, poses: Sequence[TilePose], outline: Outline) -> OverlapTable:
        count = len(poses)
        table = OverlapTable(
            tiles=[[] for _ in range(count)],
            edges=[[] for _ in range(count)],
        )
        index = self.predicates.footprint_index([pose.vertices for pose in poses])

        # Pairs arrive sorted with i < j, so every row stays in ascending order
        for i, j in index.intersecting_pairs():
            table.tiles[i].append(j)
            table.tiles[j].append(i)

        for e, (u, v) in enumerate(outline.edges()):
            for i in index.meeting_segment(u, v):
                table.edges[i].append(e)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Overlap detection: tiles=%d tile_pairs=%d edge_hits=%d",
                         count, table.pair_count, table.edge_count)
        return table
