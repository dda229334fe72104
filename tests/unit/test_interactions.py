"""
Tests for the per-step packing components.

Tests cover:
- Sector neighbor search (selection, fallback, idempotence, degeneracy)
- Overlap detection between tiles and against the outline
- Force model energy, quality, directions and removal ranks
"""

import pytest
import math
import random
from typing import List

from tripack.errors import SectorResolutionError
from tripack.geometry.predicates import ExactPredicates
from tripack.geometry.vectors import dot, heading, length, sector_heading
from tripack.layout.abstraction import Outline, TilePose
from tripack.packing.config import PackingConfig
from tripack.packing.forces import ForceModel, InteractionType, RemovalRank
from tripack.packing.neighbors import NeighborFinder, pair_offset, sector_of
from tripack.packing.overlaps import OverlapDetector


def random_poses(count: int, seed: int, extent: float = 8.0) -> List[TilePose]:
    rng = random.Random(seed)
    return [
        TilePose((rng.uniform(-extent, extent), rng.uniform(-extent, extent)),
                 rng.uniform(-180.0, 180.0))
        for _ in range(count)
    ]


def compute_forces(poses, outline, config=None):
    config = config or PackingConfig()
    neighbors = NeighborFinder(config).find(poses)
    overlaps = OverlapDetector().detect(poses, outline)
    return ForceModel(config, ExactPredicates()).compute(poses, neighbors, overlaps, outline)


# =============================================================================
# Neighbor Search
# =============================================================================

class TestSectorOf:
    """Tests for sector lookup of a relative vector."""

    def test_vector_along_each_sector(self):
        for k in range(3):
            angle = math.radians(30.0 + 120.0 * k)
            v = (math.sin(angle), math.cos(angle))
            assert sector_of(30.0, v) == k

    def test_widened_threshold_used_when_primary_misses(self):
        """A vector between two sectors only matches the wider threshold."""
        angle = math.radians(60.0)
        v = (math.sin(angle), math.cos(angle))
        with pytest.raises(SectorResolutionError):
            sector_of(0.0, v, thresholds=(40.0,))
        assert sector_of(0.0, v, thresholds=(40.0, 70.0)) == 0

    def test_nan_vector_fails(self):
        with pytest.raises(SectorResolutionError):
            sector_of(0.0, (float("nan"), 1.0))


class TestNeighborFinder:
    """Tests for per-sector neighbor assignment."""

    def test_facing_pair(self, touching_pair):
        """Tiles facing each other pair through sector 0."""
        table = NeighborFinder().find(touching_pair)
        assert table[0] == [1, None, None]
        assert table[1] == [0, None, None]

    def test_closest_candidate_wins(self):
        poses = [
            TilePose((0.0, 0.0), 0.0),
            TilePose((0.0, 4.0), 180.0),
            TilePose((0.0, 2.0), 180.0),
        ]
        table = NeighborFinder().find(poses)
        assert table[0][0] == 2
        assert table[1][0] == 2

    def test_single_tile_has_no_neighbors(self):
        assert NeighborFinder().find([TilePose((0.0, 0.0), 0.0)]) == [[None, None, None]]

    def test_idempotent(self):
        """Re-running on the same snapshot gives identical tables."""
        poses = random_poses(25, seed=11)
        finder = NeighborFinder()
        assert finder.find(poses) == finder.find(poses)

    def test_every_sector_resolved_in_dense_field(self):
        """A tile surrounded on all sides has a neighbor in every sector."""
        poses = [TilePose((0.0, 0.0), 0.0)] + random_poses(60, seed=5, extent=4.0)
        table = NeighborFinder().find(poses)
        assert all(j is not None for j in table[0])

    def test_never_pairs_with_itself(self):
        poses = random_poses(15, seed=2)
        for i, row in enumerate(NeighborFinder().find(poses)):
            assert i not in row

    def test_coincident_pair_resolved_through_offset(self):
        """Identical centers pair only through the sectors facing the
        deterministic offset, and every such sector has a positive gap."""
        poses = [TilePose((0.0, 0.0), 0.0), TilePose((0.0, 0.0), 0.0)]
        config = PackingConfig()
        table = NeighborFinder(config).find(poses)
        model = ForceModel(config)
        cos_widened = math.cos(math.radians(config.widened_sector_threshold))

        for i, j in ((0, 1), (1, 0)):
            v = pair_offset(poses, i, j, config.coincident_offset)
            resolved = [k for k, other in enumerate(table[i]) if other == j]
            assert 1 <= len(resolved) < 3
            for k in resolved:
                n = heading(sector_heading(poses[i].orientation, k))
                assert dot(v, n) >= cos_widened * length(v)
                pair = model.pair_geometry(poses, i, j, sector_heading(poses[i].orientation, k))
                assert pair.required > 0
                assert pair.ratio > 0

    def test_pair_offset_is_antisymmetric(self):
        poses = [TilePose((1.0, 1.0), 0.0), TilePose((1.0, 1.0), 90.0)]
        a = pair_offset(poses, 0, 1, 1e-6)
        b = pair_offset(poses, 1, 0, 1e-6)
        assert length(a) == pytest.approx(1e-6)
        assert a == pytest.approx((-b[0], -b[1]))
        assert pair_offset(poses, 0, 1, 1e-6) == a

    def test_nan_position_raises_with_indices(self):
        poses = [TilePose((0.0, 0.0), 0.0), TilePose((float("nan"), 1.0), 0.0)]
        with pytest.raises(SectorResolutionError) as exc_info:
            NeighborFinder().find(poses)
        assert exc_info.value.tile == 0
        assert exc_info.value.other == 1


# =============================================================================
# Overlap Detection
# =============================================================================

class TestOverlapDetector:
    """Tests for tile/tile and tile/edge overlap lists."""

    def test_overlapping_pair_recorded_both_ways(self, overlapping_pair, open_outline):
        table = OverlapDetector().detect(overlapping_pair, open_outline)
        assert table.tiles == [[1], [0]]
        assert table.pair_count == 1
        assert table.edges == [[], []]

    def test_touching_tiles_overlap(self, touching_pair, open_outline):
        table = OverlapDetector().detect(touching_pair, open_outline)
        assert table.pair_count == 1

    def test_separated_tiles(self, open_outline):
        poses = [TilePose((0.0, 0.0), 0.0), TilePose((0.0, 1.2), 180.0)]
        table = OverlapDetector().detect(poses, open_outline)
        assert table.empty

    def test_edge_crossing(self, square_outline):
        """A tile straddling the bottom edge hits edge 0 only."""
        table = OverlapDetector().detect([TilePose((5.0, 0.2), 0.0)], square_outline)
        assert table.edges == [[0]]

    def test_tile_in_corner_hits_two_edges(self, square_outline):
        table = OverlapDetector().detect([TilePose((0.2, 0.2), 0.0)], square_outline)
        assert sorted(table.edges[0]) == [0, 3]

    def test_symmetric_on_random_field(self, open_outline):
        poses = random_poses(30, seed=8, extent=3.0)
        table = OverlapDetector().detect(poses, open_outline)
        for i, row in enumerate(table.tiles):
            for j in row:
                assert i in table.tiles[j]


# =============================================================================
# Force Model
# =============================================================================

class TestForceModel:
    """Tests for velocities, energy and quality of one step."""

    def test_touching_pair_has_zero_energy(self, touching_pair, open_outline):
        """Tiles meeting edge to edge are at the required separation."""
        result = compute_forces(touching_pair, open_outline)
        assert result.raw_energy == pytest.approx(0.0, abs=1e-9)
        assert result.quality == pytest.approx(1.0)
        assert result.quality <= 1.0
        for linear in result.linear:
            assert linear == pytest.approx((0.0, 0.0), abs=1e-9)

    def test_touching_pair_earns_contact_bonus(self, touching_pair, open_outline):
        result = compute_forces(touching_pair, open_outline)
        assert [rank.bonus for rank in result.ranks] == [10, 10]

    def test_overlapping_pair_energy_and_quality(self, overlapping_pair, open_outline):
        """Half the required separation: E = 1 from each side, K = 0.5."""
        result = compute_forces(overlapping_pair, open_outline)
        assert result.raw_energy == pytest.approx(2.0)
        assert result.quality == pytest.approx(0.5)
        assert result.overlap_pairs == 1
        assert [rank.score for rank in result.ranks] == pytest.approx([-0.5, -0.5])

    def test_overlapping_pair_pushed_apart(self, overlapping_pair, open_outline):
        result = compute_forces(overlapping_pair, open_outline)
        assert result.linear[0] == pytest.approx((0.0, -3.0), abs=1e-9)
        assert result.linear[1] == pytest.approx((0.0, 3.0), abs=1e-9)

    def test_overlap_adds_interaction(self, overlapping_pair, open_outline):
        result = compute_forces(overlapping_pair, open_outline)
        kinds = [it.kind for it in result.interactions[0]]
        assert kinds.count(InteractionType.NEIGHBOR) == 1
        assert kinds.count(InteractionType.OVERLAP) == 1

    def test_no_overlaps_means_zero_energy(self, open_outline):
        poses = [TilePose((x * 3.0, 0.0), 0.0) for x in range(4)]
        result = compute_forces(poses, open_outline)
        assert result.raw_energy == 0.0
        assert result.quality == 1.0

    def test_energy_non_negative_and_quality_bounded(self, square_outline):
        poses = random_poses(30, seed=21, extent=5.0)
        poses = [TilePose((p.position[0] + 5.0, p.position[1] + 5.0), p.orientation) for p in poses]
        result = compute_forces(poses, square_outline)
        assert result.raw_energy >= 0.0
        assert result.quality <= 1.0
        for vx, vy in result.linear:
            assert math.hypot(vx, vy) <= PackingConfig().max_speed + 1e-9

    def test_boundary_pushes_inward(self, square_outline):
        """A tile sticking 0.8 out of the bottom edge is pushed up."""
        result = compute_forces([TilePose((5.0, 0.2), 0.0)], square_outline)
        assert result.edge_hits == 1
        assert result.quality == pytest.approx(0.2)
        assert result.raw_energy == pytest.approx(4.0)
        assert result.linear[0][1] > 0
        assert result.linear[0][0] == pytest.approx(0.0, abs=1e-9)
        assert result.interactions[0][0].kind is InteractionType.BOUNDARY

    def test_boundary_contact_bonus(self, square_outline):
        result = compute_forces([TilePose((5.0, 0.2), 0.0)], square_outline)
        assert result.ranks[0].bonus == 1

    def test_tile_inside_outline_has_no_boundary_force(self, square_outline):
        result = compute_forces([TilePose((5.0, 5.0), 0.0)], square_outline)
        assert result.edge_hits == 0
        assert result.linear == [(0.0, 0.0)]

    def test_coincident_tiles_separate(self, open_outline):
        """Identical centers produce finite, opposite velocities."""
        poses = [TilePose((0.0, 0.0), 0.0), TilePose((0.0, 0.0), 0.0)]
        result = compute_forces(poses, open_outline)
        (ax, ay), (bx, by) = result.linear
        for value in (ax, ay, bx, by, *result.angular):
            assert math.isfinite(value)
        assert math.hypot(ax, ay) > 0
        assert ax * bx + ay * by < 0
        assert math.isfinite(result.raw_energy)
        # Both tiles leave at the speed cap
        assert result.clamped == 2
        assert math.hypot(ax, ay) == pytest.approx(PackingConfig().max_speed)

    def test_weight_is_steep(self):
        model = ForceModel()
        assert model.weight(2.0, 2.0) == pytest.approx(1.0)
        assert model.weight(1.0, 2.0) == pytest.approx(4096.0)

    def test_snapshot_not_mutated(self, overlapping_pair, open_outline):
        before = list(overlapping_pair)
        compute_forces(overlapping_pair, open_outline)
        assert overlapping_pair == before


class TestRemovalRank:
    """Tests for rank ordering."""

    def test_orders_by_bonus_then_score(self):
        ranks = [
            RemovalRank(bonus=10, score=-2.0, index=0),
            RemovalRank(bonus=0, score=-0.1, index=1),
            RemovalRank(bonus=0, score=-0.7, index=2),
        ]
        assert [rank.index for rank in sorted(ranks)] == [2, 1, 0]
