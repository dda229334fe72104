"""
Tests for the layout model: outline validation, the rigid-body store,
the tile field and polygon/result files.
"""

import pytest
import json
import math

from tripack.errors import InvalidPolygonError, UnknownBodyError
from tripack.layout.abstraction import Outline, TileField, TilePose, signed_area
from tripack.layout.polygon_io import parse_polygon, read_polygon, read_result, write_result
from tripack.layout.rigid_body import KinematicBodyStore


# =============================================================================
# Outline
# =============================================================================

class TestOutline:
    """Tests for polygon validation and normalization."""

    def test_clockwise_input_is_reversed(self, square_vertices):
        """Outlines are always stored counter-clockwise."""
        outline = Outline.from_vertices(square_vertices[::-1])
        assert signed_area(outline.points) > 0

    def test_closing_vertex_is_dropped(self, square_vertices):
        outline = Outline.from_vertices(square_vertices + [square_vertices[0]])
        assert len(outline) == 4

    def test_normalization_by_edge_length(self, square_vertices):
        """Edge length L scales coordinates by sqrt(3) / L."""
        outline = Outline.from_vertices(square_vertices, edge_length=1.0)
        assert outline.scale == pytest.approx(1.0 / math.sqrt(3))
        assert outline.get_bounding_box() == pytest.approx((0.0, 0.0, 10 * math.sqrt(3), 10 * math.sqrt(3)))
        assert outline.to_world(outline.points[2]) == pytest.approx((10.0, 10.0))

    def test_two_vertices_rejected(self):
        with pytest.raises(InvalidPolygonError):
            Outline.from_vertices([(0.0, 0.0), (1.0, 0.0)])

    def test_repeated_vertices_rejected(self):
        """Three vertices of which only two are distinct."""
        with pytest.raises(InvalidPolygonError):
            Outline.from_vertices([(0.0, 0.0), (1.0, 0.0), (1.0, 0.0)])

    def test_self_intersecting_rejected(self):
        with pytest.raises(InvalidPolygonError):
            Outline.from_vertices([(0.0, 0.0), (2.0, 2.0), (2.0, 0.0), (0.0, 2.0)])

    def test_zero_area_rejected(self):
        with pytest.raises(InvalidPolygonError):
            Outline.from_vertices([(0.0, 0.0), (1.0, 0.0), (2.0, 0.0)])

    def test_non_finite_rejected(self):
        with pytest.raises(InvalidPolygonError):
            Outline.from_vertices([(0.0, 0.0), (1.0, float("inf")), (0.0, 1.0)])

    @pytest.mark.parametrize("edge_length", [0.0, -1.0, float("nan")])
    def test_bad_edge_length_rejected(self, square_vertices, edge_length):
        with pytest.raises(InvalidPolygonError):
            Outline.from_vertices(square_vertices, edge_length=edge_length)

    def test_invalid_polygon_is_value_error(self):
        """Generic ValueError handlers still catch polygon errors."""
        with pytest.raises(ValueError):
            Outline.from_vertices([(0.0, 0.0)])


# =============================================================================
# Rigid-Body Store
# =============================================================================

class TestKinematicBodyStore:
    """Tests for body lifecycle and integration."""

    def test_create_and_get_pose(self, store):
        handle = store.create((1.0, 2.0), 30.0)
        assert store.get_pose(handle) == ((1.0, 2.0), 30.0)
        assert handle in store
        assert len(store) == 1

    def test_handles_are_unique(self, store):
        first = store.create((0.0, 0.0), 0.0)
        store.destroy(first)
        second = store.create((0.0, 0.0), 0.0)
        assert first != second

    def test_step_integrates_velocity(self, store):
        handle = store.create((0.0, 0.0), 10.0)
        store.set_velocity(handle, (60.0, -30.0), 120.0)
        store.step(1.0 / 60.0)
        position, orientation = store.get_pose(handle)
        assert position == pytest.approx((1.0, -0.5))
        assert orientation == pytest.approx(12.0)
        assert store.time == pytest.approx(1.0 / 60.0)

    def test_unknown_handle(self, store):
        with pytest.raises(UnknownBodyError):
            store.get_pose(42)
        with pytest.raises(KeyError):
            store.destroy(42)

    def test_collision_radius_must_be_positive(self):
        with pytest.raises(ValueError):
            KinematicBodyStore(collision_radius=0.0)

    def test_negative_dt_rejected(self, store):
        with pytest.raises(ValueError):
            store.step(-0.1)


# =============================================================================
# Tile Field
# =============================================================================

class TestTileField:
    """Tests for the live tile collection."""

    def test_snapshot_wraps_orientation(self, store):
        tiles = TileField(store)
        tiles.add((0.0, 0.0), 350.0)
        assert tiles.snapshot()[0].orientation == pytest.approx(-10.0)

    def test_remove_swaps_last_into_slot(self, store):
        tiles = TileField(store)
        for x in range(3):
            tiles.add((float(x), 0.0), 0.0)
        handles = tiles.handles
        destroyed = tiles.remove(0)

        assert destroyed == handles[0]
        assert destroyed not in store
        assert tiles.handles == [handles[2], handles[1]]
        assert [pose.position[0] for pose in tiles.snapshot()] == [2.0, 1.0]

    def test_set_velocities_length_mismatch(self, store):
        tiles = TileField(store)
        tiles.add((0.0, 0.0), 0.0)
        with pytest.raises(ValueError):
            tiles.set_velocities([(0.0, 0.0), (1.0, 1.0)], [0.0, 0.0])

    def test_zero_velocities(self, store):
        tiles = TileField(store)
        index = tiles.add((0.0, 0.0), 0.0)
        tiles.set_velocities([(3.0, 4.0)], [5.0])
        tiles.zero_velocities()
        assert store.get_velocity(tiles.handles[index]) == ((0.0, 0.0), 0.0)

    def test_restore(self, store):
        tiles = TileField(store)
        tiles.add((0.0, 0.0), 0.0)
        tiles.restore([TilePose((4.0, 5.0), 90.0)])
        assert tiles.snapshot() == [TilePose((4.0, 5.0), 90.0)]
        with pytest.raises(ValueError):
            tiles.restore([])


# =============================================================================
# Polygon and Result Files
# =============================================================================

class TestPolygonIO:
    """Tests for reading polygons and writing results."""

    def test_parse_free_flowing_with_comments(self):
        text = "# square\n0 0 10 0\n10 10   # top right\n0,10\n"
        assert parse_polygon(text) == [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]

    def test_odd_coordinate_count(self):
        with pytest.raises(InvalidPolygonError):
            parse_polygon("0 0 1")

    def test_non_numeric_token(self):
        with pytest.raises(InvalidPolygonError, match="Line 2"):
            parse_polygon("0 0\n1 x\n")

    def test_read_polygon(self, tmp_path):
        path = tmp_path / "triangle.txt"
        path.write_text("0 0\n4 0\n0 3\n")
        assert read_polygon(path) == [(0.0, 0.0), (4.0, 0.0), (0.0, 3.0)]

    def test_read_missing_polygon(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_polygon(tmp_path / "missing.txt")

    def test_write_json_and_yaml(self, tmp_path):
        data = {"seed": 7, "tile_count": 1, "tiles": [{"x": 1.0, "y": 2.0, "orientation": 30.0}]}

        json_path = write_result(data, tmp_path / "result.json")
        assert json.loads(json_path.read_text()) == data

        yaml_path = write_result(data, tmp_path / "result.yaml")
        assert read_result(yaml_path) == data
