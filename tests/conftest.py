"""
Shared test fixtures for tripack tests.

Provides reusable outlines, poses, stores and configurations for testing
the geometry helpers, packing components and the simulation loop.
"""

import pytest
from typing import List, Tuple

from tripack.layout.abstraction import Outline, TilePose
from tripack.layout.rigid_body import KinematicBodyStore
from tripack.packing.config import PackingConfig


@pytest.fixture
def square_vertices() -> List[Tuple[float, float]]:
    """A 10 x 10 square, counter-clockwise."""
    return [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]


@pytest.fixture
def square_outline(square_vertices) -> Outline:
    """The 10 x 10 square in normalized units (edge length sqrt(3))."""
    return Outline.from_vertices(square_vertices)


@pytest.fixture
def open_outline() -> Outline:
    """A large outline centered on the origin, far from every test tile."""
    return Outline.from_vertices([(-20.0, -20.0), (20.0, -20.0), (20.0, 20.0), (-20.0, 20.0)])


@pytest.fixture
def touching_pair() -> List[TilePose]:
    """Two tiles meeting edge to edge along y = 0.5."""
    return [TilePose((0.0, 0.0), 0.0), TilePose((0.0, 1.0), 180.0)]


@pytest.fixture
def overlapping_pair() -> List[TilePose]:
    """Two facing tiles at half the separation they need."""
    return [TilePose((0.0, 0.0), 0.0), TilePose((0.0, 0.5), 180.0)]


@pytest.fixture
def store() -> KinematicBodyStore:
    """An empty rigid-body store."""
    return KinematicBodyStore()


@pytest.fixture
def quick_config() -> PackingConfig:
    """Configuration for short runs in tests."""
    return PackingConfig(max_steps=50, log_every=10, energy_window=10)


@pytest.fixture
def no_removal_config() -> PackingConfig:
    """Configuration whose removal gate never opens."""
    return PackingConfig(
        max_steps=50,
        quality_gate=1e-6,
        stagnation_budget=10 ** 9,
        min_tiles=1000,
    )
