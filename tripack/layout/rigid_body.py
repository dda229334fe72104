"""
Kinematic rigid-body store.

Holds the pose of every tile and advances it by the velocities the force
model assigns each step. Nothing else happens here: there is no gravity, no
mass and no collision response, so a step is a plain explicit Euler update.
The packer only relies on the five operations below, so any object offering
them (for example a wrapper around a physics engine) can replace this store:

    create(position, orientation) -> handle
    destroy(handle)
    get_pose(handle) -> (position, orientation)
    set_velocity(handle, linear, angular)
    step(dt)

Orientations and angular velocities are in degrees and degrees per second.
"""

import itertools
import logging
import math
from dataclasses import dataclass
from typing import Dict, Tuple

from ..errors import UnknownBodyError
from ..geometry.vectors import Point, Vector

logger = logging.getLogger(__name__)

Handle = int


@dataclass
class Body:
    """A single kinematic body."""
    position: Point
    orientation: float  # degrees
    linear: Vector = (0.0, 0.0)
    angular: float = 0.0  # degrees per second
    radius: float = 0.1


class KinematicBodyStore:
    """In-memory rigid-body store with Euler integration."""

    def __init__(self, collision_radius: float = 0.1):
        """
        Args:
            collision_radius: Radius attached to each body. The packer never
                reads it, but a zero radius is rejected so the store stays
                consistent with engines that require a non-empty shape.
        """
        if not collision_radius > 0:
            raise ValueError(
                f"collision_radius must be positive, got {collision_radius}"
            )
        self.collision_radius = collision_radius
        self._bodies: Dict[Handle, Body] = {}
        self._next_handle = itertools.count(1)
        self.time = 0.0

    def __len__(self) -> int:
        return len(self._bodies)

    def __contains__(self, handle: Handle) -> bool:
        return handle in self._bodies

    def _body(self, handle: Handle) -> Body:
        try:
            return self._bodies[handle]
        except KeyError:
            raise UnknownBodyError(handle) from None

    def create(self, position: Point, orientation: float) -> Handle:
        """Create a body at rest and return its handle."""
        handle = next(self._next_handle)
        self._bodies[handle] = Body(
            position=(float(position[0]), float(position[1])),
            orientation=float(orientation),
            radius=self.collision_radius,
        )
        return handle

    def destroy(self, handle: Handle):
        """Remove a body. Unknown handles raise UnknownBodyError."""
        self._body(handle)
        del self._bodies[handle]

    def get_pose(self, handle: Handle) -> Tuple[Point, float]:
        body = self._body(handle)
        return body.position, body.orientation

    def set_pose(self, handle: Handle, position: Point, orientation: float):
        """Teleport a body, used to restore a saved configuration."""
        body = self._body(handle)
        body.position = (float(position[0]), float(position[1]))
        body.orientation = float(orientation)

    def get_velocity(self, handle: Handle) -> Tuple[Vector, float]:
        body = self._body(handle)
        return body.linear, body.angular

    def set_velocity(self, handle: Handle, linear: Vector, angular: float):
        body = self._body(handle)
        body.linear = (float(linear[0]), float(linear[1]))
        body.angular = float(angular)

    def step(self, dt: float):
        """Advance every body by its current velocities over ``dt`` seconds."""
        if dt < 0 or not math.isfinite(dt):
            raise ValueError(f"dt must be a finite non-negative number, got {dt}")
        for body in self._bodies.values():
            vx, vy = body.linear
            x, y = body.position
            body.position = (x + vx * dt, y + vy * dt)
            body.orientation += body.angular * dt
        self.time += dt
