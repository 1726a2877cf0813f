# MIT License (see LICENSE)
"""
Rigid body types driven by symbolic constraints.

The host integrates these bodies; constraints read position, angle, inverse
mass and inverse inertia in prepare() and velocity/omega every iteration:
  dx/dt = v
  dv/dt = F/m
  dθ/dt = ω
"""
from __future__ import annotations
from dataclasses import dataclass, field

import numpy as np

from .util import f64


@dataclass(frozen=True)
class Circle:
    """Circle of the given radius, centred on the body position."""
    radius: float


@dataclass(frozen=True)
class Box:
    """
    Box defined by half-extents (hx, hy).

    The full width is 2*hx and full height is 2*hy.
    """
    half_extents: tuple[float, float]


Shape2D = Circle | Box


@dataclass
class RigidBody2D:
    """
    A 2D rigid body.

    Attributes:
        shape: Geometry, used for the moment of inertia.
        mass: Mass in kg. Use mass <= 0 for static bodies.
        position: Center of mass [x, y].
        angle: Rotation in radians, counterclockwise.
        velocity: Linear velocity [vx, vy].
        omega: Angular velocity, counterclockwise positive.
        inertia_override: Moment of inertia to use instead of the shape formula.
        force: Accumulated external force, cleared each step.
        id: Assigned by Scene.add_body().
    """
    shape: Shape2D
    mass: float
    position: np.ndarray | tuple[float, float] = (0.0, 0.0)
    angle: float = 0.0
    velocity: np.ndarray | tuple[float, float] = (0.0, 0.0)
    omega: float = 0.0
    inertia_override: float | None = None

    force: np.ndarray = field(default_factory=lambda: np.zeros(2, dtype=np.float64))
    torque: float = 0.0
    id: int = -1

    def __post_init__(self) -> None:
        self.position = f64(self.position)
        self.velocity = f64(self.velocity)
        self.force = f64(self.force)

    @property
    def is_static(self) -> bool:
        return self.mass <= 0

    @property
    def inv_mass(self) -> float:
        """Inverse mass (1/m). Returns 0 for static bodies (mass <= 0)."""
        return 0.0 if self.mass <= 0 else 1.0 / self.mass

    @property
    def inertia(self) -> float:
        """
        Moment of inertia about the center of mass.

          Circle: I = (1/2) m r²
          Box:    I = (1/12) m (w² + h²)  where w=2*hx, h=2*hy
        """
        if self.inertia_override is not None:
            return self.inertia_override
        if isinstance(self.shape, Circle):
            r = self.shape.radius
            return 0.5 * self.mass * r * r
        if isinstance(self.shape, Box):
            hx, hy = self.shape.half_extents
            w, h = 2 * hx, 2 * hy
            return (1 / 12) * self.mass * (w * w + h * h)
        raise TypeError(f"Unknown shape type: {type(self.shape)}")

    @property
    def inv_inertia(self) -> float:
        """Inverse moment of inertia (1/I). Returns 0 for static bodies."""
        I = self.inertia
        return 0.0 if I <= 0 else 1.0 / I

    def clear_forces(self) -> None:
        self.force[:] = 0.0
        self.torque = 0.0

    def local_to_world(self, local_point: tuple[float, float] | np.ndarray) -> np.ndarray:
        """Transform a point from body coordinates to world coordinates."""
        c, s = np.cos(self.angle), np.sin(self.angle)
        lx, ly = local_point[0], local_point[1]
        return np.array([
            lx * c - ly * s + self.position[0],
            lx * s + ly * c + self.position[1],
        ], dtype=np.float64)
