# MIT License (see LICENSE)
"""
A minimal world that integrates rigid bodies under gravity and drives
symbolic constraints.

Each call to step() runs `substeps` substeps of:
    1. Gravity and accumulated forces into velocities.
    2. Constraint solving (PGS, velocity level).
    3. Velocities into positions (symplectic Euler).

Static bodies (mass <= 0) are never moved.
"""
from __future__ import annotations
from dataclasses import dataclass, field

from .constraint import SymbolicConstraint
from .constraints.solver import solve_symbolic_constraints_pgs
from .types import RigidBody2D
from .util import f64


@dataclass
class Scene:
    """
    Simulation world.

    Attributes:
        gravity: Global gravity vector (default: Earth gravity [0, -9.81]).
        dt: Base timestep in seconds (default: 1/240).
        substeps: Substeps per step() call.
        solver_iters: PGS iterations per substep.
    """
    gravity: tuple[float, float] = (0.0, -9.81)
    dt: float = 1/240
    substeps: int = 4
    solver_iters: int = 20

    bodies: list[RigidBody2D] = field(default_factory=list)
    constraints: list[SymbolicConstraint] = field(default_factory=list)
    time: float = 0.0

    def __post_init__(self) -> None:
        self._g = f64(self.gravity)
        self._next_id = 1

    def add_body(self, body: RigidBody2D) -> int:
        """Add a body and assign it a unique ID, which is returned."""
        body.id = self._next_id
        self._next_id += 1
        self.bodies.append(body)
        return body.id

    def add_constraint(self, constraint: SymbolicConstraint) -> SymbolicConstraint:
        self.constraints.append(constraint)
        return constraint

    def _apply_forces(self, dt: float) -> None:
        for b in self.bodies:
            if b.is_static:
                continue
            b.velocity += (self._g + b.force * b.inv_mass) * dt
            b.omega += b.torque * b.inv_inertia * dt

    def _integrate(self, dt: float) -> None:
        for b in self.bodies:
            if b.is_static:
                continue
            b.position += b.velocity * dt
            b.angle += b.omega * dt

    def step(self, dt: float | None = None) -> None:
        """Advance the simulation by dt (default self.dt)."""
        dt = float(self.dt if dt is None else dt)
        h = dt / self.substeps

        for _ in range(self.substeps):
            self._apply_forces(h)
            if self.constraints:
                solve_symbolic_constraints_pgs(self.constraints, h, self.solver_iters)
            self._integrate(h)

        for b in self.bodies:
            b.clear_forces()
        self.time += dt
