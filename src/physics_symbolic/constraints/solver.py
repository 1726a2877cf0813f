# MIT License (see LICENSE)
"""
Projected Gauss-Seidel driver for symbolic constraints.

Each constraint is solved as one block of `dim` rows:

    λ = -K⁻¹ (J·v + (beta/dt)·C)

with K the scaled effective mass, J·v the scaled velocity error and C the
position error. Impulses are accumulated per step on the constraint
(`lambda_accum`), the accumulated value is clamped by the constraint, and
only the change is applied to the bodies.
"""
from __future__ import annotations

import numpy as np

from ..constraint import SymbolicConstraint
from ..logging_utils import get_logger

logger = get_logger(__name__)


def solve_symbolic_constraints_pgs(
    constraints: list[SymbolicConstraint],
    dt: float,
    iters: int = 20,
) -> None:
    """
    Solve symbolic constraints using Projected Gauss-Seidel iteration.

    Args:
        constraints: Constraints with all bodies bound.
        dt: Timestep in seconds. Used for the Baumgarte bias.
        iters: Number of solver iterations.

    Raises:
        UnboundBodyError, LimitViolationError: From validate(); not caught.

    Note:
        Modifies body velocities in place.
    """
    biases = []
    for c in constraints:
        c.validate()
        c.prepare()
        biases.append((c.beta / dt) * c.position_error())
        c.lambda_accum = np.zeros(c.dim, dtype=np.float64)

    for _ in range(iters):
        for c, bias in zip(constraints, biases):
            if not np.any(c.scale):
                continue

            jv = c.velocity_error()
            K = c.effective_mass_matrix()
            # inactive rows would make K singular
            for i in range(c.dim):
                if c.scale[i] == 0.0:
                    K[i, i] = 1.0

            try:
                dlambda = -np.linalg.solve(K, jv + bias)
            except np.linalg.LinAlgError:
                logger.debug("singular effective mass, skipping constraint this iteration")
                continue

            old = c.lambda_accum.copy()
            c.lambda_accum = c.clamp_impulse(old + dlambda)
            impulse = c.lambda_accum - old

            for body in c.bodies:
                dvx, dvy, dw = c.impulse_to_velocity_delta(impulse, body)
                body.velocity[0] += dvx
                body.velocity[1] += dvy
                body.omega += dw
