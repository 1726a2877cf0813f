# MIT License (see LICENSE)
"""
Constraint solving for symbolic constraints.

Typical usage:
    from physics_symbolic.constraints import solve_symbolic_constraints_pgs

    solve_symbolic_constraints_pgs([constraint], dt=1/240)
"""
from .solver import solve_symbolic_constraints_pgs

__all__ = [
    "solve_symbolic_constraints_pgs",
]
