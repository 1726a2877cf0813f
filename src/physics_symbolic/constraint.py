# MIT License (see LICENSE)
"""
Runtime side of a compiled constraint.

SymbolicConstraint owns a CompiledProgram (shared, immutable) and a Context
(its own, mutable). A host solver drives it through a fixed sequence of
phases every step:

    1. validate()                  gated limits hold, bodies are bound
    2. prepare()                   snapshot body positions/rotations/masses
    3. position_error()            -> float[dim], sets scale/equal per row
    4. velocity_error()            -> float[dim]          (per iteration)
    5. effective_mass()            -> float[dim*(dim+1)/2] (per iteration)
    6. clamp_impulse(impulse)      in place                (per iteration)
    7. impulse_to_velocity_delta(impulse, body) -> (dvx, dvy, dw)

Sign convention: a row with scale = -1 is violated below its lower bound;
errors, velocities, effective-mass entries and impulses of that row are all
expressed in the flipped direction, so every active row reads "positive
error, push back with a non-positive impulse".

Example:
    from physics_symbolic import compile

    c = compile('''
        body a, b
        scalar length = 1
        constraint |b.position - a.position| - length
    ''')
    c.set_body("a", anchor)
    c.set_body("b", bob)
"""
from __future__ import annotations
from typing import Any

import numpy as np

from .compiler import BODY_DOFS, CompiledProgram, compile_program
from .constants import CONSTANTS
from .context import Context, body_symbol
from .errors import LimitViolationError, UnboundBodyError, UnknownParameterError
from .etype import SCALAR, VECTOR
from .evaluate import assemble, evaluate, flatten
from .expr import format_expr
from .logging_utils import get_logger
from .types import RigidBody2D
from .util import f64

logger = get_logger(__name__)


class SymbolicConstraint:
    """
    A compiled DSL constraint bound to concrete bodies and parameter values.

    Attributes:
        program: Compiled expressions and schema (shared, immutable).
        context: This instance's bindings.
        dim: Number of constraint rows.
        scale: Per-row sign set by position_error(): -1, 0 (inactive) or 1.
        equal: Per-row flag, True where lower == upper.
        beta: Baumgarte stabilization factor used by the host PGS driver.
        lambda_accum: Accumulated impulse for the current step (host state).
    """

    def __init__(self, source: str | CompiledProgram, beta: float = 0.2):
        self.program = source if isinstance(source, CompiledProgram) else compile_program(source)
        self.context = Context(self.program.schema)
        self.dim = self.program.dim
        self.scale = np.zeros(self.dim, dtype=np.float64)
        self.equal = np.zeros(self.dim, dtype=bool)
        self.beta = beta
        self.lambda_accum = np.zeros(self.dim, dtype=np.float64)

        for name, value in CONSTANTS.items():
            self.context.bind(name, value)
        for name, value in self.program.defaults.items():
            self.context.bind(name, value)

        self._bodies: dict[str, RigidBody2D | None] = {name: None for name in self.program.bodies}
        # id(body) -> Jacobian offsets of every slot the body is bound to
        self._slots: dict[int, list[int]] = {}

    # =========================================================================
    # Parameter access
    # =========================================================================

    def _parameter(self, name: str, etype) -> None:
        if self.program.parameters.get(name) != etype:
            raise UnknownParameterError(f"No {etype} parameter named '{name}'")

    def get_scalar(self, name: str) -> float:
        self._parameter(name, SCALAR)
        return float(self.context.value_of(name))

    def set_scalar(self, name: str, value: float) -> None:
        self._parameter(name, SCALAR)
        self.context.bind(name, float(value))

    def get_vector(self, name: str) -> np.ndarray:
        self._parameter(name, VECTOR)
        return self.context.value_of(name).copy()

    def set_vector(self, name: str, value: Any) -> None:
        self._parameter(name, VECTOR)
        vec = f64(value)
        if vec.shape != (2,):
            raise ValueError(f"Vector parameter '{name}' needs 2 components, got shape {vec.shape}")
        self.context.bind(name, vec)

    def get_body(self, name: str) -> RigidBody2D | None:
        if name not in self._bodies:
            raise UnknownParameterError(f"No body named '{name}'")
        return self._bodies[name]

    def set_body(self, name: str, body: RigidBody2D | None) -> None:
        """Bind a body slot (None unbinds it) and rebuild the body -> column table."""
        if name not in self._bodies:
            raise UnknownParameterError(f"No body named '{name}'")
        self._bodies[name] = body
        self._slots = {}
        for slot, bound in self._bodies.items():
            if bound is not None:
                self._slots.setdefault(id(bound), []).append(self.program.body_index[slot])

    @property
    def bodies(self) -> list[RigidBody2D]:
        """Distinct bound bodies, in declaration order."""
        out: list[RigidBody2D] = []
        for body in self._bodies.values():
            if body is not None and all(body is not b for b in out):
                out.append(body)
        return out

    # =========================================================================
    # Solver protocol
    # =========================================================================

    def validate(self) -> None:
        """
        Check that the constraint can be solved this step.

        Raises:
            UnboundBodyError: A declared body slot has no body.
            LimitViolationError: A gated limit does not hold (vector limits
                are checked component-wise), or the constraint's own lower
                bound exceeds its upper bound.
        """
        for name, body in self._bodies.items():
            if body is None:
                raise UnboundBodyError(f"Body '{name}' is not bound")
        # gates may read body state
        self.prepare()

        for limit in self.program.limits:
            value = flatten(evaluate(limit.gate, self.context))
            lower = self._bound(limit.lower, value.size)
            upper = self._bound(limit.upper, value.size)
            if np.any(value < lower) or np.any(value > upper):
                logger.warning(
                    "limit violated: %s = %s not within [%s, %s]",
                    format_expr(limit.gate), value, lower, upper,
                )
                raise LimitViolationError(
                    f"Limit violated: {format_expr(limit.gate)} = {value.tolist()} "
                    f"not within [{lower.tolist()}, {upper.tolist()}]"
                )

        bounds = self.program.bounds
        if bounds is not None:
            lower = self._bound(bounds.lower, self.dim)
            upper = self._bound(bounds.upper, self.dim)
            if np.any(lower > upper):
                logger.warning("empty constraint bounds: [%s, %s]", lower, upper)
                raise LimitViolationError(
                    f"Constraint bounds are empty: lower {lower.tolist()} exceeds upper {upper.tolist()}"
                )

    def prepare(self) -> None:
        """
        Snapshot position, rotation and inverse masses of every bound body.

        Velocities are bound here too and rebound by velocity_error().
        """
        for name, body in self._bodies.items():
            if body is None:
                raise UnboundBodyError(f"Body '{name}' is not bound")
            self.context.bind(body_symbol(name, "position"), f64(body.position))
            self.context.bind(body_symbol(name, "rotation"), float(body.angle))
            self.context.bind(body_symbol(name, "imass"), float(body.inv_mass))
            self.context.bind(body_symbol(name, "iinertia"), float(body.inv_inertia))
        self._bind_velocities()

    def position_error(self) -> np.ndarray:
        """
        Evaluate the position constraint against its bounds.

        Per row: lower == upper gives an equality row (value - lower,
        scale 1); below lower gives lower - value with scale -1; above upper
        gives value - upper with scale 1; otherwise the row is inactive
        (0, scale 0).
        """
        value = flatten(evaluate(self.program.position, self.context))
        bounds = self.program.bounds
        if bounds is None:
            lower = upper = np.zeros(self.dim, dtype=np.float64)
        else:
            lower = self._bound(bounds.lower, self.dim)
            upper = self._bound(bounds.upper, self.dim)

        err = np.zeros(self.dim, dtype=np.float64)
        for i in range(self.dim):
            self.equal[i] = lower[i] == upper[i]
            if self.equal[i]:
                err[i] = value[i] - lower[i]
                self.scale[i] = 1.0
            elif value[i] < lower[i]:
                err[i] = lower[i] - value[i]
                self.scale[i] = -1.0
            elif value[i] > upper[i]:
                err[i] = value[i] - upper[i]
                self.scale[i] = 1.0
            else:
                self.scale[i] = 0.0
        return err

    def velocity_error(self) -> np.ndarray:
        """Rebind body velocities and evaluate the scaled velocity constraint."""
        self._bind_velocities()
        return flatten(evaluate(self.program.velocity, self.context)) * self.scale

    def _bind_velocities(self) -> None:
        for name, body in self._bodies.items():
            if body is None:
                raise UnboundBodyError(f"Body '{name}' is not bound")
            self.context.bind(body_symbol(name, "velocity"), f64(body.velocity))
            self.context.bind(body_symbol(name, "angularVel"), float(body.omega))

    def effective_mass_matrix(self) -> np.ndarray:
        """Full dim x dim effective mass, entry [y][x] times scale[x]*scale[y]."""
        k = assemble(evaluate(self.program.effective_mass, self.context))
        return k * np.outer(self.scale, self.scale)

    def effective_mass(self) -> np.ndarray:
        """Upper triangle (row-major) of effective_mass_matrix()."""
        return self.effective_mass_matrix()[np.triu_indices(self.dim)]

    def clamp_impulse(self, impulse: np.ndarray) -> np.ndarray:
        """
        Clamp an impulse in place and return it.

        Inactive rows are zeroed; inequality rows only keep non-positive
        impulses.
        """
        for i in range(self.dim):
            if self.scale[i] == 0.0 or (not self.equal[i] and impulse[i] > 0.0):
                impulse[i] = 0.0
        return impulse

    def impulse_to_velocity_delta(self, impulse: np.ndarray, body: RigidBody2D | str) -> tuple[float, float, float]:
        """
        Velocity change of one body for a constraint-space impulse.

        Contracts the body's three Jacobian columns with impulse * scale and
        applies the body's inverse mass / inverse inertia.

        Args:
            impulse: Constraint-space impulse, length dim.
            body: A bound body, or the declared name of a body slot.
        """
        if isinstance(body, str):
            if body not in self.program.body_index:
                raise UnknownParameterError(f"No body named '{body}'")
            offsets = [self.program.body_index[body]]
            name_of = {self.program.body_index[body]: body}
        else:
            offsets = self._slots.get(id(body), [])
            name_of = {self.program.body_index[n]: n for n, b in self._bodies.items() if b is body}

        weighted = np.asarray(impulse, dtype=np.float64) * self.scale
        delta = np.zeros(3, dtype=np.float64)
        for offset in offsets:
            name = name_of[offset]
            for k, (_, _, weight) in enumerate(BODY_DOFS):
                column = flatten(evaluate(self.program.jacobian[offset + k], self.context))
                inv = float(self.context.value_of(body_symbol(name, weight)))
                delta[k] += inv * float(np.dot(column, weighted))
        return float(delta[0]), float(delta[1]), float(delta[2])

    # =========================================================================
    # Debugging
    # =========================================================================

    def debug(self) -> str:
        """Text dump of every simplified expression of the compiled constraint."""
        p = self.program
        lines = [
            f"dim: {p.dim}",
            f"position: {format_expr(p.position)}",
            f"velocity: {format_expr(p.velocity)}",
        ]
        for body, offset in p.body_index.items():
            for k, label in enumerate(("vel.x", "vel.y", "angularVel")):
                lines.append(f"jacobian[{body}.{label}]: {format_expr(p.jacobian[offset + k])}")
        lines.append(f"effective mass: {format_expr(p.effective_mass)}")
        return "\n".join(lines)

    def _bound(self, e, size: int) -> np.ndarray:
        """Evaluate a limit bound, broadcasting a scalar bound to size rows."""
        value = flatten(evaluate(e, self.context))
        if value.size == 1 and size != 1:
            return np.full(size, value[0], dtype=np.float64)
        return value


def compile(source: str) -> SymbolicConstraint:
    """
    Compile DSL source into a ready-to-bind constraint.

    Raises:
        CompileError: Any parse, symbol or type error; nothing is returned
            on failure.
    """
    return SymbolicConstraint(source)
