# MIT License (see LICENSE)
"""
Constraint compiler: DSL text -> CompiledProgram.

Pipeline (runs once, raises before returning anything on failure):
    1. Parse, then build and freeze the schema: bodies, user parameters,
       constants ``inf`` and ``eps``.
    2. Simplify the constraint and every limit expression.
    3. Infer the constraint dimension from its static type.
    4. velocity = simplify(d/dt position)
    5. One Jacobian column per body degree of freedom, in body declaration
       order: d velocity / d vel.x, d vel.y, d angularVel.
    6. effective mass = simplify(sum_i w_i * outer(J_i, J_i)), with w_i the
       body's inverse mass for linear columns and inverse inertia for the
       angular column.

A CompiledProgram is immutable and carries no bindings; runtime state lives
in SymbolicConstraint (constraint.py).
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any

from .constants import CONSTANTS
from .context import Context, Schema, body_symbol
from .differentiate import partial_derivative, time_derivative
from .dsl import Program, parse
from .errors import CompileError, TypeMismatchError
from .etype import EType, SCALAR, VECTOR, infer_type, leaf_types, outer_type, zero_of
from .evaluate import evaluate
from .expr import Block, BinOp, Expr, Outer, Var, free_vars, node_count
from .logging_utils import get_logger
from .simplify import simplify

logger = get_logger(__name__)

# (symbol suffix, vector component, inverse-mass suffix) per body column
BODY_DOFS = (
    ("velocity", 0, "imass"),
    ("velocity", 1, "imass"),
    ("angularVel", 0, "iinertia"),
)


@dataclass(frozen=True)
class Limit:
    """
    A simplified limit.

    Attributes:
        gate: Limited expression, or None for the constraint itself.
        lower: Lower bound expression.
        upper: Upper bound expression.
    """
    gate: Expr | None
    lower: Expr
    upper: Expr


@dataclass(frozen=True)
class CompiledProgram:
    """
    Everything derived from the DSL source at construction time.

    Attributes:
        schema: Frozen symbol table.
        dim: Number of scalar constraint rows.
        constraint_type: Static type of the position constraint.
        position: Simplified position constraint.
        velocity: Simplified time derivative of the position constraint.
        jacobian: 3 columns per body, in body declaration order.
        effective_mass: Simplified sum of weighted outer products.
        limits: Gated limits, checked by validate().
        bounds: Limit on the constraint itself, or None for equality with 0.
        parameters: User parameter name -> static type, declaration order.
        defaults: User parameter name -> initial value.
        body_index: Body name -> index of its first Jacobian column.
        source: DSL text the program was compiled from.
    """
    schema: Schema
    dim: int
    constraint_type: EType
    position: Expr
    velocity: Expr
    jacobian: tuple[Expr, ...]
    effective_mass: Expr
    limits: tuple[Limit, ...]
    bounds: Limit | None
    parameters: dict[str, EType] = field(default_factory=dict)
    defaults: dict[str, Any] = field(default_factory=dict)
    body_index: dict[str, int] = field(default_factory=dict)
    source: str = ""

    @property
    def bodies(self) -> tuple[str, ...]:
        return self.schema.bodies()


def _build_schema(program: Program) -> Schema:
    schema = Schema()
    for body in program.bodies:
        schema.declare_body(body)
    for var in program.variables:
        schema.declare(var.name, var.etype, var.derivative)
    for name in CONSTANTS:
        schema.declare(name, SCALAR)

    for var in program.variables:
        if var.derivative is not None:
            t = infer_type(var.derivative, schema)
            if t != var.etype:
                raise TypeMismatchError(f"Derivative of '{var.name}' has type {t}, expected {var.etype}")
    schema.freeze()
    return schema


def _defaults(program: Program, schema: Schema) -> dict[str, Any]:
    constants = Context(schema, dict(CONSTANTS))
    out: dict[str, Any] = {}
    for var in program.variables:
        if var.default is None:
            out[var.name] = evaluate(zero_of(var.etype), constants)
            continue
        t = infer_type(var.default, schema)
        if t != var.etype:
            raise TypeMismatchError(f"Default of '{var.name}' has type {t}, expected {var.etype}")
        names = free_vars(var.default) - set(CONSTANTS)
        if names:
            raise CompileError(f"Default of '{var.name}' must be constant, references {sorted(names)}")
        out[var.name] = evaluate(simplify(var.default, schema), constants)
    return out


def _flatten_blocks(e: Expr) -> Expr:
    """Splice nested block literals into one level: {a {b c}} -> {a b c}."""
    if not isinstance(e, Block):
        return e
    items: list[Expr] = []
    for item in e.items:
        if isinstance(item, Block):
            items.extend(_flatten_blocks(item).items)
        else:
            items.append(item)
    return Block(tuple(items))


def _same_leaves(a: EType, b: EType) -> bool:
    return list(leaf_types(a)) == list(leaf_types(b))


def _compile_limits(program: Program, schema: Schema, ctype: EType) -> tuple[tuple[Limit, ...], Limit | None]:
    gated: list[Limit] = []
    bounds: Limit | None = None
    for decl in program.limits:
        lower = simplify(decl.lower, schema)
        upper = simplify(decl.upper, schema)
        if decl.gate is None:
            if bounds is not None:
                raise CompileError("The constraint may only be limited once")
            target = ctype
            gate = None
        else:
            gate = simplify(decl.gate, schema)
            target = infer_type(gate, schema)
            if any(leaf not in (SCALAR, VECTOR) for leaf in leaf_types(target)):
                raise TypeMismatchError(f"Cannot limit an expression of type {target}")
        for bound in (lower, upper):
            t = infer_type(bound, schema)
            if t != SCALAR and not _same_leaves(t, target):
                raise TypeMismatchError(f"Limit bound of type {t} does not match {target}")
        limit = Limit(gate, lower, upper)
        if gate is None:
            bounds = limit
        else:
            gated.append(limit)
    return tuple(gated), bounds


def compile_program(source: str) -> CompiledProgram:
    """
    Compile DSL source.

    Raises:
        ParseError: Lexical or syntactic error.
        DuplicateSymbolError: A name is declared twice.
        UnknownSymbolError: An expression references an undeclared name.
        TypeMismatchError: An expression is ill typed, or the constraint is
            not a scalar, vector or block of those.
        CompileError: Any other invalid definition.
    """
    program = parse(source)
    schema = _build_schema(program)
    defaults = _defaults(program, schema)

    position = _flatten_blocks(simplify(program.constraint, schema))
    ctype = infer_type(position, schema)
    if any(leaf not in (SCALAR, VECTOR) for leaf in leaf_types(ctype)):
        raise TypeMismatchError(f"Constraint must be a scalar, vector or block of those, got {ctype}")
    if ctype.dim == 0:
        raise TypeMismatchError("Constraint has no components")

    limits, bounds = _compile_limits(program, schema, ctype)

    velocity = simplify(time_derivative(position, schema), schema)

    jacobian: list[Expr] = []
    body_index: dict[str, int] = {}
    mass_terms: list[Expr] = []
    for body in schema.bodies():
        body_index[body] = len(jacobian)
        for suffix, component, weight in BODY_DOFS:
            column = simplify(partial_derivative(velocity, schema, body_symbol(body, suffix), component), schema)
            jacobian.append(column)
            mass_terms.append(BinOp("*", Var(body_symbol(body, weight)), Outer(column, column)))

    total: Expr = zero_of(outer_type(ctype, ctype))
    for term in mass_terms:
        total = BinOp("+", total, term)
    effective_mass = simplify(total, schema)

    logger.debug(
        "compiled constraint: dim=%d bodies=%d nodes(position=%d velocity=%d mass=%d)",
        ctype.dim, len(body_index), node_count(position), node_count(velocity), node_count(effective_mass),
    )

    return CompiledProgram(
        schema=schema,
        dim=ctype.dim,
        constraint_type=ctype,
        position=position,
        velocity=velocity,
        jacobian=tuple(jacobian),
        effective_mass=effective_mass,
        limits=limits,
        bounds=bounds,
        parameters={var.name: var.etype for var in program.variables},
        defaults=defaults,
        body_index=body_index,
        source=source,
    )
