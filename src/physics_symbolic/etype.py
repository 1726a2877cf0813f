# MIT License (see LICENSE)
"""
Static expression types and type inference.

Types are structural: two block types are equal when their item types are
equal, item by item. Inference walks the tree once and raises
TypeMismatchError on the first operator whose operands do not fit, or
UnknownSymbolError on a name missing from the schema.

Operator typing (s = scalar, v = vector, r = row, m = matrix, b = block):

    +  -        T, T -> T
    *           s, T -> T    T, s -> T    m, v -> v    m, m -> m
                r, v -> s    r, m -> r    v, r -> m
    /           T, s -> T
    dot         v, v -> s
    cross       v, v -> s    s, v -> v    v, s -> v
    outer       s, s -> s    s, v -> r    v, s -> v    v, v -> m
                blocks expand item-wise (rows first)
    unit |.|    s -> s, v -> v (|v| -> s)
    [.]         v -> v
    relative    s, v -> v
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterator

from .errors import DuplicateSymbolError, TypeMismatchError
from .expr import (
    Expr, Scalar, VectorExpr, RowVector, Matrix, Block, Var, Let, BinOp, Neg,
    Dot, Cross, Outer, Unit, Magnitude, Perp, Relative, Func, ZERO,
)

if TYPE_CHECKING:
    from .context import Schema


class Kind(Enum):
    SCALAR = "scalar"
    VECTOR = "vector"
    ROW = "row"
    MATRIX = "matrix"
    BLOCK = "block"


@dataclass(frozen=True)
class EType:
    """
    Static type of an expression.

    Attributes:
        kind: Shape family.
        items: Item types, only for Kind.BLOCK.
    """
    kind: Kind
    items: tuple[EType, ...] = ()

    @property
    def dim(self) -> int:
        """Number of floats in the flattened value."""
        if self.kind is Kind.SCALAR:
            return 1
        if self.kind in (Kind.VECTOR, Kind.ROW):
            return 2
        if self.kind is Kind.MATRIX:
            return 4
        return sum(item.dim for item in self.items)

    def __str__(self) -> str:
        if self.kind is Kind.BLOCK:
            return "block{" + ", ".join(str(item) for item in self.items) + "}"
        return self.kind.value


SCALAR = EType(Kind.SCALAR)
VECTOR = EType(Kind.VECTOR)
ROW = EType(Kind.ROW)
MATRIX = EType(Kind.MATRIX)


def block_of(items) -> EType:
    return EType(Kind.BLOCK, tuple(items))


def leaf_types(t: EType) -> Iterator[EType]:
    """Non-block types of t in depth-first order."""
    if t.kind is Kind.BLOCK:
        for item in t.items:
            yield from leaf_types(item)
    else:
        yield t


def zero_of(t: EType) -> Expr:
    """Literal zero expression of type t."""
    if t.kind is Kind.SCALAR:
        return ZERO
    if t.kind is Kind.VECTOR:
        return VectorExpr(ZERO, ZERO)
    if t.kind is Kind.ROW:
        return RowVector(ZERO, ZERO)
    if t.kind is Kind.MATRIX:
        return Matrix(ZERO, ZERO, ZERO, ZERO)
    return Block(tuple(zero_of(item) for item in t.items))


def mul_type(a: EType, b: EType) -> EType | None:
    """Result type of a * b, or None when the product is undefined."""
    if a == SCALAR:
        return b
    if b == SCALAR:
        return a
    table = {
        (Kind.MATRIX, Kind.VECTOR): VECTOR,
        (Kind.MATRIX, Kind.MATRIX): MATRIX,
        (Kind.ROW, Kind.VECTOR): SCALAR,
        (Kind.ROW, Kind.MATRIX): ROW,
        (Kind.VECTOR, Kind.ROW): MATRIX,
    }
    return table.get((a.kind, b.kind))


def cross_type(a: EType, b: EType) -> EType | None:
    if a == VECTOR and b == VECTOR:
        return SCALAR
    if (a == SCALAR and b == VECTOR) or (a == VECTOR and b == SCALAR):
        return VECTOR
    return None


def outer_type(a: EType, b: EType) -> EType | None:
    """Result type of outer(a, b), expanding blocks item-wise."""
    if a.kind is Kind.BLOCK:
        rows = [outer_type(item, b) for item in a.items]
        return None if None in rows else block_of(rows)
    if b.kind is Kind.BLOCK:
        cols = [outer_type(a, item) for item in b.items]
        return None if None in cols else block_of(cols)
    table = {
        (Kind.SCALAR, Kind.SCALAR): SCALAR,
        (Kind.SCALAR, Kind.VECTOR): ROW,
        (Kind.VECTOR, Kind.SCALAR): VECTOR,
        (Kind.VECTOR, Kind.VECTOR): MATRIX,
    }
    return table.get((a.kind, b.kind))


def _mismatch(what: str, *types: EType) -> TypeMismatchError:
    shown = ", ".join(str(t) for t in types)
    return TypeMismatchError(f"Cannot apply {what} to ({shown})")


def infer_type(e: Expr, schema: "Schema", env: dict[str, EType] | None = None) -> EType:
    """
    Infer the static type of e.

    Args:
        e: Expression to type.
        schema: Declared symbols (anything with type_of() and ``in``).
        env: Types of let-bound names in scope.

    Raises:
        UnknownSymbolError: A referenced name is not declared.
        DuplicateSymbolError: A let shadows a schema symbol.
        TypeMismatchError: Operand shapes do not fit an operator.
    """
    env = env or {}

    if isinstance(e, Scalar):
        return SCALAR
    if isinstance(e, Var):
        if e.name in env:
            return env[e.name]
        return schema.type_of(e.name)
    if isinstance(e, (VectorExpr, RowVector, Matrix)):
        for part in _parts(e):
            t = infer_type(part, schema, env)
            if t != SCALAR:
                raise _mismatch(f"{type(e).__name__} component", t)
        if isinstance(e, VectorExpr):
            return VECTOR
        return ROW if isinstance(e, RowVector) else MATRIX
    if isinstance(e, Block):
        return block_of(infer_type(item, schema, env) for item in e.items)
    if isinstance(e, Let):
        if e.name in schema:
            raise DuplicateSymbolError(f"let '{e.name}' shadows a declared symbol")
        value_t = infer_type(e.value, schema, env)
        return infer_type(e.body, schema, {**env, e.name: value_t})
    if isinstance(e, BinOp):
        a = infer_type(e.lhs, schema, env)
        b = infer_type(e.rhs, schema, env)
        if e.op in "+-":
            if a != b:
                raise _mismatch(f"'{e.op}'", a, b)
            return a
        if e.op == "*":
            result = mul_type(a, b)
            if result is None:
                raise _mismatch("'*'", a, b)
            return result
        if e.op == "/":
            if b != SCALAR:
                raise _mismatch("'/'", a, b)
            return a
        raise TypeMismatchError(f"Unknown operator '{e.op}'")
    if isinstance(e, Neg):
        return infer_type(e.operand, schema, env)
    if isinstance(e, Dot):
        a = infer_type(e.lhs, schema, env)
        b = infer_type(e.rhs, schema, env)
        if a != VECTOR or b != VECTOR:
            raise _mismatch("dot", a, b)
        return SCALAR
    if isinstance(e, Cross):
        a = infer_type(e.lhs, schema, env)
        b = infer_type(e.rhs, schema, env)
        result = cross_type(a, b)
        if result is None:
            raise _mismatch("cross", a, b)
        return result
    if isinstance(e, Outer):
        a = infer_type(e.lhs, schema, env)
        b = infer_type(e.rhs, schema, env)
        result = outer_type(a, b)
        if result is None:
            raise _mismatch("outer", a, b)
        return result
    if isinstance(e, (Unit, Magnitude)):
        t = infer_type(e.operand, schema, env)
        if t not in (SCALAR, VECTOR):
            raise _mismatch(type(e).__name__.lower(), t)
        return SCALAR if isinstance(e, Magnitude) else t
    if isinstance(e, Perp):
        t = infer_type(e.operand, schema, env)
        if t != VECTOR:
            raise _mismatch("perpendicular", t)
        return VECTOR
    if isinstance(e, Relative):
        a = infer_type(e.angle, schema, env)
        v = infer_type(e.vector, schema, env)
        if a != SCALAR or v != VECTOR:
            raise _mismatch("relative", a, v)
        return VECTOR
    if isinstance(e, Func):
        t = infer_type(e.operand, schema, env)
        if t != SCALAR:
            raise _mismatch(e.name, t)
        return SCALAR
    raise TypeError(f"Unknown expression node: {type(e)}")


def _parts(e: Expr) -> tuple[Expr, ...]:
    if isinstance(e, Matrix):
        return (e.a, e.b, e.c, e.d)
    return (e.x, e.y)
