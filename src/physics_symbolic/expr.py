# MIT License (see LICENSE)
"""
Expression tree for the constraint DSL.

Every node is a frozen dataclass, so trees are immutable, hashable and can
be shared freely between the position constraint, its derivatives and the
effective-mass expression. Passes over the tree (type inference,
simplification, differentiation, evaluation, printing) are plain recursive
functions that dispatch on the node class.

Node overview:
    Scalar, VectorExpr, RowVector, Matrix, Block   literals / constructors
    Var, Let                                       names
    BinOp, Neg                                     arithmetic
    Dot, Cross, Outer                              products
    Unit, Magnitude, Perp, Relative, Func          unary operators
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class Expr:
    """Base class of all expression nodes."""

    def __str__(self) -> str:
        return format_expr(self)


# =============================================================================
# Literals and constructors
# =============================================================================

@dataclass(frozen=True)
class Scalar(Expr):
    """Numeric scalar literal."""
    value: float


@dataclass(frozen=True)
class VectorExpr(Expr):
    """2D column vector built from two scalar expressions."""
    x: Expr
    y: Expr


@dataclass(frozen=True)
class RowVector(Expr):
    """2D row vector built from two scalar expressions."""
    x: Expr
    y: Expr


@dataclass(frozen=True)
class Matrix(Expr):
    """
    2x2 matrix built from four scalar expressions, row-major:

        [a b]
        [c d]
    """
    a: Expr
    b: Expr
    c: Expr
    d: Expr


@dataclass(frozen=True)
class Block(Expr):
    """Ordered group of independently typed sub-expressions."""
    items: tuple[Expr, ...]


# =============================================================================
# Names
# =============================================================================

@dataclass(frozen=True)
class Var(Expr):
    """Reference to a schema symbol or a let-bound name."""
    name: str


@dataclass(frozen=True)
class Let(Expr):
    """``let name = value in body``."""
    name: str
    value: Expr
    body: Expr


# =============================================================================
# Operators
# =============================================================================

@dataclass(frozen=True)
class BinOp(Expr):
    """Arithmetic binary operator; op is one of ``+ - * /``."""
    op: str
    lhs: Expr
    rhs: Expr


@dataclass(frozen=True)
class Neg(Expr):
    """Unary minus."""
    operand: Expr


@dataclass(frozen=True)
class Dot(Expr):
    lhs: Expr
    rhs: Expr


@dataclass(frozen=True)
class Cross(Expr):
    lhs: Expr
    rhs: Expr


@dataclass(frozen=True)
class Outer(Expr):
    lhs: Expr
    rhs: Expr


@dataclass(frozen=True)
class Unit(Expr):
    """Sign of a scalar, or the normalised direction of a vector."""
    operand: Expr


@dataclass(frozen=True)
class Magnitude(Expr):
    """Absolute value of a scalar, or the length of a vector."""
    operand: Expr


@dataclass(frozen=True)
class Perp(Expr):
    """Vector rotated counterclockwise by 90 degrees: [x y] -> [-y x]."""
    operand: Expr


@dataclass(frozen=True)
class Relative(Expr):
    """Vector rotated counterclockwise by a scalar angle (radians)."""
    angle: Expr
    vector: Expr


@dataclass(frozen=True)
class Func(Expr):
    """Scalar function application; name is one of FUNCTIONS."""
    name: str
    operand: Expr


FUNCTIONS = ("sin", "cos", "tan", "sqrt", "exp", "ln")

ZERO = Scalar(0.0)
ONE = Scalar(1.0)


# =============================================================================
# Structural helpers
# =============================================================================

def children(e: Expr) -> tuple[Expr, ...]:
    """Direct sub-expressions of a node, in field order."""
    if isinstance(e, (Scalar, Var)):
        return ()
    if isinstance(e, (VectorExpr, RowVector)):
        return (e.x, e.y)
    if isinstance(e, Matrix):
        return (e.a, e.b, e.c, e.d)
    if isinstance(e, Block):
        return e.items
    if isinstance(e, Let):
        return (e.value, e.body)
    if isinstance(e, (BinOp, Dot, Cross, Outer)):
        return (e.lhs, e.rhs)
    if isinstance(e, (Neg, Unit, Magnitude, Perp, Func)):
        return (e.operand,)
    if isinstance(e, Relative):
        return (e.angle, e.vector)
    raise TypeError(f"Unknown expression node: {type(e)}")


def map_children(e: Expr, fn: Callable[[Expr], Expr]) -> Expr:
    """Rebuild a node with fn applied to each direct sub-expression."""
    if isinstance(e, (Scalar, Var)):
        return e
    if isinstance(e, VectorExpr):
        return VectorExpr(fn(e.x), fn(e.y))
    if isinstance(e, RowVector):
        return RowVector(fn(e.x), fn(e.y))
    if isinstance(e, Matrix):
        return Matrix(fn(e.a), fn(e.b), fn(e.c), fn(e.d))
    if isinstance(e, Block):
        return Block(tuple(fn(item) for item in e.items))
    if isinstance(e, Let):
        return Let(e.name, fn(e.value), fn(e.body))
    if isinstance(e, BinOp):
        return BinOp(e.op, fn(e.lhs), fn(e.rhs))
    if isinstance(e, (Dot, Cross, Outer)):
        return type(e)(fn(e.lhs), fn(e.rhs))
    if isinstance(e, (Neg, Unit, Magnitude, Perp)):
        return type(e)(fn(e.operand))
    if isinstance(e, Func):
        return Func(e.name, fn(e.operand))
    if isinstance(e, Relative):
        return Relative(fn(e.angle), fn(e.vector))
    raise TypeError(f"Unknown expression node: {type(e)}")


def free_vars(e: Expr, bound: frozenset[str] = frozenset()) -> set[str]:
    """Names referenced by e that are not bound by an enclosing let."""
    if isinstance(e, Var):
        return set() if e.name in bound else {e.name}
    if isinstance(e, Let):
        return free_vars(e.value, bound) | free_vars(e.body, bound | {e.name})
    out: set[str] = set()
    for child in children(e):
        out |= free_vars(child, bound)
    return out


def substitute(e: Expr, name: str, value: Expr) -> Expr:
    """
    Replace free occurrences of Var(name) in e by value.

    An inner let binding the same name shadows it for its body.
    """
    if isinstance(e, Var):
        return value if e.name == name else e
    if isinstance(e, Let):
        new_value = substitute(e.value, name, value)
        if e.name == name:
            return Let(e.name, new_value, e.body)
        return Let(e.name, new_value, substitute(e.body, name, value))
    return map_children(e, lambda child: substitute(child, name, value))


def is_literal(e: Expr) -> bool:
    """True for Scalar nodes and constructors whose leaves are all Scalars."""
    if isinstance(e, Scalar):
        return True
    if isinstance(e, (VectorExpr, RowVector, Matrix, Block)):
        return all(is_literal(child) for child in children(e))
    return False


def is_zero(e: Expr) -> bool:
    """True for literal zeros of any shape."""
    if isinstance(e, Scalar):
        return e.value == 0.0
    if isinstance(e, (VectorExpr, RowVector, Matrix, Block)):
        return all(is_zero(child) for child in children(e))
    return False


def is_one(e: Expr) -> bool:
    return isinstance(e, Scalar) and e.value == 1.0


def node_count(e: Expr) -> int:
    """Number of nodes in the tree (used for compile diagnostics)."""
    return 1 + sum(node_count(child) for child in children(e))


# =============================================================================
# Printing
# =============================================================================

# Binding strength of each printed form, lowest first.
_PREC_LET = 0
_PREC_ADD = 1
_PREC_MUL = 2
_PREC_NAMED = 3
_PREC_UNARY = 4
_PREC_ATOM = 5


def _precedence(e: Expr) -> int:
    if isinstance(e, Let):
        return _PREC_LET
    if isinstance(e, BinOp):
        return _PREC_ADD if e.op in "+-" else _PREC_MUL
    if isinstance(e, (Dot, Cross, Outer)):
        return _PREC_NAMED
    if isinstance(e, (Neg, Unit, Relative, Func)):
        return _PREC_UNARY
    if isinstance(e, Scalar) and e.value < 0:
        return _PREC_UNARY
    return _PREC_ATOM


def _format_number(v: float) -> str:
    if v == float("inf"):
        return "inf"
    if v == float("-inf"):
        return "-inf"
    if v == int(v) and abs(v) < 1e15:
        return str(int(v))
    return repr(v)


def _wrap(e: Expr, min_prec: int) -> str:
    text = format_expr(e)
    if _precedence(e) < min_prec:
        return f"({text})"
    return text


def format_expr(e: Expr) -> str:
    """
    Render an expression as DSL text.

    Output re-parses to an equal tree for every node except RowVector,
    which has no DSL syntax and prints as ``[x y]^T``.
    """
    if isinstance(e, Scalar):
        return _format_number(e.value)
    if isinstance(e, Var):
        return e.name
    if isinstance(e, VectorExpr):
        return f"[{_wrap(e.x, _PREC_ATOM)} {_wrap(e.y, _PREC_ATOM)}]"
    if isinstance(e, RowVector):
        return f"[{_wrap(e.x, _PREC_ATOM)} {_wrap(e.y, _PREC_ATOM)}]^T"
    if isinstance(e, Matrix):
        a, b, c, d = (_wrap(x, _PREC_ATOM) for x in (e.a, e.b, e.c, e.d))
        return f"[{a} {b} ; {c} {d}]"
    if isinstance(e, Block):
        return "{" + " ".join(_wrap(item, _PREC_ATOM) for item in e.items) + "}"
    if isinstance(e, Let):
        return f"let {e.name} = {format_expr(e.value)} in {format_expr(e.body)}"
    if isinstance(e, BinOp):
        prec = _precedence(e)
        # Left-associative: the right operand needs parens at equal precedence
        return f"{_wrap(e.lhs, prec)} {e.op} {_wrap(e.rhs, prec + 1)}"
    if isinstance(e, (Dot, Cross, Outer)):
        name = type(e).__name__.lower()
        return f"{_wrap(e.lhs, _PREC_NAMED)} {name} {_wrap(e.rhs, _PREC_UNARY)}"
    if isinstance(e, Neg):
        # "--x" would lex as two minus signs, so nested negatives get parens
        inner = _PREC_ATOM if isinstance(e.operand, (Neg, Scalar)) else _PREC_UNARY
        return f"-{_wrap(e.operand, inner)}"
    if isinstance(e, Unit):
        return f"unit {_wrap(e.operand, _PREC_UNARY)}"
    if isinstance(e, Func):
        return f"{e.name} {_wrap(e.operand, _PREC_UNARY)}"
    if isinstance(e, Magnitude):
        return f"|{format_expr(e.operand)}|"
    if isinstance(e, Perp):
        return f"[{format_expr(e.operand)}]"
    if isinstance(e, Relative):
        return f"relative {_wrap(e.angle, _PREC_UNARY)} {_wrap(e.vector, _PREC_UNARY)}"
    raise TypeError(f"Unknown expression node: {type(e)}")
