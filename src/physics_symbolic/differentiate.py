# MIT License (see LICENSE)
"""
Symbolic differentiation of expression trees.

Both entry points share one chain-rule walk and differ only in the seed,
the derivative of a variable reference:

- time_derivative: each symbol maps to its registered derivative
  (``a.position -> a.velocity``); symbols without one are constant.
- partial_derivative: the chosen scalar degree of freedom maps to 1,
  everything else to 0.

Rules (x' is the derivative of x):

    (a + b)'        a' + b'
    (a * b)'        a' * b + a * b'
    (a / b)'        a' / b - (a / b) * (b' / b)
    dot/cross/outer bilinear, like the product rule
    |v|'            dot(v, v') / |v|            (vector v)
    |s|'            unit(s) * s'                (scalar s)
    unit(s)'        0                           (step function)
    unit(v)'        (v' - unit(v) * dot(unit(v), v')) / |v|
    [v]'            [v']
    relative(a, v)' relative(a, v') + a' * [relative(a, v)]

Divisions by a vanishing length fall under the evaluator's division guard,
so derivatives at degenerate configurations evaluate to 0.

The output is not simplified; the compiler passes it through simplify().
"""
from __future__ import annotations
from typing import Callable

from .errors import TypeMismatchError
from .etype import SCALAR, VECTOR, infer_type, zero_of
from .expr import (
    Expr, Scalar, VectorExpr, RowVector, Matrix, Block, Var, Let, BinOp, Neg,
    Dot, Cross, Outer, Unit, Magnitude, Perp, Relative, Func, ONE, ZERO,
    map_children, substitute,
)


def time_derivative(e: Expr, schema) -> Expr:
    """d/dt of e, using each symbol's registered derivative."""
    return _Differentiator(schema, schema.derivative_of).derive(e)


def partial_derivative(e: Expr, schema, var: str, component: int = 0) -> Expr:
    """
    Partial derivative of e with respect to one scalar degree of freedom.

    Args:
        e: Expression to differentiate.
        schema: Declared symbols.
        var: Name of the scalar or vector symbol to differentiate by.
        component: 0 (x) or 1 (y) for vector symbols; ignored for scalars.
    """
    var_type = schema.type_of(var)
    if var_type == SCALAR:
        unit_seed: Expr = ONE
    elif var_type == VECTOR:
        if component not in (0, 1):
            raise ValueError(f"Vector component must be 0 or 1, got {component}")
        unit_seed = VectorExpr(ONE, ZERO) if component == 0 else VectorExpr(ZERO, ONE)
    else:
        raise TypeMismatchError(f"Cannot differentiate by '{var}' of type {var_type}")

    def seed(name: str) -> Expr:
        if name == var:
            return unit_seed
        return zero_of(schema.type_of(name))

    return _Differentiator(schema, seed).derive(e)


class _Differentiator:

    def __init__(self, schema, seed: Callable[[str], Expr]) -> None:
        self.schema = schema
        self.seed = seed

    def derive(self, e: Expr) -> Expr:
        d = self.derive

        if isinstance(e, Scalar):
            return ZERO
        if isinstance(e, Var):
            return self.seed(e.name)
        if isinstance(e, (VectorExpr, RowVector, Matrix, Block)):
            return map_children(e, d)
        if isinstance(e, Let):
            return d(substitute(e.body, e.name, e.value))
        if isinstance(e, BinOp):
            a, b = e.lhs, e.rhs
            if e.op in "+-":
                return BinOp(e.op, d(a), d(b))
            if e.op == "*":
                return BinOp("+", BinOp("*", d(a), b), BinOp("*", a, d(b)))
            # each division is by b alone so the guard threshold stays EPS
            return BinOp(
                "-",
                BinOp("/", d(a), b),
                BinOp("*", e, BinOp("/", d(b), b)),
            )
        if isinstance(e, Neg):
            return Neg(d(e.operand))
        if isinstance(e, (Dot, Cross, Outer)):
            op = type(e)
            return BinOp("+", op(d(e.lhs), e.rhs), op(e.lhs, d(e.rhs)))
        if isinstance(e, Magnitude):
            v = e.operand
            if infer_type(v, self.schema) == SCALAR:
                return BinOp("*", Unit(v), d(v))
            return BinOp("/", Dot(v, d(v)), Magnitude(v))
        if isinstance(e, Unit):
            v = e.operand
            if infer_type(v, self.schema) == SCALAR:
                return ZERO
            u = Unit(v)
            dv = d(v)
            return BinOp("/", BinOp("-", dv, BinOp("*", u, Dot(u, dv))), Magnitude(v))
        if isinstance(e, Perp):
            return Perp(d(e.operand))
        if isinstance(e, Relative):
            return BinOp(
                "+",
                Relative(e.angle, d(e.vector)),
                BinOp("*", d(e.angle), Perp(Relative(e.angle, e.vector))),
            )
        if isinstance(e, Func):
            return self._func(e)
        raise TypeError(f"Unknown expression node: {type(e)}")

    def _func(self, e: Func) -> Expr:
        x = e.operand
        dx = self.derive(x)
        if e.name == "sin":
            return BinOp("*", Func("cos", x), dx)
        if e.name == "cos":
            return Neg(BinOp("*", Func("sin", x), dx))
        if e.name == "tan":
            cos_x = Func("cos", x)
            return BinOp("/", dx, BinOp("*", cos_x, cos_x))
        if e.name == "sqrt":
            return BinOp("/", dx, BinOp("*", Scalar(2.0), e))
        if e.name == "exp":
            return BinOp("*", e, dx)
        if e.name == "ln":
            return BinOp("/", dx, x)
        raise TypeMismatchError(f"Unknown function '{e.name}'")
