# MIT License (see LICENSE)
"""
Algebraic simplification of expression trees.

simplify() type-checks its input, inlines every let by substitution and then
rewrites the tree bottom-up. Each node is reduced only after its children
are in reduced form, and every node a rule creates is reduced again, so the
result is a fixed point: simplify(simplify(e)) == simplify(e).

Rules:
    - literal arithmetic and literal unary operators are folded
    - x + 0 -> x, x - 0 -> x, 0 - x -> -x, x - x -> 0, x + -y -> x - y
    - x * 1 -> x, x * 0 -> 0 (of the product's type), 0 / x -> 0, x / 1 -> x
    - -(-x) -> x, negation pulled out of products
    - scalar factors move left and fold: 2 * (3 * x) -> 6 * x
    - scalar *, / and negation distribute into vector, row, matrix and block
      constructors; +, - of two constructors work componentwise
    - dot, cross, outer, perpendicular and matrix products of constructors
      are expanded into their components
    - |-x| -> |x|, unit(unit(x)) -> unit(x), perp(perp(v)) -> -v

Variables are never replaced by values here; that happens at evaluation.
"""
from __future__ import annotations

import numpy as np

from .constants import EPS
from .etype import EType, SCALAR, infer_type, mul_type, cross_type, outer_type, zero_of
from .evaluate import apply_func
from .expr import (
    Expr, Scalar, VectorExpr, RowVector, Matrix, Block, Var, Let, BinOp, Neg,
    Dot, Cross, Outer, Unit, Magnitude, Perp, Relative, Func,
    map_children, substitute, is_zero, is_one, is_literal,
)
from .util import unit, rotate, sign

_CONSTRUCTORS = (VectorExpr, RowVector, Matrix, Block)


def simplify(e: Expr, schema) -> Expr:
    """
    Return the reduced form of e.

    Args:
        e: Expression to simplify.
        schema: Declared symbols, used for type checking and typed zeros.

    Raises:
        UnknownSymbolError: e references an undeclared symbol.
        TypeMismatchError: e is not well typed.
    """
    infer_type(e, schema)
    return _Simplifier(schema).simplify(e)


def _fold(op: str, a: float, b: float) -> float:
    if op == "+":
        return a + b
    if op == "-":
        return a - b
    if op == "*":
        return a * b
    # Division follows the evaluator's guard
    return 0.0 if abs(b) < EPS else a / b


class _Simplifier:

    def __init__(self, schema) -> None:
        self.schema = schema
        self._types: dict[Expr, EType] = {}

    def type_of(self, e: Expr) -> EType:
        t = self._types.get(e)
        if t is None:
            t = infer_type(e, self.schema)
            self._types[e] = t
        return t

    def simplify(self, e: Expr) -> Expr:
        if isinstance(e, (Scalar, Var)):
            return e
        if isinstance(e, Let):
            value = self.simplify(e.value)
            return self.simplify(substitute(e.body, e.name, value))
        return self.reduce(map_children(e, self.simplify))

    # -------------------------------------------------------------------------
    # Node rules; children are already reduced
    # -------------------------------------------------------------------------

    def reduce(self, e: Expr) -> Expr:
        if isinstance(e, Neg):
            return self._neg(e.operand)
        if isinstance(e, BinOp):
            if e.op == "+":
                return self._add(e.lhs, e.rhs)
            if e.op == "-":
                return self._sub(e.lhs, e.rhs)
            if e.op == "*":
                return self._mul(e.lhs, e.rhs)
            return self._div(e.lhs, e.rhs)
        if isinstance(e, Dot):
            return self._dot(e.lhs, e.rhs)
        if isinstance(e, Cross):
            return self._cross(e.lhs, e.rhs)
        if isinstance(e, Outer):
            return self._outer(e.lhs, e.rhs)
        if isinstance(e, Unit):
            return self._unit(e.operand)
        if isinstance(e, Magnitude):
            return self._magnitude(e.operand)
        if isinstance(e, Perp):
            return self._perp(e.operand)
        if isinstance(e, Relative):
            return self._relative(e.angle, e.vector)
        if isinstance(e, Func):
            if isinstance(e.operand, Scalar):
                return Scalar(apply_func(e.name, e.operand.value))
            return e
        return e

    def _binop(self, op: str, a: Expr, b: Expr) -> Expr:
        return self.reduce(BinOp(op, a, b))

    def _neg(self, a: Expr) -> Expr:
        if isinstance(a, Scalar):
            return Scalar(-a.value)
        if isinstance(a, Neg):
            return a.operand
        if isinstance(a, _CONSTRUCTORS):
            return map_children(a, self._neg)
        return Neg(a)

    def _add(self, a: Expr, b: Expr) -> Expr:
        if isinstance(a, Scalar) and isinstance(b, Scalar):
            return Scalar(_fold("+", a.value, b.value))
        if is_zero(a):
            return b
        if is_zero(b):
            return a
        if _same_constructor(a, b):
            return _zip_children(a, b, lambda x, y: self._binop("+", x, y))
        if isinstance(b, Neg):
            return self._binop("-", a, b.operand)
        return BinOp("+", a, b)

    def _sub(self, a: Expr, b: Expr) -> Expr:
        if isinstance(a, Scalar) and isinstance(b, Scalar):
            return Scalar(_fold("-", a.value, b.value))
        if is_zero(b):
            return a
        if is_zero(a):
            return self._neg(b)
        if a == b:
            return zero_of(self.type_of(a))
        if _same_constructor(a, b):
            return _zip_children(a, b, lambda x, y: self._binop("-", x, y))
        if isinstance(b, Neg):
            return self._binop("+", a, b.operand)
        return BinOp("-", a, b)

    def _mul(self, a: Expr, b: Expr) -> Expr:
        if isinstance(a, Scalar) and isinstance(b, Scalar):
            return Scalar(_fold("*", a.value, b.value))
        ta, tb = self.type_of(a), self.type_of(b)
        if is_zero(a) or is_zero(b):
            return zero_of(mul_type(ta, tb))
        if is_one(a):
            return b
        if is_one(b):
            return a
        if isinstance(b, Scalar):
            return self._binop("*", b, a)
        if isinstance(a, Scalar) and a.value == -1.0:
            return self._neg(b)
        if isinstance(a, Neg):
            return self._neg(self._binop("*", a.operand, b))
        if isinstance(b, Neg):
            return self._neg(self._binop("*", a, b.operand))
        if isinstance(a, Scalar) and isinstance(b, BinOp) and b.op == "*" and isinstance(b.lhs, Scalar):
            return self._binop("*", Scalar(a.value * b.lhs.value), b.rhs)
        if ta == SCALAR and isinstance(b, _CONSTRUCTORS):
            return map_children(b, lambda x: self._binop("*", a, x))
        if tb == SCALAR and isinstance(a, _CONSTRUCTORS):
            return map_children(a, lambda x: self._binop("*", x, b))
        if isinstance(a, Matrix) and isinstance(b, VectorExpr):
            return VectorExpr(
                self._sum_of_products((a.a, b.x), (a.b, b.y)),
                self._sum_of_products((a.c, b.x), (a.d, b.y)),
            )
        if isinstance(a, Matrix) and isinstance(b, Matrix):
            return Matrix(
                self._sum_of_products((a.a, b.a), (a.b, b.c)),
                self._sum_of_products((a.a, b.b), (a.b, b.d)),
                self._sum_of_products((a.c, b.a), (a.d, b.c)),
                self._sum_of_products((a.c, b.b), (a.d, b.d)),
            )
        if isinstance(a, RowVector) and isinstance(b, VectorExpr):
            return self._sum_of_products((a.x, b.x), (a.y, b.y))
        if isinstance(a, RowVector) and isinstance(b, Matrix):
            return RowVector(
                self._sum_of_products((a.x, b.a), (a.y, b.c)),
                self._sum_of_products((a.x, b.b), (a.y, b.d)),
            )
        if isinstance(a, VectorExpr) and isinstance(b, RowVector):
            return self._outer(a, VectorExpr(b.x, b.y))
        return BinOp("*", a, b)

    def _div(self, a: Expr, b: Expr) -> Expr:
        if isinstance(a, Scalar) and isinstance(b, Scalar):
            return Scalar(_fold("/", a.value, b.value))
        if is_zero(a):
            return a
        if is_one(b):
            return a
        if isinstance(b, Scalar) and abs(b.value) < EPS:
            return zero_of(self.type_of(a))
        if isinstance(a, _CONSTRUCTORS):
            return map_children(a, lambda x: self._binop("/", x, b))
        return BinOp("/", a, b)

    def _sum_of_products(self, *pairs: tuple[Expr, Expr]) -> Expr:
        terms = [self._binop("*", x, y) for x, y in pairs]
        out = terms[0]
        for term in terms[1:]:
            out = self._binop("+", out, term)
        return out

    def _dot(self, a: Expr, b: Expr) -> Expr:
        if is_zero(a) or is_zero(b):
            return Scalar(0.0)
        if isinstance(a, VectorExpr) and isinstance(b, VectorExpr):
            return self._sum_of_products((a.x, b.x), (a.y, b.y))
        return Dot(a, b)

    def _cross(self, a: Expr, b: Expr) -> Expr:
        ta, tb = self.type_of(a), self.type_of(b)
        if is_zero(a) or is_zero(b):
            return zero_of(cross_type(ta, tb))
        if isinstance(a, VectorExpr) and isinstance(b, VectorExpr):
            return self._binop("-", self._binop("*", a.x, b.y), self._binop("*", a.y, b.x))
        if ta == SCALAR and isinstance(b, VectorExpr):
            return VectorExpr(self._neg(self._binop("*", a, b.y)), self._binop("*", a, b.x))
        if isinstance(a, VectorExpr) and tb == SCALAR:
            return VectorExpr(self._binop("*", a.y, b), self._neg(self._binop("*", a.x, b)))
        return Cross(a, b)

    def _outer(self, a: Expr, b: Expr) -> Expr:
        ta, tb = self.type_of(a), self.type_of(b)
        if is_zero(a) or is_zero(b):
            return zero_of(outer_type(ta, tb))
        if isinstance(a, Block):
            return Block(tuple(self._outer(item, b) for item in a.items))
        if isinstance(b, Block):
            return Block(tuple(self._outer(a, item) for item in b.items))
        if ta == SCALAR and tb == SCALAR:
            return self._binop("*", a, b)
        if ta == SCALAR and isinstance(b, VectorExpr):
            return RowVector(self._binop("*", a, b.x), self._binop("*", a, b.y))
        if isinstance(a, VectorExpr) and tb == SCALAR:
            return VectorExpr(self._binop("*", a.x, b), self._binop("*", a.y, b))
        if isinstance(a, VectorExpr) and isinstance(b, VectorExpr):
            return Matrix(
                self._binop("*", a.x, b.x), self._binop("*", a.x, b.y),
                self._binop("*", a.y, b.x), self._binop("*", a.y, b.y),
            )
        return Outer(a, b)

    def _unit(self, a: Expr) -> Expr:
        if isinstance(a, Scalar):
            return Scalar(sign(a.value))
        if isinstance(a, VectorExpr) and is_literal(a):
            u = unit(np.array([a.x.value, a.y.value], dtype=np.float64))
            return VectorExpr(Scalar(float(u[0])), Scalar(float(u[1])))
        if isinstance(a, Unit):
            return a
        return Unit(a)

    def _magnitude(self, a: Expr) -> Expr:
        if isinstance(a, Scalar):
            return Scalar(abs(a.value))
        if isinstance(a, VectorExpr) and is_literal(a):
            return Scalar(float(np.hypot(a.x.value, a.y.value)))
        if isinstance(a, Neg):
            return self._magnitude(a.operand)
        return Magnitude(a)

    def _perp(self, a: Expr) -> Expr:
        if is_zero(a):
            return a
        if isinstance(a, VectorExpr):
            return VectorExpr(self._neg(a.y), a.x)
        if isinstance(a, Perp):
            return self._neg(a.operand)
        return Perp(a)

    def _relative(self, angle: Expr, v: Expr) -> Expr:
        if is_zero(v) or is_zero(angle):
            return v
        if isinstance(angle, Scalar) and isinstance(v, VectorExpr) and is_literal(v):
            r = rotate(angle.value, np.array([v.x.value, v.y.value], dtype=np.float64))
            return VectorExpr(Scalar(float(r[0])), Scalar(float(r[1])))
        return Relative(angle, v)


def _same_constructor(a: Expr, b: Expr) -> bool:
    if not isinstance(a, _CONSTRUCTORS) or type(a) is not type(b):
        return False
    if isinstance(a, Block):
        return len(a.items) == len(b.items)
    return True


def _zip_children(a: Expr, b: Expr, fn) -> Expr:
    if isinstance(a, VectorExpr):
        return VectorExpr(fn(a.x, b.x), fn(a.y, b.y))
    if isinstance(a, RowVector):
        return RowVector(fn(a.x, b.x), fn(a.y, b.y))
    if isinstance(a, Matrix):
        return Matrix(fn(a.a, b.a), fn(a.b, b.b), fn(a.c, b.c), fn(a.d, b.d))
    return Block(tuple(fn(x, y) for x, y in zip(a.items, b.items)))
