# MIT License (see LICENSE)
"""
Numeric evaluation of expression trees.

Value model:
    scalar      float
    vector      float64 array, shape (2,)
    row vector  float64 array, shape (1, 2)
    matrix      float64 array, shape (2, 2)
    block       tuple of values

Numerical guards (threshold EPS from constants.py):
    - division by a scalar with |d| < EPS yields zero of the numerator's shape
    - unit(v) with |v| < EPS yields the zero vector, unit(0) = 0
    - sqrt of a negative number and ln of a number below EPS yield 0

The guards make derivative expressions such as dot(v, v') / |v| well defined
at degenerate configurations instead of producing inf/nan.
"""
from __future__ import annotations
import math
from typing import Any, Union

import numpy as np

from .constants import EPS
from .context import Context
from .errors import TypeMismatchError
from .expr import (
    Expr, Scalar, VectorExpr, RowVector, Matrix, Block, Var, Let, BinOp, Neg,
    Dot, Cross, Outer, Unit, Magnitude, Perp, Relative, Func,
)
from .util import cross2, cross_z_scalar_vec, vec_cross_z, unit, norm, rotate, sign

Value = Union[float, np.ndarray, tuple]


# =============================================================================
# Value classification
# =============================================================================

def kind_of(value: Any) -> str:
    """Shape family of a runtime value: scalar, vector, row, matrix or block."""
    if isinstance(value, tuple):
        return "block"
    if isinstance(value, np.ndarray):
        if value.shape == (2,):
            return "vector"
        if value.shape == (1, 2):
            return "row"
        if value.shape == (2, 2):
            return "matrix"
        raise TypeMismatchError(f"Unsupported array shape {value.shape}")
    if isinstance(value, (int, float, np.floating, np.integer)):
        return "scalar"
    raise TypeMismatchError(f"Unsupported value type {type(value).__name__}")


def zero_like(value: Value) -> Value:
    if isinstance(value, tuple):
        return tuple(zero_like(item) for item in value)
    if isinstance(value, np.ndarray):
        return np.zeros_like(value)
    return 0.0


def _mismatch(what: str, *values: Value) -> TypeMismatchError:
    shown = ", ".join(kind_of(v) for v in values)
    return TypeMismatchError(f"Cannot apply {what} to ({shown})")


# =============================================================================
# Operators on values
# =============================================================================

def add_values(a: Value, b: Value, sign_b: float = 1.0) -> Value:
    ka, kb = kind_of(a), kind_of(b)
    if ka != kb:
        raise _mismatch("'+'" if sign_b > 0 else "'-'", a, b)
    if ka == "block":
        if len(a) != len(b):
            raise _mismatch("'+'", a, b)
        return tuple(add_values(x, y, sign_b) for x, y in zip(a, b))
    if ka == "scalar":
        return float(a) + sign_b * float(b)
    return a + sign_b * b


def scale_value(s: float, value: Value) -> Value:
    """Multiply any value by a scalar."""
    if isinstance(value, tuple):
        return tuple(scale_value(s, item) for item in value)
    if isinstance(value, np.ndarray):
        return s * value
    return s * float(value)


def mul_values(a: Value, b: Value) -> Value:
    ka, kb = kind_of(a), kind_of(b)
    if ka == "scalar":
        return scale_value(float(a), b)
    if kb == "scalar":
        return scale_value(float(b), a)
    if (ka, kb) in (("matrix", "vector"), ("matrix", "matrix"), ("row", "matrix")):
        return a @ b
    if (ka, kb) == ("row", "vector"):
        return float((a @ b)[0])
    if (ka, kb) == ("vector", "row"):
        return np.outer(a, b[0])
    raise _mismatch("'*'", a, b)


def div_values(a: Value, b: Value) -> Value:
    if kind_of(b) != "scalar":
        raise _mismatch("'/'", a, b)
    d = float(b)
    if abs(d) < EPS:
        return zero_like(a)
    if isinstance(a, tuple):
        return tuple(div_values(item, d) for item in a)
    if isinstance(a, np.ndarray):
        return a / d
    return float(a) / d


def outer_values(a: Value, b: Value) -> Value:
    if isinstance(a, tuple):
        return tuple(outer_values(item, b) for item in a)
    if isinstance(b, tuple):
        return tuple(outer_values(a, item) for item in b)
    ka, kb = kind_of(a), kind_of(b)
    if (ka, kb) == ("scalar", "scalar"):
        return float(a) * float(b)
    if (ka, kb) == ("scalar", "vector"):
        return (float(a) * b).reshape(1, 2)
    if (ka, kb) == ("vector", "scalar"):
        return a * float(b)
    if (ka, kb) == ("vector", "vector"):
        return np.outer(a, b)
    raise _mismatch("outer", a, b)


def cross_values(a: Value, b: Value) -> Value:
    ka, kb = kind_of(a), kind_of(b)
    if (ka, kb) == ("vector", "vector"):
        return cross2(a, b)
    if (ka, kb) == ("scalar", "vector"):
        return cross_z_scalar_vec(float(a), b)
    if (ka, kb) == ("vector", "scalar"):
        return vec_cross_z(a, float(b))
    raise _mismatch("cross", a, b)


def apply_func(name: str, x: float) -> float:
    if name == "sin":
        return math.sin(x)
    if name == "cos":
        return math.cos(x)
    if name == "tan":
        return math.tan(x)
    if name == "sqrt":
        return math.sqrt(x) if x > 0.0 else 0.0
    if name == "exp":
        return math.exp(x)
    if name == "ln":
        return math.log(x) if x >= EPS else 0.0
    raise TypeMismatchError(f"Unknown function '{name}'")


# =============================================================================
# Evaluation
# =============================================================================

def evaluate(e: Expr, context: Context, env: dict[str, Value] | None = None) -> Value:
    """
    Evaluate an expression bottom-up against the current bindings.

    Args:
        e: Expression to evaluate.
        context: Supplies bound values through value_of().
        env: Values of let-bound names in scope.

    Raises:
        UnknownSymbolError: A referenced symbol has no bound value.
        TypeMismatchError: Operand shapes do not fit an operator.
    """
    env = env or {}

    if isinstance(e, Scalar):
        return float(e.value)
    if isinstance(e, Var):
        if e.name in env:
            return env[e.name]
        return context.value_of(e.name)
    if isinstance(e, VectorExpr):
        return np.array([_scalar(e.x, context, env), _scalar(e.y, context, env)], dtype=np.float64)
    if isinstance(e, RowVector):
        return np.array([[_scalar(e.x, context, env), _scalar(e.y, context, env)]], dtype=np.float64)
    if isinstance(e, Matrix):
        return np.array([
            [_scalar(e.a, context, env), _scalar(e.b, context, env)],
            [_scalar(e.c, context, env), _scalar(e.d, context, env)],
        ], dtype=np.float64)
    if isinstance(e, Block):
        return tuple(evaluate(item, context, env) for item in e.items)
    if isinstance(e, Let):
        value = evaluate(e.value, context, env)
        return evaluate(e.body, context, {**env, e.name: value})
    if isinstance(e, BinOp):
        a = evaluate(e.lhs, context, env)
        b = evaluate(e.rhs, context, env)
        if e.op == "+":
            return add_values(a, b)
        if e.op == "-":
            return add_values(a, b, -1.0)
        if e.op == "*":
            return mul_values(a, b)
        if e.op == "/":
            return div_values(a, b)
        raise TypeMismatchError(f"Unknown operator '{e.op}'")
    if isinstance(e, Neg):
        return scale_value(-1.0, evaluate(e.operand, context, env))
    if isinstance(e, Dot):
        a = evaluate(e.lhs, context, env)
        b = evaluate(e.rhs, context, env)
        if kind_of(a) != "vector" or kind_of(b) != "vector":
            raise _mismatch("dot", a, b)
        return float(a[0] * b[0] + a[1] * b[1])
    if isinstance(e, Cross):
        return cross_values(evaluate(e.lhs, context, env), evaluate(e.rhs, context, env))
    if isinstance(e, Outer):
        return outer_values(evaluate(e.lhs, context, env), evaluate(e.rhs, context, env))
    if isinstance(e, Unit):
        v = evaluate(e.operand, context, env)
        k = kind_of(v)
        if k == "scalar":
            return sign(float(v))
        if k == "vector":
            return unit(v)
        raise _mismatch("unit", v)
    if isinstance(e, Magnitude):
        v = evaluate(e.operand, context, env)
        k = kind_of(v)
        if k == "scalar":
            return abs(float(v))
        if k == "vector":
            return norm(v)
        raise _mismatch("magnitude", v)
    if isinstance(e, Perp):
        v = evaluate(e.operand, context, env)
        if kind_of(v) != "vector":
            raise _mismatch("perpendicular", v)
        return cross_z_scalar_vec(1.0, v)
    if isinstance(e, Relative):
        angle = evaluate(e.angle, context, env)
        v = evaluate(e.vector, context, env)
        if kind_of(angle) != "scalar" or kind_of(v) != "vector":
            raise _mismatch("relative", angle, v)
        return rotate(float(angle), v)
    if isinstance(e, Func):
        return apply_func(e.name, _scalar(e.operand, context, env))
    raise TypeError(f"Unknown expression node: {type(e)}")


def _scalar(e: Expr, context: Context, env: dict[str, Value]) -> float:
    v = evaluate(e, context, env)
    if kind_of(v) != "scalar":
        raise _mismatch("scalar component", v)
    return float(v)


# =============================================================================
# Flattening
# =============================================================================

def flatten(value: Value) -> np.ndarray:
    """
    Flatten a value into a 1D float64 array.

    Scalars give one float, vectors give x then y, rows and matrices are
    read row-major, and blocks concatenate their items depth-first.
    """
    if isinstance(value, tuple):
        if not value:
            return np.zeros(0, dtype=np.float64)
        return np.concatenate([flatten(item) for item in value])
    if isinstance(value, np.ndarray):
        return value.astype(np.float64).ravel()
    return np.array([float(value)], dtype=np.float64)


def assemble(value: Value, vertical: bool = True) -> np.ndarray:
    """
    Assemble a value into a 2D array.

    Block items are stacked vertically at the top level and the orientation
    alternates at each nesting level, so a block of blocks reads as a matrix
    of rows. Vectors are columns and row vectors are rows wherever they
    appear.
    """
    if isinstance(value, tuple):
        parts = [assemble(item, not vertical) for item in value]
        if not parts:
            return np.zeros((0, 0), dtype=np.float64)
        return np.vstack(parts) if vertical else np.hstack(parts)
    k = kind_of(value)
    if k == "scalar":
        return np.array([[float(value)]], dtype=np.float64)
    if k == "vector":
        return value.reshape(2, 1).astype(np.float64)
    return value.astype(np.float64)
