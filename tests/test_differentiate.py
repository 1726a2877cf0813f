import numpy as np
import pytest

from physics_symbolic.context import Context, Schema
from physics_symbolic.differentiate import partial_derivative, time_derivative
from physics_symbolic.dsl import Parser, tokenize
from physics_symbolic.errors import TypeMismatchError
from physics_symbolic.etype import MATRIX, SCALAR, VECTOR
from physics_symbolic.evaluate import evaluate, flatten
from physics_symbolic.expr import Scalar, Var
from physics_symbolic.simplify import simplify

VALUES = {
    "s": 0.7,
    "t": -1.3,
    "v": np.array([1.2, -0.4]),
    "w": np.array([0.3, 2.0]),
}

EXPRESSIONS = [
    "v + w - s * v",
    "s * t * t",
    "v dot w",
    "v cross w",
    "s cross v",
    "v cross s",
    "v outer w",
    "s outer v",
    "unit v",
    "unit (v - w)",
    "|v|",
    "|s * t|",
    "relative s v",
    "relative (s * t) (v + w)",
    "[v - w]",
    "v / |v|",
    "[s t ; t s] * v",
    "{s * v  v dot w}",
    "sin s * cos t + tan (s * 0.5)",
    "sqrt (v dot v) + exp s * ln (t * t)",
    "let d = v - w in |d| * unit d",
]

DOFS = [("s", 0), ("t", 0), ("v", 0), ("v", 1), ("w", 1)]


def expr(text):
    return Parser(tokenize(text)).parse_expr()


def make_context():
    schema = Schema()
    schema.declare("s", SCALAR)
    schema.declare("t", SCALAR)
    schema.declare("v", VECTOR)
    schema.declare("w", VECTOR)
    ctx = Context(schema)
    for name, value in VALUES.items():
        ctx.bind(name, value.copy() if isinstance(value, np.ndarray) else value)
    return ctx


def central_difference(e, ctx, var, component, h=1e-6):
    """Centered finite difference of e with respect to one degree of freedom."""
    base = ctx.value_of(var)

    def at(delta):
        if isinstance(base, np.ndarray):
            shifted = base.copy()
            shifted[component] += delta
        else:
            shifted = base + delta
        ctx.bind(var, shifted)
        return flatten(evaluate(e, ctx))

    out = (at(h) - at(-h)) / (2 * h)
    ctx.bind(var, base)
    return out


@pytest.mark.parametrize("text", EXPRESSIONS)
@pytest.mark.parametrize("var,component", DOFS)
def test_partial_derivative_matches_finite_difference(text, var, component):
    ctx = make_context()
    e = expr(text)
    numeric = central_difference(e, ctx, var, component)

    d = partial_derivative(e, ctx.schema, var, component)
    analytic = flatten(evaluate(d, ctx))
    assert np.allclose(analytic, numeric, atol=1e-5, rtol=1e-5), f"d({text})/d{var}[{component}]"

    # simplification must not change the derivative's value
    reduced = flatten(evaluate(simplify(d, ctx.schema), ctx))
    assert np.allclose(reduced, analytic, atol=1e-9)


def test_partial_derivative_of_other_symbol_is_zero():
    ctx = make_context()
    d = simplify(partial_derivative(expr("v outer v"), ctx.schema, "w", 0), ctx.schema)
    assert np.allclose(evaluate(d, ctx), np.zeros((2, 2)))


def test_partial_derivative_rejects_bad_component():
    ctx = make_context()
    with pytest.raises(ValueError):
        partial_derivative(expr("v"), ctx.schema, "v", 2)


def test_partial_derivative_rejects_non_dof_symbol():
    schema = Schema()
    schema.declare("m", MATRIX)
    with pytest.raises(TypeMismatchError):
        partial_derivative(Var("m"), schema, "m")


def body_context():
    schema = Schema()
    schema.declare_body("a")
    schema.declare("len", SCALAR, Scalar(2.0))
    ctx = Context(schema)
    ctx.bind("a.position", np.array([1.0, 2.0]))
    ctx.bind("a.velocity", np.array([-0.5, 0.25]))
    ctx.bind("a.rotation", 0.4)
    ctx.bind("a.angularVel", 1.5)
    ctx.bind("len", 1.5)
    return ctx


@pytest.mark.parametrize("text", [
    "a.position + relative a.rotation [1 0]",
    "|a.position - [1 1]|",
    "unit a.position dot [0 1] * a.rotation",
    "len * len",
    "{a.rotation  a.position * len}",
])
def test_time_derivative_matches_motion(text):
    """Follow x(t) = x0 + v t, θ(t) = θ0 + ω t, len(t) = len0 + 2 t."""
    ctx = body_context()
    e = expr(text)
    h = 1e-6
    p0, v = ctx.value_of("a.position").copy(), ctx.value_of("a.velocity")
    th0, w = ctx.value_of("a.rotation"), ctx.value_of("a.angularVel")
    l0 = ctx.value_of("len")

    def at(dt):
        ctx.bind("a.position", p0 + v * dt)
        ctx.bind("a.rotation", th0 + w * dt)
        ctx.bind("len", l0 + 2.0 * dt)
        return flatten(evaluate(e, ctx))

    numeric = (at(h) - at(-h)) / (2 * h)
    at(0.0)

    analytic = flatten(evaluate(simplify(time_derivative(e, ctx.schema), ctx.schema), ctx))
    assert np.allclose(analytic, numeric, atol=1e-5, rtol=1e-5)


def test_time_derivative_of_rotation_is_angular_velocity():
    ctx = body_context()
    d = simplify(time_derivative(expr("a.rotation - 0.3"), ctx.schema), ctx.schema)
    assert d == Var("a.angularVel")


def test_unit_of_scalar_has_zero_derivative():
    ctx = make_context()
    d = simplify(partial_derivative(expr("unit s"), ctx.schema, "s"), ctx.schema)
    assert d == Scalar(0.0)


def test_quotient_rule_near_small_divisor():
    """Divisors just above the guard threshold keep their derivative."""
    schema = Schema()
    schema.declare("x", SCALAR)
    schema.declare("y", SCALAR)
    schema.declare("v", VECTOR)
    ctx = Context(schema)
    ctx.bind("x", 1.0)
    ctx.bind("y", 1e-6)
    ctx.bind("v", np.array([3.0, -4.0]))

    dx = simplify(partial_derivative(expr("x / y"), schema, "x"), schema)
    assert evaluate(dx, ctx) == pytest.approx(1e6)

    dy = simplify(partial_derivative(expr("x / y"), schema, "y"), schema)
    assert evaluate(dy, ctx) == pytest.approx(-1e12)

    dv = simplify(partial_derivative(expr("v / y"), schema, "v", 1), schema)
    assert np.allclose(evaluate(dv, ctx), [0.0, 1e6])

    # below the threshold the guard takes over
    ctx.bind("y", 1e-12)
    assert evaluate(dx, ctx) == 0.0
