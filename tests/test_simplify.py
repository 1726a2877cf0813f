import numpy as np
import pytest

from physics_symbolic.context import Context, Schema
from physics_symbolic.dsl import Parser, tokenize
from physics_symbolic.etype import SCALAR, VECTOR
from physics_symbolic.evaluate import evaluate, flatten
from physics_symbolic.expr import BinOp, Let, Scalar, Var, VectorExpr, Neg, free_vars
from physics_symbolic.simplify import simplify

EXPRESSIONS = [
    "v + [0 0]",
    "s * 2 * 3",
    "2 * (3 * v)",
    "-(-v)",
    "[s t] - [s t]",
    "[s t] dot [1 0]",
    "[s t] cross [t s]",
    "s cross [1 t]",
    "[1 t] outer [s 2]",
    "[1 2 ; 3 4] * [s t]",
    "(s outer [1 2]) * [t s]",
    "v - -w",
    "[0 0] - v",
    "|-(v + w)|",
    "unit unit v",
    "[[v]]",
    "relative 0 v + relative 0.5 [1 2]",
    "sin 0 + cos s * t",
    "let x = s * 2 in x + x",
    "{s * 1  v / 1  0 * w}",
    "2 * {s v} + {t w}",
    "v / |v| * (s - s + 1)",
]


def expr(text):
    return Parser(tokenize(text)).parse_expr()


@pytest.fixture
def ctx():
    schema = Schema()
    schema.declare("s", SCALAR)
    schema.declare("t", SCALAR)
    schema.declare("v", VECTOR)
    schema.declare("w", VECTOR)
    c = Context(schema)
    c.bind("s", 0.7)
    c.bind("t", -1.3)
    c.bind("v", np.array([1.2, -0.4]))
    c.bind("w", np.array([0.3, 2.0]))
    return c


@pytest.mark.parametrize("text", EXPRESSIONS)
def test_simplify_preserves_value(ctx, text):
    e = expr(text)
    before = flatten(evaluate(e, ctx))
    after = flatten(evaluate(simplify(e, ctx.schema), ctx))
    assert np.allclose(before, after), f"{text}: {before} != {after}"


@pytest.mark.parametrize("text", EXPRESSIONS)
def test_simplify_is_idempotent(ctx, text):
    once = simplify(expr(text), ctx.schema)
    assert simplify(once, ctx.schema) == once


def test_identity_rules(ctx):
    schema = ctx.schema
    assert simplify(expr("v + [0 0]"), schema) == Var("v")
    assert simplify(expr("v * 1"), schema) == Var("v")
    assert simplify(expr("-(-v)"), schema) == Var("v")
    assert simplify(expr("s - s"), schema) == Scalar(0.0)
    assert simplify(expr("v - v"), schema) == VectorExpr(Scalar(0.0), Scalar(0.0))
    assert simplify(expr("0 * v"), schema) == VectorExpr(Scalar(0.0), Scalar(0.0))


def test_scalar_factors_fold(ctx):
    assert simplify(expr("s * 2 * 3"), ctx.schema) == BinOp("*", Scalar(6.0), Var("s"))
    assert simplify(expr("-1 * s"), ctx.schema) == Neg(Var("s"))


def test_constructor_expansion(ctx):
    schema = ctx.schema
    assert simplify(expr("[s t] dot [1 0]"), schema) == Var("s")
    assert simplify(expr("2 * [s 1]"), schema) == VectorExpr(BinOp("*", Scalar(2.0), Var("s")), Scalar(2.0))
    assert simplify(expr("[[s t]]"), schema) == VectorExpr(Neg(Var("t")), Var("s"))


def test_literals_fold(ctx):
    schema = ctx.schema
    assert simplify(expr("|[3 4]|"), schema) == Scalar(5.0)
    assert simplify(expr("1 / 0"), schema) == Scalar(0.0)
    assert simplify(expr("unit [0 2]"), schema) == VectorExpr(Scalar(0.0), Scalar(1.0))


def test_lets_are_inlined(ctx):
    out = simplify(Let("x", Var("s"), BinOp("+", Var("x"), Var("t"))), ctx.schema)
    assert out == BinOp("+", Var("s"), Var("t"))
    assert free_vars(simplify(expr("let x = v in let y = x + w in y dot x"), ctx.schema)) == {"v", "w"}
