import pytest

from physics_symbolic.dsl import Parser, parse, tokenize
from physics_symbolic.errors import ParseError
from physics_symbolic.etype import SCALAR, VECTOR
from physics_symbolic.expr import (
    BinOp, Block, Dot, Func, Let, Magnitude, Matrix, Neg, Perp, Relative,
    Scalar, Unit, Var, VectorExpr, format_expr,
)


def expr(text):
    return Parser(tokenize(text)).parse_expr()


def test_tokenize_keywords_names_and_comments():
    tokens = tokenize("body a, b # two bodies\nconstraint |b.position - a.position|")
    assert [t.type for t in tokens] == [
        "BODY", "NAME", "COMMA", "NAME",
        "CONSTRAINT", "PIPE", "NAME", "MINUS", "NAME", "PIPE",
    ]
    assert tokens[6].value == "b.position"
    # positions are 1-based
    assert (tokens[4].line, tokens[4].column) == (2, 1)


def test_tokenize_arrow_and_numbers():
    tokens = tokenize("scalar x = 1.5e-3 -> -2")
    assert [t.type for t in tokens] == ["SCALAR", "NAME", "EQUALS", "NUMBER", "ARROW", "MINUS", "NUMBER"]
    assert tokens[3].value == "1.5e-3"


def test_tokenize_rejects_unknown_character():
    with pytest.raises(ParseError) as exc:
        tokenize("body a\nconstraint a.rotation $")
    assert exc.value.line == 2
    assert exc.value.column == 23
    assert "2:23" in str(exc.value)


def test_precedence():
    assert expr("1 + 2 * 3") == BinOp("+", Scalar(1.0), BinOp("*", Scalar(2.0), Scalar(3.0)))
    assert expr("a - b - c") == BinOp("-", BinOp("-", Var("a"), Var("b")), Var("c"))
    # named products bind tighter than * and /
    assert expr("a dot b * 2") == BinOp("*", Dot(Var("a"), Var("b")), Scalar(2.0))
    assert expr("-a dot b") == Dot(Neg(Var("a")), Var("b"))
    assert expr("sin x * y") == BinOp("*", Func("sin", Var("x")), Var("y"))


def test_bracket_forms():
    assert expr("[a]") == Perp(Var("a"))
    assert expr("[1 2]") == VectorExpr(Scalar(1.0), Scalar(2.0))
    assert expr("[1 2 ; 3 4]") == Matrix(Scalar(1.0), Scalar(2.0), Scalar(3.0), Scalar(4.0))
    assert expr("{1 [1 2] x}") == Block((Scalar(1.0), VectorExpr(Scalar(1.0), Scalar(2.0)), Var("x")))


def test_detached_minus_starts_next_operand():
    a_minus_b = BinOp("-", Var("a"), Var("b"))
    assert expr("[a -b]") == VectorExpr(Var("a"), Neg(Var("b")))
    assert expr("[a (-b)]") == VectorExpr(Var("a"), Neg(Var("b")))
    # spaced or tight minus is still subtraction
    assert expr("[a - b]") == Perp(a_minus_b)
    assert expr("[a-b]") == Perp(a_minus_b)
    assert expr("[(a -b)]") == Perp(a_minus_b)
    assert expr("[|a -b| c]") == VectorExpr(Magnitude(a_minus_b), Var("c"))
    assert expr("{a -b  c}") == Block((Var("a"), Neg(Var("b")), Var("c")))
    assert expr("[1 -2 ; -3 4]") == Matrix(Scalar(1.0), Neg(Scalar(2.0)), Neg(Scalar(3.0)), Scalar(4.0))
    # outside a list the minus is binary
    assert expr("a -b") == a_minus_b


def test_negative_limit_bounds():
    (limit,) = parse("scalar x\nlimit x -1 1\nconstraint x").limits
    assert limit.gate == Var("x")
    assert limit.lower == Neg(Scalar(1.0))
    assert limit.upper == Scalar(1.0)

    (limit,) = parse("scalar x\nlimit -1 -0.5\nconstraint x").limits
    assert limit.gate is None
    assert limit.lower == Neg(Scalar(1.0))
    assert limit.upper == Neg(Scalar(0.5))

    (limit,) = parse("scalar x\nlimit x - 1 0 2\nconstraint x").limits
    assert limit.gate == BinOp("-", Var("x"), Scalar(1.0))


def test_unary_operators():
    assert expr("|v|") == Magnitude(Var("v"))
    assert expr("unit v") == Unit(Var("v"))
    assert expr("relative r.rotation [1 0]") == Relative(
        Var("r.rotation"), VectorExpr(Scalar(1.0), Scalar(0.0))
    )
    assert expr("inf") == Var("inf")
    assert expr("let x = 1 in x + 1") == Let("x", Scalar(1.0), BinOp("+", Var("x"), Scalar(1.0)))


def test_parse_program():
    program = parse("""
        body a, b
        scalar len = 2 -> 0
        vector anchor = [0 1]
        limit len 0 inf
        limit constraint 0 len
        constraint |b.position - a.position|
    """)
    assert program.bodies == ("a", "b")
    assert [v.name for v in program.variables] == ["len", "anchor"]
    length = program.variables[0]
    assert length.etype == SCALAR
    assert length.default == Scalar(2.0)
    assert length.derivative == Scalar(0.0)
    assert program.variables[1].etype == VECTOR
    assert program.variables[1].derivative is None

    gated, bounds = program.limits
    assert gated.gate == Var("len")
    assert gated.upper == Var("inf")
    assert bounds.gate is None
    assert bounds.upper == Var("len")
    assert program.constraint == Magnitude(BinOp("-", Var("b.position"), Var("a.position")))


def test_two_expression_limit_targets_constraint():
    program = parse("body a limit 5 5 constraint a.rotation")
    (limit,) = program.limits
    assert limit.gate is None
    assert limit.lower == Scalar(5.0)


def test_missing_constraint():
    with pytest.raises(ParseError, match="Missing 'constraint'"):
        parse("body a\nscalar x = 1")


def test_duplicate_constraint():
    with pytest.raises(ParseError, match="Duplicate"):
        parse("body a constraint a.rotation constraint a.rotation")


def test_declaration_after_constraint():
    with pytest.raises(ParseError, match="precede"):
        parse("constraint 1 body a")


def test_unclosed_bracket_reports_end_of_input():
    with pytest.raises(ParseError, match="end of input"):
        parse("constraint [1 2")


def test_dotted_declaration_rejected():
    with pytest.raises(ParseError):
        parse("scalar a.b constraint 1")


def test_format_expr_round_trips():
    for text in [
        "a - (b - c)",
        "-(-a)",
        "a dot b * 2",
        "relative r [1 0]",
        "|a - b| / 2",
        "{x [1 2] [a]}",
        "let x = 1 in x + y",
    ]:
        e = expr(text)
        assert expr(format_expr(e)) == e, text
