# MIT License (see LICENSE)
"""
Recursive-descent parser for the constraint DSL.

Program layout::

    body a, b                        # zero or more body declarations
    scalar len = 1 -> 0              # scalar/vector parameters with an
    vector anchor = [0 1]            #   optional default and derivative
    limit len 0 inf                  # gated limit: 0 <= len <= inf
    limit 0 len                      # limit on the constraint itself
    constraint |b.position - a.position|

Expression precedence, lowest first::

    let x = e in e
    + -
    * /
    dot cross outer
    -e   unit e   relative a v   sin e ...
    number  inf  eps  name  (e)  |e|  [e]  [e e]  [e e ; e e]  {e ...}

Operands of the juxtaposed forms (vector and matrix components, block items
and ``limit`` arguments) are full expressions. Inside such a list a minus
sign with whitespace before it and none after it starts the next operand:
``[a -b]`` is a vector, ``[a - b]`` and ``[a-b]`` are perpendiculars and
``limit x -1 1`` is a gated limit over [-1, 1].
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable

from ..errors import ParseError
from ..etype import EType, SCALAR, VECTOR
from ..expr import (
    Expr, Scalar, VectorExpr, Matrix, Block, Var, Let, BinOp, Neg,
    Dot, Cross, Outer, Unit, Magnitude, Perp, Relative, Func, FUNCTIONS,
)
from .lexer import Token, tokenize


@dataclass(frozen=True)
class VariableDecl:
    """
    A ``scalar`` or ``vector`` parameter declaration.

    Attributes:
        name: Parameter name.
        etype: SCALAR or VECTOR.
        default: Initial value expression, or None for zero.
        derivative: Time derivative expression, or None for constant.
    """
    name: str
    etype: EType
    default: Expr | None = None
    derivative: Expr | None = None


@dataclass(frozen=True)
class LimitDecl:
    """``limit [gate] lower upper``; gate None limits the constraint."""
    gate: Expr | None
    lower: Expr
    upper: Expr


@dataclass(frozen=True)
class Program:
    """Parsed DSL source."""
    bodies: tuple[str, ...]
    variables: tuple[VariableDecl, ...]
    limits: tuple[LimitDecl, ...]
    constraint: Expr


_FUNCTION_TOKENS = frozenset(name.upper() for name in FUNCTIONS)

_EXPR_START = frozenset({
    "NUMBER", "NAME", "INF", "EPS", "LPAREN", "PIPE", "LBRACKET", "LBRACE",
    "MINUS", "LET", "UNIT", "RELATIVE",
}) | _FUNCTION_TOKENS

_NAMED_OPS = {"DOT": Dot, "CROSS": Cross, "OUTER": Outer}


class Parser:
    """Parser over a token list; see the module docstring for the grammar."""

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0
        # True while parsing one operand of a juxtaposed list
        self._in_list = False

    # -------------------------------------------------------------------------
    # Token helpers
    # -------------------------------------------------------------------------

    def peek(self, offset: int = 0) -> Token | None:
        pos = self.pos + offset
        if pos < len(self.tokens):
            return self.tokens[pos]
        return None

    def match(self, *expected_types: str) -> Token | None:
        token = self.peek()
        if token and token.type in expected_types:
            self.pos += 1
            return token
        return None

    def expect(self, expected_type: str, what: str | None = None) -> Token:
        token = self.match(expected_type)
        if token:
            return token
        raise self.error(f"Expected {what or expected_type}")

    def error(self, message: str) -> ParseError:
        current = self.peek()
        if current:
            return ParseError(f"{message} but got '{current.value}'", current.line, current.column)
        if self.tokens:
            last = self.tokens[-1]
            return ParseError(f"{message} but reached end of input", last.line, last.column + len(last.value))
        return ParseError(f"{message} but reached end of input")

    # -------------------------------------------------------------------------
    # Program structure
    # -------------------------------------------------------------------------

    def parse(self) -> Program:
        bodies: list[str] = []
        variables: list[VariableDecl] = []
        limits: list[LimitDecl] = []
        constraint: Expr | None = None
        in_clauses = False

        while self.peek() is not None:
            token = self.peek()
            if token.type in ("BODY", "SCALAR", "VECTOR"):
                if in_clauses:
                    raise ParseError(
                        "Declarations must precede limit and constraint clauses",
                        token.line, token.column,
                    )
                if token.type == "BODY":
                    bodies.extend(self.parse_body())
                else:
                    variables.append(self.parse_variable())
            elif token.type == "LIMIT":
                in_clauses = True
                limits.append(self.parse_limit())
            elif token.type == "CONSTRAINT":
                in_clauses = True
                self.pos += 1
                if constraint is not None:
                    raise ParseError("Duplicate 'constraint' clause", token.line, token.column)
                constraint = self.parse_expr()
            else:
                raise self.error("Expected a declaration, 'limit' or 'constraint'")

        if constraint is None:
            raise ParseError("Missing 'constraint' clause")

        return Program(tuple(bodies), tuple(variables), tuple(limits), constraint)

    def _plain_name(self) -> str:
        token = self.expect("NAME", "a name")
        if "." in token.value:
            raise ParseError(f"Declared name '{token.value}' may not contain '.'", token.line, token.column)
        return token.value

    def parse_body(self) -> list[str]:
        """Parse ``body a, b, ...``."""
        self.expect("BODY")
        names = [self._plain_name()]
        while self.match("COMMA"):
            names.append(self._plain_name())
        return names

    def parse_variable(self) -> VariableDecl:
        """Parse ``scalar|vector name [= default] [-> derivative]``."""
        kind = self.match("SCALAR", "VECTOR")
        etype = SCALAR if kind.type == "SCALAR" else VECTOR
        name = self._plain_name()
        default = self.parse_expr() if self.match("EQUALS") else None
        derivative = self.parse_expr() if self.match("ARROW") else None
        return VariableDecl(name, etype, default, derivative)

    def parse_limit(self) -> LimitDecl:
        """Parse ``limit [constraint] lower upper`` or ``limit gate lower upper``."""
        self.expect("LIMIT")
        if self.match("CONSTRAINT"):
            lower = self.parse_operand()
            upper = self.parse_operand()
            return LimitDecl(None, lower, upper)
        first = self.parse_operand()
        second = self.parse_operand()
        token = self.peek()
        if token is not None and token.type in _EXPR_START:
            return LimitDecl(first, second, self.parse_operand())
        return LimitDecl(None, first, second)

    # -------------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------------

    def parse_expr(self) -> Expr:
        if self.match("LET"):
            name = self.expect("NAME", "a name").value
            self.expect("EQUALS", "'='")
            value = self.parse_expr()
            self.expect("IN", "'in'")
            return Let(name, value, self.parse_expr())
        return self.parse_additive()

    def parse_operand(self) -> Expr:
        """Parse one operand of a juxtaposed list (components, items, limit arguments)."""
        saved, self._in_list = self._in_list, True
        try:
            return self.parse_expr()
        finally:
            self._in_list = saved

    def _nested(self, parse: Callable[[], Expr]) -> Expr:
        saved, self._in_list = self._in_list, False
        try:
            return parse()
        finally:
            self._in_list = saved

    def _minus_starts_operand(self) -> bool:
        """True for ``a -b``: whitespace before the minus, none after it."""
        token = self.peek()
        if not self._in_list or token is None or token.type != "MINUS" or self.pos == 0:
            return False
        prev = self.tokens[self.pos - 1]
        nxt = self.peek(1)
        spaced_before = prev.line != token.line or prev.column + len(prev.value) < token.column
        touching_after = nxt is not None and nxt.line == token.line and nxt.column == token.column + 1
        return spaced_before and touching_after

    def parse_additive(self) -> Expr:
        left = self.parse_multiplicative()
        while True:
            if self._minus_starts_operand():
                return left
            op = self.match("PLUS", "MINUS")
            if not op:
                return left
            left = BinOp(op.value, left, self.parse_multiplicative())

    def parse_multiplicative(self) -> Expr:
        left = self.parse_named()
        while True:
            op = self.match("STAR", "SLASH")
            if not op:
                return left
            left = BinOp(op.value, left, self.parse_named())

    def parse_named(self) -> Expr:
        left = self.parse_unary()
        while True:
            op = self.match(*_NAMED_OPS)
            if not op:
                return left
            left = _NAMED_OPS[op.type](left, self.parse_unary())

    def parse_unary(self) -> Expr:
        if self.match("MINUS"):
            return Neg(self.parse_unary())
        if self.match("UNIT"):
            return Unit(self.parse_unary())
        if self.match("RELATIVE"):
            angle = self.parse_unary()
            return Relative(angle, self.parse_unary())
        func = self.match(*_FUNCTION_TOKENS)
        if func:
            return Func(func.value, self.parse_unary())
        return self.parse_primary()

    def parse_primary(self) -> Expr:
        token = self.peek()
        if token is None:
            raise self.error("Expected an expression")

        if self.match("NUMBER"):
            return Scalar(float(token.value))
        if self.match("INF", "EPS", "NAME"):
            return Var(token.value)
        if self.match("LPAREN"):
            inner = self._nested(self.parse_expr)
            self.expect("RPAREN", "')'")
            return inner
        if self.match("PIPE"):
            inner = self._nested(self.parse_expr)
            self.expect("PIPE", "'|'")
            return Magnitude(inner)
        if self.match("LBRACKET"):
            return self.parse_bracket()
        if self.match("LBRACE"):
            items = []
            while not self.match("RBRACE"):
                if self.peek() is None:
                    raise self.error("Expected '}'")
                items.append(self.parse_operand())
            return Block(tuple(items))
        raise self.error("Expected an expression")

    def parse_bracket(self) -> Expr:
        """Parse after '[': perpendicular, vector literal or matrix literal."""
        first = self.parse_operand()
        if self.match("RBRACKET"):
            return Perp(first)
        second = self.parse_operand()
        if self.match("SEMICOLON"):
            third = self.parse_operand()
            fourth = self.parse_operand()
            self.expect("RBRACKET", "']'")
            return Matrix(first, second, third, fourth)
        self.expect("RBRACKET", "']'")
        return VectorExpr(first, second)


def parse(source: str) -> Program:
    """
    Parse DSL source into a Program.

    Raises:
        ParseError: On any lexical or syntactic error; no partial result is
            returned.
    """
    return Parser(tokenize(source)).parse()
