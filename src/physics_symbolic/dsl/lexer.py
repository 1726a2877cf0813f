# MIT License (see LICENSE)
"""
Tokenizer for the constraint DSL.

A single regular expression built from TOKEN_TYPES scans the source; the
first alternative that matches wins, so longer symbols (``->``) are listed
before their prefixes (``-``). Names that collide with KEYWORDS become
keyword tokens whose type is the upper-cased word.
"""
from __future__ import annotations
import re
from dataclasses import dataclass

from ..errors import ParseError
from ..expr import FUNCTIONS

KEYWORDS = frozenset({
    "body", "scalar", "vector", "limit", "constraint",
    "let", "in", "dot", "cross", "outer", "unit", "relative",
    "inf", "eps",
    *FUNCTIONS,
})

_NAME = r"[A-Za-z_][A-Za-z0-9_]*"

TOKEN_TYPES = [
    ("COMMENT", r"#[^\n]*"),
    ("WHITESPACE", r"\s+"),
    ("NUMBER", r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"),
    ("NAME", rf"{_NAME}(?:\.{_NAME})*"),
    ("ARROW", r"->"),
    ("PLUS", r"\+"),
    ("MINUS", r"-"),
    ("STAR", r"\*"),
    ("SLASH", r"/"),
    ("EQUALS", r"="),
    ("COMMA", r","),
    ("SEMICOLON", r";"),
    ("PIPE", r"\|"),
    ("LPAREN", r"\("),
    ("RPAREN", r"\)"),
    ("LBRACKET", r"\["),
    ("RBRACKET", r"\]"),
    ("LBRACE", r"\{"),
    ("RBRACE", r"\}"),
    ("MISMATCH", r"."),
]

_token_pattern = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in TOKEN_TYPES))


@dataclass(frozen=True)
class Token:
    """Token with position tracking for error messages."""
    type: str
    value: str
    line: int = 1
    column: int = 1

    def __repr__(self) -> str:
        return f"{self.type}:{self.value}@{self.line}:{self.column}"


def tokenize(source: str) -> list[Token]:
    """
    Split DSL source into tokens, dropping whitespace and comments.

    Raises:
        ParseError: On a character that starts no token.
    """
    tokens = []
    line = 1
    line_start = 0

    for match in _token_pattern.finditer(source):
        kind = match.lastgroup
        value = match.group()
        column = match.start() - line_start + 1

        if kind == "MISMATCH":
            raise ParseError(f"Unexpected character {value!r}", line, column)
        if kind == "NAME" and value in KEYWORDS:
            kind = value.upper()
        if kind not in ("WHITESPACE", "COMMENT"):
            tokens.append(Token(kind, value, line, column))

        newlines = value.count("\n")
        if newlines:
            line += newlines
            line_start = match.start() + value.rindex("\n") + 1

    return tokens
