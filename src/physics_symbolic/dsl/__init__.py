# MIT License (see LICENSE)
"""
Constraint DSL front end.

This subpackage turns DSL text into a Program (declarations, limits and the
constraint expression):
    - tokenize: source -> list of Token
    - parse: source -> Program

Typical usage:
    from physics_symbolic.dsl import parse

    program = parse("body a  constraint a.rotation")
"""
from .lexer import Token, tokenize
from .parser import LimitDecl, Parser, Program, VariableDecl, parse

__all__ = [
    "Token",
    "tokenize",
    "Parser",
    "Program",
    "VariableDecl",
    "LimitDecl",
    "parse",
]
