# MIT License (see LICENSE)
"""
Exception hierarchy for the symbolic constraint compiler and runtime.

Compile-time failures all derive from CompileError so a caller can catch
the whole family at once; runtime failures raised by the solver protocol
derive directly from SymbolicError.
"""
from __future__ import annotations


class SymbolicError(Exception):
    """Base exception for all physics_symbolic errors."""


class CompileError(SymbolicError):
    """Raised when a constraint definition cannot be compiled."""


class ParseError(CompileError):
    """
    Raised on a lexical or syntactic error in DSL text.

    Attributes:
        line: 1-based line of the offending token (0 if unknown).
        column: 1-based column of the offending token (0 if unknown).
    """

    def __init__(self, message: str, line: int = 0, column: int = 0) -> None:
        self.message = message
        self.line = line
        self.column = column
        if line:
            message = f"{message} at {line}:{column}"
        super().__init__(message)


class DuplicateSymbolError(CompileError):
    """Raised when a name is declared twice in a schema."""


class UnknownSymbolError(CompileError):
    """Raised when a name is referenced but not declared (or not bound)."""


class TypeMismatchError(CompileError, TypeError):
    """Raised when operand shapes are incompatible with an operator."""


class LimitViolationError(SymbolicError):
    """Raised by validate() when a gated limit is violated."""


class UnboundBodyError(SymbolicError):
    """Raised when a declared body slot has no RigidBody2D bound to it."""


class UnknownParameterError(SymbolicError, KeyError):
    """Raised by get_*/set_* accessors for undeclared parameter names."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
