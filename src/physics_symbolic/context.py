# MIT License (see LICENSE)
"""
Symbol tables for compiled constraints.

The environment is split in two parts with different lifetimes:

- Schema: name -> (type, derivative). Built while compiling, then frozen.
  Everything the simplifier and differentiator need lives here.
- Context: a schema plus a mutable name -> value table. The runtime rebinds
  values between solver phases and the evaluator reads them.

Declaring a body registers six symbols::

    <body>.position    vector   d/dt = <body>.velocity
    <body>.velocity    vector
    <body>.rotation    scalar   d/dt = <body>.angularVel
    <body>.angularVel  scalar
    <body>#imass       scalar   (inverse mass, solver only)
    <body>#iinertia    scalar   (inverse inertia, solver only)
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterator

from .errors import CompileError, DuplicateSymbolError, UnknownSymbolError
from .etype import EType, SCALAR, VECTOR, zero_of
from .expr import Expr, Var


@dataclass(frozen=True)
class Symbol:
    """
    A declared name.

    Attributes:
        name: Fully qualified name (e.g. ``a.position``).
        etype: Static type.
        derivative: Time derivative expression, or None for constants.
    """
    name: str
    etype: EType
    derivative: Expr | None = None


def body_symbol(body: str, suffix: str) -> str:
    """Name of one of a body's symbols, e.g. body_symbol("a", "position")."""
    if suffix in ("imass", "iinertia"):
        return f"{body}#{suffix}"
    return f"{body}.{suffix}"


class Schema:
    """
    Ordered, freezable table of declared symbols.

    Enumeration order is declaration order; Jacobian columns follow the
    order of bodies().
    """

    def __init__(self) -> None:
        self._symbols: dict[str, Symbol] = {}
        self._bodies: list[str] = []
        self._frozen = False

    def declare(self, name: str, etype: EType, derivative: Expr | None = None) -> Symbol:
        """
        Register a symbol.

        Raises:
            DuplicateSymbolError: The name is already declared.
            CompileError: The schema is frozen.
        """
        if self._frozen:
            raise CompileError(f"Cannot declare '{name}': schema is frozen")
        if name in self._symbols or name in self._bodies:
            raise DuplicateSymbolError(f"Symbol '{name}' is already declared")
        sym = Symbol(name, etype, derivative)
        self._symbols[name] = sym
        return sym

    def declare_body(self, body: str) -> None:
        """Register a body and its six derived symbols."""
        if body in self._bodies or body in self._symbols:
            raise DuplicateSymbolError(f"Body '{body}' is already declared")
        position = body_symbol(body, "position")
        if position in self._symbols:
            raise DuplicateSymbolError(f"Symbol '{position}' is already declared")
        self.declare(position, VECTOR, Var(body_symbol(body, "velocity")))
        self.declare(body_symbol(body, "velocity"), VECTOR)
        self.declare(body_symbol(body, "rotation"), SCALAR, Var(body_symbol(body, "angularVel")))
        self.declare(body_symbol(body, "angularVel"), SCALAR)
        self.declare(body_symbol(body, "imass"), SCALAR)
        self.declare(body_symbol(body, "iinertia"), SCALAR)
        self._bodies.append(body)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def bodies(self) -> tuple[str, ...]:
        return tuple(self._bodies)

    def names(self) -> tuple[str, ...]:
        return tuple(self._symbols)

    def symbol(self, name: str) -> Symbol:
        try:
            return self._symbols[name]
        except KeyError:
            raise UnknownSymbolError(f"Unknown symbol '{name}'") from None

    def type_of(self, name: str) -> EType:
        return self.symbol(name).etype

    def derivative_of(self, name: str) -> Expr:
        """
        Time derivative of a symbol.

        Symbols declared without a derivative are constant in time, so the
        result is a zero literal of the symbol's type.
        """
        sym = self.symbol(name)
        if sym.derivative is None:
            return zero_of(sym.etype)
        return sym.derivative

    def __contains__(self, name: object) -> bool:
        return name in self._symbols

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self._symbols.values())

    def __len__(self) -> int:
        return len(self._symbols)


@dataclass
class Context:
    """
    A schema together with the current value of each bound symbol.

    Values are floats for scalars and float64 arrays for vectors; see
    evaluate.py for the full value model.
    """
    schema: Schema
    bindings: dict[str, Any] = field(default_factory=dict)

    def bind(self, name: str, value: Any) -> None:
        """Overwrite the value bound to a declared symbol."""
        if name not in self.schema:
            raise UnknownSymbolError(f"Cannot bind undeclared symbol '{name}'")
        self.bindings[name] = value

    def value_of(self, name: str) -> Any:
        try:
            return self.bindings[name]
        except KeyError:
            if name not in self.schema:
                raise UnknownSymbolError(f"Unknown symbol '{name}'") from None
            raise UnknownSymbolError(f"Symbol '{name}' has no bound value") from None
