# MIT License (see LICENSE)
"""
physics_symbolic - symbolic constraints for 2D rigid body simulation.

Constraints are written in a small DSL and compiled once: the position
constraint is simplified, differentiated in time for the velocity
constraint, and per body degree of freedom for the Jacobian, from which the
effective mass is assembled. A host solver then drives the compiled
constraint through a fixed per-step protocol.

Main entry points:
    - compile: DSL text -> SymbolicConstraint.
    - SymbolicConstraint: parameter access and the solver protocol.
    - Scene, RigidBody2D, Circle, Box: a minimal host simulation.

Submodules:
    - dsl: Tokenizer and parser.
    - expr, etype, context: Expression tree, static types, symbol tables.
    - simplify, differentiate, evaluate: Passes over expressions.
    - compiler, constraint: Compilation and runtime.
    - constraints: PGS driver.
    - io: JSON export and import.

Example:
    from physics_symbolic import Scene, RigidBody2D, Circle, compile

    scene = Scene()
    anchor = RigidBody2D(Circle(0.05), mass=0.0)
    bob = RigidBody2D(Circle(0.05), mass=1.0, position=(1.0, 0.0))
    scene.add_body(anchor); scene.add_body(bob)

    rod = compile("body a, b  scalar length = 1  constraint |b.position - a.position| - length")
    rod.set_body("a", anchor)
    rod.set_body("b", bob)
    scene.add_constraint(rod)
    scene.step()
"""
from .constraint import SymbolicConstraint, compile
from .compiler import CompiledProgram, compile_program
from .errors import (
    SymbolicError,
    CompileError,
    ParseError,
    DuplicateSymbolError,
    UnknownSymbolError,
    TypeMismatchError,
    LimitViolationError,
    UnboundBodyError,
    UnknownParameterError,
)
from .scene import Scene
from .types import RigidBody2D, Circle, Box

__all__ = [
    # Compilation
    "compile",
    "compile_program",
    "CompiledProgram",
    "SymbolicConstraint",
    # Host simulation
    "Scene",
    "RigidBody2D",
    "Circle",
    "Box",
    # Errors
    "SymbolicError",
    "CompileError",
    "ParseError",
    "DuplicateSymbolError",
    "UnknownSymbolError",
    "TypeMismatchError",
    "LimitViolationError",
    "UnboundBodyError",
    "UnknownParameterError",
]
