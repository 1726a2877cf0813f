# MIT License (see LICENSE)
"""
JSON export and import for symbolic constraints and scenes.

Debug export (constraint_to_json / save_debug) dumps every simplified
expression of a compiled constraint as text:

{
  "dim": int,
  "bodies": [name, ...],
  "parameters": {name: {"type": "scalar" | "vector", "value": ...}},
  "position": str,
  "velocity": str,
  "jacobian": {"<body>.vel.x": str, "<body>.vel.y": str, "<body>.angularVel": str, ...},
  "effective_mass": str,
  "limits": [{"gate": str | null, "lower": str, "upper": str}, ...]
}

Scene files store bodies inline and constraints as DSL source plus their
bindings:

{
  "gravity": [float, float],       # Default: [0.0, -9.81]
  "dt": float,                     # Default: 1/240
  "substeps": int,                 # Default: 4
  "solver_iters": int,             # Default: 20
  "bodies": [
    {
      "shape": {"type": "circle" | "box", "radius": float, "hx": float, "hy": float},
      "mass": float,               # Required (<= 0 for static)
      "position": [x, y], "velocity": [vx, vy], "angle": float, "omega": float,
      "inertia": float             # Optional override
    }
  ],
  "constraints": [
    {
      "source": str,               # DSL text
      "bodies": {slot: int},       # Indices into bodies
      "scalars": {name: float},    # Optional parameter values
      "vectors": {name: [x, y]},
      "beta": float                # Optional, default 0.2
    }
  ]
}
"""
from __future__ import annotations
import json
from typing import TYPE_CHECKING, Any

import numpy as np

from ..constraint import SymbolicConstraint
from ..etype import SCALAR
from ..expr import format_expr
from ..types import RigidBody2D, Circle, Box

if TYPE_CHECKING:
    from ..scene import Scene


# =============================================================================
# Constraint debug export
# =============================================================================

def constraint_to_json(constraint: SymbolicConstraint) -> dict[str, Any]:
    """Serialize the compiled expressions and current parameter values."""
    p = constraint.program

    parameters = {}
    for name, etype in p.parameters.items():
        if etype == SCALAR:
            parameters[name] = {"type": "scalar", "value": constraint.get_scalar(name)}
        else:
            parameters[name] = {"type": "vector", "value": _to_list(constraint.get_vector(name))}

    jacobian = {}
    for body, offset in p.body_index.items():
        for k, label in enumerate(("vel.x", "vel.y", "angularVel")):
            jacobian[f"{body}.{label}"] = format_expr(p.jacobian[offset + k])

    limits = [
        {
            "gate": None if limit.gate is None else format_expr(limit.gate),
            "lower": format_expr(limit.lower),
            "upper": format_expr(limit.upper),
        }
        for limit in p.limits + ((p.bounds,) if p.bounds is not None else ())
    ]

    return {
        "dim": p.dim,
        "bodies": list(p.bodies),
        "parameters": parameters,
        "position": format_expr(p.position),
        "velocity": format_expr(p.velocity),
        "jacobian": jacobian,
        "effective_mass": format_expr(p.effective_mass),
        "limits": limits,
    }


def save_debug(constraint: SymbolicConstraint, path: str, indent: int = 2) -> None:
    """Write constraint_to_json() output to a file."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(constraint_to_json(constraint), f, indent=indent)


def load_constraint(path: str) -> SymbolicConstraint:
    """
    Compile a constraint from a DSL source file.

    Raises:
        FileNotFoundError: If the file cannot be found.
        CompileError: If the source does not compile.
    """
    with open(path, "r", encoding="utf-8") as f:
        return SymbolicConstraint(f.read())


# =============================================================================
# Bodies
# =============================================================================

def body_from_json(d: dict[str, Any]) -> RigidBody2D:
    """Parse a single rigid body definition."""
    if "shape" not in d:
        raise ValueError("Body definition missing required 'shape' field.")

    shape_data = d["shape"]
    shape_type = shape_data.get("type")
    if shape_type == "circle":
        radius = float(shape_data["radius"])
        if radius <= 0:
            raise ValueError(f"Circle radius must be positive, got {radius}")
        shape = Circle(radius=radius)
    elif shape_type == "box":
        hx = float(shape_data["hx"])
        hy = float(shape_data["hy"])
        if hx <= 0 or hy <= 0:
            raise ValueError(f"Box extents must be positive, got ({hx}, {hy})")
        shape = Box(half_extents=(hx, hy))
    else:
        raise ValueError(f"Unknown shape type: '{shape_type}'")

    inertia = d.get("inertia")
    return RigidBody2D(
        shape=shape,
        mass=float(d["mass"]),
        position=tuple(d.get("position", [0.0, 0.0])),
        angle=float(d.get("angle", 0.0)),
        velocity=tuple(d.get("velocity", [0.0, 0.0])),
        omega=float(d.get("omega", 0.0)),
        inertia_override=None if inertia is None else float(inertia),
    )


def body_to_json(body: RigidBody2D) -> dict[str, Any]:
    """Serialize a RigidBody2D, skipping fields at their defaults."""
    if isinstance(body.shape, Circle):
        shape_data = {"type": "circle", "radius": body.shape.radius}
    elif isinstance(body.shape, Box):
        hx, hy = body.shape.half_extents
        shape_data = {"type": "box", "hx": hx, "hy": hy}
    else:
        raise TypeError(f"Cannot serialize unknown shape type: {type(body.shape)}")

    result = {
        "shape": shape_data,
        "mass": body.mass,
        "position": _to_list(body.position),
        "velocity": _to_list(body.velocity),
    }
    if body.angle != 0.0:
        result["angle"] = body.angle
    if body.omega != 0.0:
        result["omega"] = body.omega
    if body.inertia_override is not None:
        result["inertia"] = body.inertia_override
    return result


# =============================================================================
# Scenes
# =============================================================================

def load_scene(path: str) -> "Scene":
    """
    Load a Scene with its bodies and symbolic constraints from a JSON file.

    Raises:
        ValueError: A required field is missing or a body index is invalid.
        CompileError: A constraint source does not compile.
    """
    from ..scene import Scene

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    scene = Scene(
        gravity=tuple(data.get("gravity", [0.0, -9.81])),
        dt=float(data.get("dt", 1 / 240.0)),
        substeps=int(data.get("substeps", 4)),
        solver_iters=int(data.get("solver_iters", 20)),
    )
    for body_data in data.get("bodies", []):
        scene.add_body(body_from_json(body_data))

    for c_data in data.get("constraints", []):
        c = SymbolicConstraint(c_data["source"], beta=float(c_data.get("beta", 0.2)))
        for slot, idx in c_data.get("bodies", {}).items():
            if not 0 <= idx < len(scene.bodies):
                raise ValueError(f"Constraint references invalid body index: {idx}")
            c.set_body(slot, scene.bodies[idx])
        for name, value in c_data.get("scalars", {}).items():
            c.set_scalar(name, value)
        for name, value in c_data.get("vectors", {}).items():
            c.set_vector(name, value)
        scene.add_constraint(c)

    return scene


def scene_to_json(scene: "Scene") -> dict[str, Any]:
    """Serialize a Scene; load_scene() reads the result back.

    Raises:
        ValueError: A constraint is bound to a body that is not in the scene.
    """
    result: dict[str, Any] = {
        "gravity": list(scene.gravity),
        "dt": scene.dt,
        "bodies": [body_to_json(b) for b in scene.bodies],
    }
    if scene.substeps != 4:
        result["substeps"] = scene.substeps
    if scene.solver_iters != 20:
        result["solver_iters"] = scene.solver_iters

    def get_idx(b: RigidBody2D) -> int:
        for i, other in enumerate(scene.bodies):
            if other is b:
                return i
        raise ValueError(f"Constraint is bound to body id={b.id}, which is not part of the scene")

    if scene.constraints:
        c_list = []
        for c in scene.constraints:
            entry: dict[str, Any] = {
                "source": c.program.source,
                "bodies": {
                    slot: get_idx(c.get_body(slot))
                    for slot in c.program.bodies
                    if c.get_body(slot) is not None
                },
                "beta": c.beta,
            }
            scalars = {n: c.get_scalar(n) for n, t in c.program.parameters.items() if t == SCALAR}
            vectors = {n: _to_list(c.get_vector(n)) for n, t in c.program.parameters.items() if t != SCALAR}
            if scalars:
                entry["scalars"] = scalars
            if vectors:
                entry["vectors"] = vectors
            c_list.append(entry)
        result["constraints"] = c_list

    return result


def save_scene(scene: "Scene", path: str, indent: int = 2) -> None:
    """Save a Scene instance to a JSON file on disk."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(scene_to_json(scene), f, indent=indent)


def _to_list(arr: Any) -> list[float]:
    if isinstance(arr, np.ndarray):
        return arr.tolist()
    return list(arr)
