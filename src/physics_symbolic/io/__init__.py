# MIT License (see LICENSE)
"""
Input/Output utilities.

Typical usage:
    from physics_symbolic.io import load_constraint, save_debug, load_scene

    c = load_constraint("rope.dsl")
    save_debug(c, "rope.json")
"""
from .json_io import (
    constraint_to_json,
    save_debug,
    load_constraint,
    body_from_json,
    body_to_json,
    load_scene,
    scene_to_json,
    save_scene,
)

__all__ = [
    # Constraints
    "constraint_to_json",
    "save_debug",
    "load_constraint",
    # Bodies
    "body_from_json",
    "body_to_json",
    # Scenes
    "load_scene",
    "scene_to_json",
    "save_scene",
]
