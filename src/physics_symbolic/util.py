# MIT License (see LICENSE)
"""
Utility functions for vector math and numeric operations.

Provides the low-level 2D operations behind the DSL operators (perpendicular,
cross products, rotation, normalisation) plus array conversion helpers.
All functions operate on 2D vectors represented as numpy arrays of shape (2,).
"""
from __future__ import annotations

import numpy as np

from .constants import EPS


def f64(x) -> np.ndarray:
    """
    Convert any array-like to a float64 numpy array.

    Used throughout the codebase to ensure consistent numeric precision
    and allow tuple/list inputs for positions, velocities and parameters.
    """
    return np.array(x, dtype=np.float64)


def norm2(v: np.ndarray) -> float:
    """Squared magnitude of a 2D vector. Avoids sqrt for performance."""
    return float(v[0] * v[0] + v[1] * v[1])


def norm(v: np.ndarray) -> float:
    """Magnitude (length) of a 2D vector."""
    return float(np.sqrt(norm2(v)))


def unit(v: np.ndarray, eps: float = EPS) -> np.ndarray:
    """
    Return a unit (normalized) vector in the same direction as v.

    Returns zero vector if |v| < eps to avoid division by zero.
    """
    n = norm(v)
    if n < eps:
        return np.zeros(2, dtype=np.float64)
    return v / n


def sign(s: float) -> float:
    """Sign of a scalar as a float: -1.0, 0.0 or 1.0."""
    if s > 0.0:
        return 1.0
    if s < 0.0:
        return -1.0
    return 0.0


def cross2(a: np.ndarray, b: np.ndarray) -> float:
    """
    2D cross product (scalar result): a × b = ax*by - ay*bx.

    In 2D, the cross product yields a scalar representing the
    z-component of the 3D cross product (a, 0) × (b, 0).
    Positive result means b is counterclockwise from a.
    """
    return float(a[0] * b[1] - a[1] * b[0])


def cross_z_scalar_vec(z: float, v: np.ndarray) -> np.ndarray:
    """
    Cross product of z-axis scalar with 2D vector: (0, 0, z) × (vx, vy, 0).

    Result: (-z*vy, z*vx). With z = 1 this is the perpendicular of v.
    """
    return np.array([-z * v[1], z * v[0]], dtype=np.float64)


def vec_cross_z(v: np.ndarray, z: float) -> np.ndarray:
    """
    Cross product of 2D vector with z-axis scalar: (vx, vy, 0) × (0, 0, z).

    Result: (vy*z, -vx*z).
    """
    return np.array([v[1] * z, -v[0] * z], dtype=np.float64)


def rotate(angle: float, v: np.ndarray) -> np.ndarray:
    """Rotate a 2D vector counterclockwise by angle (radians)."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([v[0] * c - v[1] * s, v[0] * s + v[1] * c], dtype=np.float64)
