# MIT License (see LICENSE)
"""
Numeric constants shared by the compiler and the evaluator.

EPS doubles as the value of the DSL constant ``eps`` and as the guard
threshold for near-zero divisors and near-zero vector lengths.
"""
from __future__ import annotations
import math

# Smallest magnitude treated as non-zero by division and normalisation.
EPS: float = 1e-10

# Value of the DSL constant ``inf``.
INF: float = math.inf

# Names registered as constants in every schema, with their fixed values.
CONSTANTS: dict[str, float] = {
    "inf": INF,
    "eps": EPS,
}
