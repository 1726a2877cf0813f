# MIT License (see LICENSE)
"""Shared logging helpers for compiler and runtime components."""
from __future__ import annotations

import logging
import os
from typing import Final

_LOG_FORMAT: Final[str] = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_LEVEL_ENV: Final[str] = "PHYSICS_SYMBOLIC_LOG_LEVEL"


def _parse_level(level_str: str | None, default: int) -> int:
    if not level_str:
        return default
    level_str = level_str.strip().upper()
    mapping = {
        "CRITICAL": logging.CRITICAL,
        "ERROR": logging.ERROR,
        "WARNING": logging.WARNING,
        "WARN": logging.WARNING,
        "INFO": logging.INFO,
        "DEBUG": logging.DEBUG,
        "NOTSET": logging.NOTSET,
    }
    return mapping.get(level_str, default)


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """Return a configured logger that emits to stderr.

    Behavior:
    - If `level` is provided it takes precedence.
    - Otherwise the `PHYSICS_SYMBOLIC_LOG_LEVEL` environment variable is
      consulted (e.g. DEBUG, INFO).
    - Falls back to INFO when unspecified.
    """
    chosen_level = level if level is not None else _parse_level(os.environ.get(_LEVEL_ENV), logging.INFO)

    logger = logging.getLogger(name)
    # Re-create handlers so repeated calls do not stack duplicates
    if logger.handlers:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(chosen_level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(chosen_level)
    logger.propagate = False
    return logger
