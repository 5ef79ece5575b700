"""Centralized logging helpers.

Provides the root handler setup used by the CLI, a small helper for building
structured ``extra`` payloads for DEBUG traces, a timer for duration fields,
and the verbosity alias mapping accepted on the command line.
"""
from __future__ import annotations

import logging
import os
import time
from enum import Enum
from typing import Any, Dict, Optional

from constants import Constants


class Verbosity(Enum):
    """Closed set of verbosity levels accepted by the CLI."""

    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# There is no TRACE level in stdlib logging; it maps to DEBUG.
_LEVELS: Dict[Verbosity, int] = {
    Verbosity.TRACE: logging.DEBUG,
    Verbosity.DEBUG: logging.DEBUG,
    Verbosity.INFO: logging.INFO,
    Verbosity.WARNING: logging.WARNING,
    Verbosity.ERROR: logging.ERROR,
    Verbosity.CRITICAL: logging.CRITICAL,
}

_ALIASES: Dict[str, Verbosity] = {
    "t": Verbosity.TRACE,
    "trace": Verbosity.TRACE,
    "d": Verbosity.DEBUG,
    "debug": Verbosity.DEBUG,
    "i": Verbosity.INFO,
    "info": Verbosity.INFO,
    "w": Verbosity.WARNING,
    "warning": Verbosity.WARNING,
    "e": Verbosity.ERROR,
    "error": Verbosity.ERROR,
    "c": Verbosity.CRITICAL,
    "critical": Verbosity.CRITICAL,
}


def parse_verbosity(value: Optional[str]) -> Verbosity:
    """Map a verbosity alias to a Verbosity; unknown input yields WARNING."""
    if not value:
        return Verbosity.WARNING
    return _ALIASES.get(value.strip().lower(), Verbosity.WARNING)


def level_from_verbosity(value: Optional[str]) -> int:
    """Map a verbosity alias (e.g. ``"d"``, ``"Info"``) to a logging level.

    Args:
        value: Alias as given on the command line or in config.

    Returns:
        A stdlib logging level; ``logging.WARNING`` for anything unrecognized.
    """
    return _LEVELS[parse_verbosity(value)]


def configure_logging(level: Optional[int] = None) -> None:
    """Install a single stream handler on the root logger.

    The level comes from ``level`` when given, else from the
    ``CSXDEPS_LOG_LEVEL`` environment variable, else the default verbosity.
    Calling this more than once does not stack handlers.
    """
    if level is None:
        level = level_from_verbosity(
            os.environ.get(Constants.ENV_LOG_LEVEL, Constants.DEFAULT_VERBOSITY)
        )
    root = logging.getLogger()
    if not any(getattr(h, "_csxdeps_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        handler._csxdeps_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level)


def add_file_handler(path: str) -> logging.Handler:
    """Attach a file handler to the root logger and return it."""
    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(Constants.FILE_LOG_FORMAT))
    logging.getLogger().addHandler(file_handler)
    return file_handler


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records from this logger would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping for structured log records.

    None values are dropped so call sites can pass optional fields freely.
    """
    return {k: v for k, v in fields.items() if v is not None}


class Timer:
    """Context manager measuring wall time in milliseconds."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
