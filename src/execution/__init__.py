"""Execution cache keyed by script content hash."""

from .cache import CompileOutcome, ExecutionCache

__all__ = ["CompileOutcome", "ExecutionCache"]
