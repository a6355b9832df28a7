"""Diagnostics and debugging utilities for hybridfit."""

from .core import assert_finite, assert_symmetric, is_symmetric
from .debug_mode import (
    debug_context,
    is_debug_enabled,
    set_debug_enabled,
)

__all__ = [
    "is_symmetric",
    "assert_symmetric",
    "assert_finite",
    "is_debug_enabled",
    "set_debug_enabled",
    "debug_context",
]
