"""Debug mode management for hybridfit."""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator

_DEBUG_ENV_VAR = "HYBRIDFIT_DEBUG"
_debug_enabled: bool = os.getenv(_DEBUG_ENV_VAR, "0").lower() in (
    "1",
    "true",
    "yes",
    "on",
)


def is_debug_enabled() -> bool:
    """
    Return whether hybridfit debug mode is currently enabled.

    Debug mode can be toggled via set_debug_enabled(...) or the
    HYBRIDFIT_DEBUG environment variable. While enabled, optimizers check
    their internal matrices and parameters after every step.

    Returns
    -------
    bool
        True if debug mode is enabled, False otherwise.
    """
    return _debug_enabled


def set_debug_enabled(enabled: bool) -> None:
    """
    Globally enable or disable hybridfit debug mode.

    Parameters
    ----------
    enabled:
        Whether to enable debug mode.
    """
    global _debug_enabled
    _debug_enabled = bool(enabled)


@contextmanager
def debug_context(enabled: bool = True) -> Iterator[None]:
    """
    Context manager to temporarily enable or disable debug mode.

    Inside the context every :meth:`HybridOptimizer.step` asserts that the LM
    and BFGS Hessians are symmetric and that the parameters are finite,
    raising ``ValueError`` otherwise.

    Example
    -------
    >>> with debug_context(True):
    ...     optimizer.step()  # ValueError if the BFGS Hessian loses symmetry
    """
    global _debug_enabled
    prev = _debug_enabled
    _debug_enabled = bool(enabled)
    try:
        yield
    finally:
        _debug_enabled = prev
