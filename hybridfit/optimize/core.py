"""Core state flags, control parameters and result container for the optimizer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, Flag
from typing import List

import numpy as np

Array = np.ndarray


class StateFlags(Flag):
    """Convergence, failure and per-step annotations reported by the optimizer.

    Flags combine freely: a single step can, for example, be both
    ``STEP_MODIFIED`` and ``STEP_ACCEPTED`` while also reaching
    ``SUCCESS_FTOL``. Test membership with ``&``::

        if state & StateFlags.FINISHED:
            ...
    """

    SUCCESS_FTOL = 0x001
    SUCCESS_GTOL = 0x002
    FAILURE_MINSTEP = 0x010
    FAILURE_MINTRUST = 0x020
    FAILURE_MAXITER = 0x040
    STEP_MODIFIED = 0x100
    STEP_INVALID = 0x200
    STEP_ACCEPTED = 0x400

    SUCCESS = SUCCESS_FTOL | SUCCESS_GTOL
    FAILURE = FAILURE_MINSTEP | FAILURE_MINTRUST | FAILURE_MAXITER
    FINISHED = SUCCESS | FAILURE
    TRANSIENT = STEP_MODIFIED | STEP_INVALID | STEP_ACCEPTED


class Method(Enum):
    """Algorithm currently driving the optimizer."""

    LM = "levenberg-marquardt"
    BFGS = "bfgs"


_MESSAGES = (
    (StateFlags.SUCCESS_FTOL, "Residual tolerance satisfied."),
    (StateFlags.SUCCESS_GTOL, "Gradient tolerance satisfied."),
    (StateFlags.FAILURE_MINSTEP, "Step length fell below the minimum step."),
    (StateFlags.FAILURE_MINTRUST, "Trust radius fell below the minimum step."),
    (StateFlags.FAILURE_MAXITER, "Maximum iterations reached."),
)


def describe_state(state: StateFlags) -> str:
    """Return a human-readable summary of the terminal flags in ``state``."""
    parts = [text for flag, text in _MESSAGES if state & flag]
    if not parts:
        return "Optimization in progress."
    return " ".join(parts)


@dataclass(frozen=True)
class HybridOptimizerControl:
    """
    Control parameters for :class:`~hybridfit.optimize.HybridOptimizer`.

    Args:
        min_step: Relative floor on step length and trust radius. A step ``h``
            is too small when ``|h| <= min_step * (|x| + min_step)``.
        max_iter: Maximum number of steps taken by ``run()``.
        tau: Scale of the initial Levenberg-Marquardt damping relative to the
            largest diagonal element of ``J^T J``.
        f_tol: Convergence tolerance on the infinity norm of the residuals.
        g_tol: Convergence tolerance on the infinity norm of the gradient.
        delta0: Initial BFGS trust radius.
        use_cholesky: Solve for directions with a pivoted LDL^T factorization
            (fast) instead of a rank-truncated eigendecomposition (robust).
    """

    min_step: float = 1e-8
    max_iter: int = 200
    tau: float = 1e-3
    f_tol: float = 1e-6
    g_tol: float = 1e-6
    delta0: float = 1.0
    use_cholesky: bool = True

    def __post_init__(self) -> None:
        """Validate HybridOptimizerControl invariants."""
        for name in ("min_step", "tau", "delta0"):
            value = getattr(self, name)
            if not value > 0:
                raise ValueError(f"{name} must be positive, got {value}.")
        for name in ("f_tol", "g_tol"):
            value = getattr(self, name)
            if not value >= 0:
                raise ValueError(f"{name} must be non-negative, got {value}.")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be >= 1, got {self.max_iter}.")


@dataclass
class OptimizeResult:
    """
    Summary of an optimization run.

    Attributes:
        x: Accepted parameter vector.
        fun: Objective value ``0.5 * |f(x)|^2`` at ``x``.
        chisq: ``2 * fun``.
        state: Final state flags.
        success: True if any success flag is set.
        message: Human-readable description of ``state``.
        nit: Number of steps taken.
        nfev: Number of residual evaluations.
        njev: Number of Jacobian evaluations.
        method: Method active when the run stopped.
        grad_norm: Infinity norm of the gradient at ``x``.
        fun_norm: Infinity norm of the residuals at ``x``.
        history: Accepted parameter vectors, when recorded.
    """

    x: Array
    fun: float
    chisq: float
    state: StateFlags
    success: bool
    message: str
    nit: int
    nfev: int
    njev: int
    method: Method
    grad_norm: float
    fun_norm: float
    history: List[Array] = field(default_factory=list)


__all__ = [
    "Array",
    "StateFlags",
    "Method",
    "HybridOptimizerControl",
    "OptimizeResult",
    "describe_state",
]
