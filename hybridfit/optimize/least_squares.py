"""Functional entry point wrapping :class:`HybridOptimizer`."""

from __future__ import annotations

from typing import Callable, Optional, Union

import numpy as np

from .core import (
    Array,
    HybridOptimizerControl,
    OptimizeResult,
    StateFlags,
    describe_state,
)
from .hybrid import HybridOptimizer
from .objective import JacobianFn, Objective, ResidualFn, ResidualObjective


def hybrid_least_squares(
    objective: Union[Objective, ResidualFn],
    x0: Array,
    control: Optional[HybridOptimizerControl] = None,
    jac: Optional[JacobianFn] = None,
    lower: Optional[Array] = None,
    upper: Optional[Array] = None,
    history: bool = False,
    callback: Optional[Callable[[HybridOptimizer], None]] = None,
) -> OptimizeResult:
    """
    Minimize ``0.5 * |f(x)|^2`` with the hybrid LM/BFGS optimizer.

    Args:
        objective: An :class:`Objective`, or a residual callable
            ``f(x) -> array`` that is wrapped in :class:`ResidualObjective`.
        x0: Initial parameters.
        control: Optimizer control; defaults to ``HybridOptimizerControl()``.
        jac: Jacobian callable, only used with a plain residual callable.
        lower, upper: Box bounds, only used with a plain residual callable.
        history: Record every accepted parameter vector (including ``x0``).
        callback: Called with the optimizer after every step.

    Returns:
        OptimizeResult describing the final accepted point.

    Raises:
        ValueError: If ``jac``/``lower``/``upper`` are given together with an
            :class:`Objective` instance.
    """
    x0 = np.asarray(x0, dtype=float).reshape(-1)
    if isinstance(objective, Objective):
        if jac is not None or lower is not None or upper is not None:
            raise ValueError("jac, lower and upper apply only to residual callables.")
        obj = objective
    else:
        obj = ResidualObjective(
            objective, x0.size, jac=jac, lower=lower, upper=upper, x_probe=x0
        )

    control = control if control is not None else HybridOptimizerControl()
    optimizer = HybridOptimizer(obj, x0, control)
    hist: list[Array] = [optimizer.parameters.copy()] if history else []

    def on_step(opt: HybridOptimizer) -> None:
        if history and opt.state & StateFlags.STEP_ACCEPTED:
            hist.append(opt.parameters.copy())
        if callback is not None:
            callback(opt)

    state = optimizer.run(callback=on_step)

    return OptimizeResult(
        x=optimizer.parameters.copy(),
        fun=0.5 * optimizer.chisq,
        chisq=optimizer.chisq,
        state=state,
        success=bool(state & StateFlags.SUCCESS),
        message=describe_state(state),
        nit=optimizer.iterations,
        nfev=optimizer.nfev,
        njev=optimizer.njev,
        method=optimizer.method,
        grad_norm=optimizer.gradient_inf_norm,
        fun_norm=optimizer.function_inf_norm,
        history=hist,
    )


__all__ = ["hybrid_least_squares"]
