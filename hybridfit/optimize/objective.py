"""Objective abstraction consumed by the hybrid least-squares optimizer.

An objective supplies residuals ``f(x)`` and the Jacobian ``J(x)`` for a
parameter vector, and may veto or adjust proposed steps through
:meth:`Objective.try_step`. Step adjustment is a simple way to keep the
optimizer inside a region where the model can be evaluated; it does not turn
the optimizer into a general constrained solver.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Union

import numpy as np

from .core import Array
from .linalg import approx_jacobian

ResidualFn = Callable[[Array], Array]
JacobianFn = Callable[[Array], Array]


@dataclass(frozen=True)
class Accepted:
    """The proposed step may be evaluated as-is."""


@dataclass(frozen=True)
class Modified:
    """The proposed step was replaced by ``parameters``."""

    parameters: Array


@dataclass(frozen=True)
class Invalid:
    """The objective refuses to evaluate the proposed point."""


StepResult = Union[Accepted, Modified, Invalid]


class Objective(ABC):
    """Residual model minimized in the least-squares sense.

    Subclasses implement :attr:`parameter_size`, :attr:`residual_size` and
    :meth:`compute_function`. :meth:`compute_derivative` falls back to a
    forward-difference Jacobian, and :meth:`try_step` accepts every step.
    Implementations must be deterministic functions of the parameters.
    """

    @property
    @abstractmethod
    def parameter_size(self) -> int:
        """Number of parameters P."""

    @property
    @abstractmethod
    def residual_size(self) -> int:
        """Number of residuals M."""

    @abstractmethod
    def compute_function(self, parameters: Array) -> Array:
        """Return the residual vector (length M) at ``parameters``."""

    def compute_derivative(self, parameters: Array, residuals: Array) -> Array:
        """Return the (M, P) Jacobian at ``parameters``.

        ``residuals`` are the values just computed at the same point; the
        default implementation reuses them for forward differences.
        """
        return approx_jacobian(self.compute_function, parameters, f0=residuals)

    def try_step(self, current: Array, proposed: Array) -> StepResult:
        """Validate or adjust a step from ``current`` to ``proposed``."""
        return Accepted()


def _as_bound(bound: Optional[Array], size: int, fill: float, name: str) -> Array:
    if bound is None:
        return np.full(size, fill)
    arr = np.broadcast_to(np.asarray(bound, dtype=float), (size,)).copy()
    if np.any(np.isnan(arr)):
        raise ValueError(f"{name} bound must not contain NaN.")
    return arr


class BoxStepMixin:
    """Projects proposed steps onto a box ``lower <= x <= upper``."""

    lower: Array
    upper: Array

    def _init_bounds(
        self, size: int, lower: Optional[Array], upper: Optional[Array]
    ) -> None:
        self.lower = _as_bound(lower, size, -np.inf, "lower")
        self.upper = _as_bound(upper, size, np.inf, "upper")
        if np.any(self.lower > self.upper):
            raise ValueError("lower bound exceeds upper bound.")

    @property
    def bounded(self) -> bool:
        return bool(np.any(np.isfinite(self.lower)) or np.any(np.isfinite(self.upper)))

    def try_step(self, current: Array, proposed: Array) -> StepResult:
        if not np.all(np.isfinite(proposed)):
            return Invalid()
        if not self.bounded:
            return Accepted()
        clipped = np.clip(proposed, self.lower, self.upper)
        if np.array_equal(clipped, proposed):
            return Accepted()
        return Modified(clipped)


class ResidualObjective(BoxStepMixin, Objective):
    """
    Objective built from plain NumPy callables.

    Parameters
    ----------
    fun:
        Residual function ``fun(x) -> f`` returning a 1D array.
    parameter_size:
        Number of parameters P.
    jac:
        Optional Jacobian ``jac(x) -> J`` with shape (M, P). Forward
        differences are used when omitted.
    residual_size:
        Number of residuals M. When omitted it is discovered by evaluating
        ``fun`` at ``x_probe`` (zeros by default).
    lower, upper:
        Optional box bounds. Proposed steps leaving the box are projected
        back onto it and reported as :class:`Modified`.
    eps:
        Relative forward-difference step used without ``jac``.
    """

    def __init__(
        self,
        fun: ResidualFn,
        parameter_size: int,
        jac: Optional[JacobianFn] = None,
        residual_size: Optional[int] = None,
        lower: Optional[Array] = None,
        upper: Optional[Array] = None,
        eps: float = 1.4901161193847656e-08,
        x_probe: Optional[Array] = None,
    ) -> None:
        if parameter_size < 1:
            raise ValueError(f"parameter_size must be >= 1, got {parameter_size}.")
        self.fun = fun
        self.jac = jac
        self.eps = eps
        self._parameter_size = int(parameter_size)
        if residual_size is None:
            probe = np.zeros(parameter_size) if x_probe is None else np.asarray(x_probe, dtype=float)
            residual_size = np.asarray(fun(probe), dtype=float).reshape(-1).size
        self._residual_size = int(residual_size)
        self._init_bounds(self._parameter_size, lower, upper)

    @property
    def parameter_size(self) -> int:
        return self._parameter_size

    @property
    def residual_size(self) -> int:
        return self._residual_size

    def compute_function(self, parameters: Array) -> Array:
        return np.asarray(self.fun(parameters), dtype=float).reshape(-1)

    def compute_derivative(self, parameters: Array, residuals: Array) -> Array:
        if self.jac is None:
            return approx_jacobian(
                self.compute_function, parameters, eps=self.eps, f0=residuals
            )
        return np.asarray(self.jac(parameters), dtype=float)


__all__ = [
    "Accepted",
    "Modified",
    "Invalid",
    "StepResult",
    "Objective",
    "BoxStepMixin",
    "ResidualObjective",
]
