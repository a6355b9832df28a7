"""Objective backed by a differentiable PyTorch residual function."""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np
import torch

from .core import Array
from .objective import BoxStepMixin, Objective

TorchResidualFn = Callable[[torch.Tensor], torch.Tensor]


class TorchObjective(BoxStepMixin, Objective):
    """
    Residual objective whose Jacobian comes from ``torch.autograd``.

    The residual function receives a 1D float64 tensor and must return a
    tensor of residuals built from differentiable torch operations. The
    optimizer itself stays in NumPy; tensors are converted at this boundary.

    Parameters
    ----------
    fun:
        Residual function ``fun(theta) -> residuals``.
    parameter_size:
        Number of parameters P.
    residual_size:
        Number of residuals M; discovered from one evaluation at ``x_probe``
        (zeros by default) when omitted.
    lower, upper:
        Optional box bounds, handled as in
        :class:`~hybridfit.optimize.ResidualObjective`.
    vectorize:
        Forwarded to ``torch.autograd.functional.jacobian``.

    Example
    -------
    >>> t = torch.linspace(0.0, 1.0, 20, dtype=torch.float64)
    >>> y = 2.0 * torch.exp(-3.0 * t)
    >>> obj = TorchObjective(lambda p: p[0] * torch.exp(-p[1] * t) - y, 2)
    """

    def __init__(
        self,
        fun: TorchResidualFn,
        parameter_size: int,
        residual_size: Optional[int] = None,
        lower: Optional[Array] = None,
        upper: Optional[Array] = None,
        x_probe: Optional[Array] = None,
        vectorize: bool = False,
    ) -> None:
        if parameter_size < 1:
            raise ValueError(f"parameter_size must be >= 1, got {parameter_size}.")
        self.fun = fun
        self.vectorize = vectorize
        self._parameter_size = int(parameter_size)
        if residual_size is None:
            probe = np.zeros(parameter_size) if x_probe is None else x_probe
            residual_size = self.compute_function(np.asarray(probe, dtype=float)).size
        self._residual_size = int(residual_size)
        self._init_bounds(self._parameter_size, lower, upper)

    @property
    def parameter_size(self) -> int:
        return self._parameter_size

    @property
    def residual_size(self) -> int:
        return self._residual_size

    def _residuals(self, theta: torch.Tensor) -> torch.Tensor:
        return self.fun(theta).reshape(-1)

    def compute_function(self, parameters: Array) -> Array:
        theta = torch.as_tensor(np.asarray(parameters, dtype=float), dtype=torch.float64)
        with torch.no_grad():
            out = self._residuals(theta)
        return out.detach().cpu().numpy().astype(float)

    def compute_derivative(self, parameters: Array, residuals: Array) -> Array:
        theta = torch.as_tensor(np.asarray(parameters, dtype=float), dtype=torch.float64)
        jac = torch.autograd.functional.jacobian(
            self._residuals, theta, vectorize=self.vectorize
        )
        return (
            jac.detach()
            .cpu()
            .numpy()
            .astype(float)
            .reshape(self._residual_size, self._parameter_size)
        )


__all__ = ["TorchObjective"]
