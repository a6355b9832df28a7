"""Hybrid Levenberg-Marquardt / BFGS nonlinear least squares.

Example
-------
>>> import numpy as np
>>> from hybridfit.optimize import hybrid_least_squares
>>> t = np.linspace(0.0, 1.0, 20)
>>> y = 2.0 * np.exp(-3.0 * t)
>>> res = hybrid_least_squares(lambda p: p[0] * np.exp(-p[1] * t) - y, [1.0, 1.0])
>>> np.allclose(res.x, [2.0, 3.0], atol=1e-5)
True
"""

from .core import (
    HybridOptimizerControl,
    Method,
    OptimizeResult,
    StateFlags,
    describe_state,
)
from .hybrid import HybridOptimizer
from .least_squares import hybrid_least_squares
from .linalg import (
    LDLTFactor,
    approx_jacobian,
    eigh_solve,
    ldlt_factor,
    ldlt_solve,
    solve_direction,
)
from .objective import (
    Accepted,
    Invalid,
    Modified,
    Objective,
    ResidualObjective,
    StepResult,
)
from .torch_objective import TorchObjective

__all__ = [
    "Accepted",
    "HybridOptimizer",
    "HybridOptimizerControl",
    "Invalid",
    "LDLTFactor",
    "Method",
    "Modified",
    "Objective",
    "OptimizeResult",
    "ResidualObjective",
    "StateFlags",
    "StepResult",
    "TorchObjective",
    "approx_jacobian",
    "describe_state",
    "eigh_solve",
    "hybrid_least_squares",
    "ldlt_factor",
    "ldlt_solve",
    "solve_direction",
]
