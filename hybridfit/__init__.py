"""hybridfit - hybrid Levenberg-Marquardt / BFGS nonlinear least squares."""

__version__ = "0.1.0"

from .diagnostics import (
    debug_context,
    is_debug_enabled,
    set_debug_enabled,
)
from .logging import configure_logging, get_logger, set_log_level
from .optimize import (
    Accepted,
    HybridOptimizer,
    HybridOptimizerControl,
    Invalid,
    Method,
    Modified,
    Objective,
    OptimizeResult,
    ResidualObjective,
    StateFlags,
    StepResult,
    TorchObjective,
    describe_state,
    hybrid_least_squares,
)

__all__ = [
    "__version__",
    "Accepted",
    "HybridOptimizer",
    "HybridOptimizerControl",
    "Invalid",
    "Method",
    "Modified",
    "Objective",
    "OptimizeResult",
    "ResidualObjective",
    "StateFlags",
    "StepResult",
    "TorchObjective",
    "configure_logging",
    "debug_context",
    "describe_state",
    "get_logger",
    "hybrid_least_squares",
    "is_debug_enabled",
    "set_debug_enabled",
    "set_log_level",
]
