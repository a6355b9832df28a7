"""
Example: Curve fitting with hybridfit

Fits three small models with the hybrid Levenberg-Marquardt / BFGS
optimizer: an exponential decay with an analytic Jacobian, a Gaussian profile
whose width is kept positive with box bounds, and a rational model whose
Jacobian comes from PyTorch autograd.
"""

import numpy as np
import torch

from hybridfit import (
    HybridOptimizer,
    HybridOptimizerControl,
    ResidualObjective,
    StateFlags,
    TorchObjective,
    describe_state,
    hybrid_least_squares,
)


def example_exponential_decay():
    """Example: y = a * exp(-k t) with an analytic Jacobian."""
    print("=" * 60)
    print("Example 1: Exponential decay")
    print("=" * 60)

    rng = np.random.default_rng(1)
    t = np.linspace(0.0, 4.0, 40)
    y = 2.5 * np.exp(-1.3 * t) + 0.01 * rng.standard_normal(t.size)

    def residuals(p):
        return p[0] * np.exp(-p[1] * t) - y

    def jacobian(p):
        e = np.exp(-p[1] * t)
        return np.column_stack([e, -p[0] * t * e])

    result = hybrid_least_squares(residuals, [1.0, 0.5], jac=jacobian, history=True)
    print(f"State: {result.state}")
    print(f"Message: {result.message}")
    print(f"Parameters: {result.x}")
    print(f"Chi-squared: {result.chisq:.6g}")
    print(f"Accepted steps: {len(result.history) - 1}")
    print()


def example_bounded_gaussian():
    """Example: Gaussian profile with a positive width enforced by bounds."""
    print("=" * 60)
    print("Example 2: Gaussian profile with bounds")
    print("=" * 60)

    t = np.linspace(-4.0, 4.0, 60)
    y = 1.7 * np.exp(-0.5 * ((t + 0.4) / 0.8) ** 2)

    objective = ResidualObjective(
        lambda p: p[0] * np.exp(-0.5 * ((t - p[1]) / p[2]) ** 2) - y,
        parameter_size=3,
        lower=[0.0, -np.inf, 1e-3],
        x_probe=np.array([1.0, 0.0, 1.0]),
    )
    optimizer = HybridOptimizer(
        objective, np.array([1.0, 0.0, 2.0]), HybridOptimizerControl(max_iter=300)
    )
    modified = 0
    while not optimizer.state & StateFlags.FINISHED:
        state = optimizer.step()
        if state & StateFlags.STEP_MODIFIED:
            modified += 1
        if optimizer.iterations >= optimizer.control.max_iter:
            break
    print(f"Message: {describe_state(optimizer.state)}")
    print(f"Parameters: {np.asarray(optimizer.parameters)}")
    print(f"Method at exit: {optimizer.method.name}")
    print(f"Steps clipped by bounds: {modified}")
    print()


def example_torch_rational():
    """Example: y = a / (1 + b t) with autograd derivatives."""
    print("=" * 60)
    print("Example 3: Rational model with TorchObjective")
    print("=" * 60)

    t = torch.linspace(0.0, 3.0, 30, dtype=torch.float64)
    y = 4.0 / (1.0 + 2.0 * t)
    objective = TorchObjective(lambda p: p[0] / (1.0 + p[1] * t) - y, parameter_size=2)
    result = hybrid_least_squares(
        objective,
        np.array([1.0, 1.0]),
        HybridOptimizerControl(use_cholesky=False),
    )
    print(f"Message: {result.message}")
    print(f"Parameters: {result.x}")
    print(f"Iterations: {result.nit}, residual evaluations: {result.nfev}")
    print()


if __name__ == "__main__":
    example_exponential_decay()
    example_bounded_gaussian()
    example_torch_rational()
    print("Curve fitting examples completed.")
