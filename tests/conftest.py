"""Pytest configuration and shared fixtures for hybridfit tests.

This module provides:
- Deterministic RNG fixtures for numpy and torch
- Small least-squares objectives shared across the optimizer tests
"""

import os

import numpy as np
import pytest
import torch

from hybridfit.optimize import ResidualObjective


def _seed() -> int:
    return int(os.environ.get("TEST_RNG_SEED", "0"))


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    """
    return np.random.default_rng(_seed())


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    """Seed numpy and torch global generators before every test."""
    np.random.seed(_seed())
    torch.manual_seed(_seed())


def rosenbrock_residuals(x: np.ndarray) -> np.ndarray:
    return np.array([10.0 * (x[1] - x[0] ** 2), 1.0 - x[0]])


def rosenbrock_jacobian(x: np.ndarray) -> np.ndarray:
    return np.array([[-20.0 * x[0], 10.0], [-1.0, 0.0]])


@pytest.fixture
def rosenbrock() -> ResidualObjective:
    """Rosenbrock function written as two residuals, minimum at (1, 1)."""
    return ResidualObjective(rosenbrock_residuals, 2, jac=rosenbrock_jacobian)


@pytest.fixture
def linear_objective() -> ResidualObjective:
    """Well-conditioned linear residual f(x) = J x, minimum at the origin."""
    jac = np.array([[2.0, 0.5, 0.0], [0.0, 1.5, 0.3], [0.4, 0.0, 1.0], [1.0, 1.0, 1.0]])
    return ResidualObjective(lambda x: jac @ x, 3, jac=lambda x: jac)
