"""Tests for diagnostics helpers and debug mode."""

import numpy as np
import pytest

from hybridfit.diagnostics import (
    assert_finite,
    assert_symmetric,
    debug_context,
    is_debug_enabled,
    is_symmetric,
    set_debug_enabled,
)
from hybridfit.optimize import HybridOptimizer, StateFlags


def test_is_symmetric_and_assert() -> None:
    mat = np.array([[2.0, 1.0], [1.0, 3.0]])
    assert is_symmetric(mat)
    assert_symmetric(mat)


def test_is_symmetric_rejects_non_square_and_non_finite() -> None:
    assert not is_symmetric(np.ones((2, 3)))
    assert not is_symmetric(np.array([[np.nan, 0.0], [0.0, 1.0]]))


def test_assert_symmetric_raises_with_name() -> None:
    with pytest.raises(ValueError, match="LM Hessian"):
        assert_symmetric(np.array([[1.0, 2.0], [0.0, 1.0]]), name="LM Hessian")


def test_assert_finite_counts_bad_values() -> None:
    assert_finite(np.array([1.0, 2.0]))
    with pytest.raises(ValueError, match="2 non-finite"):
        assert_finite(np.array([np.inf, 1.0, np.nan]), name="parameters")


def test_debug_context_nested() -> None:
    """Test nested debug contexts restore the previous value."""
    original = is_debug_enabled()
    try:
        set_debug_enabled(False)
        with debug_context(True):
            assert is_debug_enabled()
            with debug_context(False):
                assert not is_debug_enabled()
            assert is_debug_enabled()
        assert not is_debug_enabled()
    finally:
        set_debug_enabled(original)


def test_optimizer_runs_with_debug_checks(rosenbrock) -> None:
    """Debug mode checks pass on a well-behaved problem."""
    with debug_context(True):
        opt = HybridOptimizer(rosenbrock, np.array([-1.2, 1.0]))
        state = opt.run()
    assert state & StateFlags.SUCCESS


def test_debug_mode_flags_asymmetric_hessian(rosenbrock) -> None:
    """A corrupted BFGS Hessian is caught only while debug mode is on."""
    opt = HybridOptimizer(rosenbrock, np.array([-1.2, 1.0]))
    opt._b[0, 1] += 1.0
    with debug_context(False):
        opt.step()
    with debug_context(True):
        with pytest.raises(ValueError, match="BFGS Hessian"):
            opt.step()
