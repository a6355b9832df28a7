import numpy as np
import pytest

from hybridfit.optimize import (
    HybridOptimizerControl,
    Method,
    ResidualObjective,
    StateFlags,
    hybrid_least_squares,
)


def _decay_data():
    t = np.linspace(0.0, 4.0, 40)
    return t, 2.5 * np.exp(-1.3 * t)


def test_exponential_fit_with_analytic_jacobian():
    t, y = _decay_data()

    def residuals(p: np.ndarray) -> np.ndarray:
        return p[0] * np.exp(-p[1] * t) - y

    def jacobian(p: np.ndarray) -> np.ndarray:
        e = np.exp(-p[1] * t)
        return np.column_stack([e, -p[0] * t * e])

    res = hybrid_least_squares(residuals, [1.0, 0.5], jac=jacobian)
    assert res.success
    assert np.allclose(res.x, [2.5, 1.3], atol=1e-5)
    assert res.fun == pytest.approx(0.5 * res.chisq)
    assert "tolerance" in res.message
    assert res.nfev >= res.nit
    assert res.njev == res.nfev


def test_exponential_fit_with_finite_differences():
    t, y = _decay_data()
    res = hybrid_least_squares(lambda p: p[0] * np.exp(-p[1] * t) - y, [1.0, 0.5])
    assert res.success
    assert np.allclose(res.x, [2.5, 1.3], atol=1e-4)


def test_rosenbrock_from_standard_start(rosenbrock):
    res = hybrid_least_squares(rosenbrock, np.array([-1.2, 1.0]))
    assert res.success
    assert np.allclose(res.x, np.ones(2), atol=1e-5)
    assert res.chisq < 1e-10


def test_eigen_path_matches_cholesky_path(rosenbrock):
    fast = hybrid_least_squares(rosenbrock, np.array([-1.2, 1.0]))
    robust = hybrid_least_squares(
        rosenbrock, np.array([-1.2, 1.0]), HybridOptimizerControl(use_cholesky=False)
    )
    assert robust.success
    assert np.allclose(fast.x, robust.x, atol=1e-5)


def test_history_and_callback():
    t, y = _decay_data()
    calls = []
    res = hybrid_least_squares(
        lambda p: p[0] * np.exp(-p[1] * t) - y,
        [1.0, 0.5],
        history=True,
        callback=lambda opt: calls.append(opt.iterations),
    )
    assert np.array_equal(res.history[0], [1.0, 0.5])
    assert np.array_equal(res.history[-1], res.x)
    assert 2 <= len(res.history) <= res.nit + 1
    assert calls == list(range(1, res.nit + 1))


def test_bounds_are_respected():
    t = np.linspace(-4.0, 4.0, 60)
    y = 1.7 * np.exp(-0.5 * ((t + 0.4) / 0.8) ** 2)
    lower = np.array([0.0, -np.inf, 0.5])
    res = hybrid_least_squares(
        lambda p: p[0] * np.exp(-0.5 * ((t - p[1]) / p[2]) ** 2) - y,
        [1.0, 0.0, 2.0],
        lower=lower,
        history=True,
    )
    for point in res.history:
        assert np.all(point >= lower)
    assert res.state & StateFlags.FINISHED
    assert np.allclose(res.x, [1.7, -0.4, 0.8], atol=1e-4)


def test_nonzero_residual_problem_uses_bfgs():
    t = np.linspace(0.0, 1.0, 8)
    y = np.where(t > 0.5, 1.0, -1.0)
    methods = []
    res = hybrid_least_squares(
        lambda x: x[0] * t + x[1] - y,
        [5.0, 5.0],
        HybridOptimizerControl(g_tol=1e-14),
        callback=lambda opt: methods.append(opt.method),
    )
    assert Method.BFGS in methods
    assert res.chisq > 0.1


def test_iteration_limit_reported(rosenbrock):
    res = hybrid_least_squares(
        rosenbrock, np.array([-1.2, 1.0]), HybridOptimizerControl(max_iter=3)
    )
    assert not res.success
    assert res.state & StateFlags.FAILURE_MAXITER
    assert res.message == "Maximum iterations reached."
    assert res.nit == 3


def test_objective_rejects_callable_options(rosenbrock):
    with pytest.raises(ValueError, match="residual callables"):
        hybrid_least_squares(rosenbrock, np.zeros(2), jac=lambda x: np.eye(2))


def test_objective_instance_is_used_directly():
    obj = ResidualObjective(lambda x: x - 3.0, 2, jac=lambda x: np.eye(2))
    res = hybrid_least_squares(obj, np.zeros(2))
    assert res.success
    assert np.allclose(res.x, 3.0)
