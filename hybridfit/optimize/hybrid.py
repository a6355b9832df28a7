"""Hybrid Levenberg-Marquardt / BFGS optimizer for nonlinear least squares.

The optimizer minimizes ``Q(x) = 0.5 * |f(x)|^2`` and switches between two
methods as the iteration proceeds:

* Levenberg-Marquardt (LM), damping the Gauss-Newton Hessian ``J^T J`` with
  ``mu`` on the diagonal, is used while residuals are large and the
  Gauss-Newton model is good.
* BFGS with an explicit trust radius ``delta`` takes over when LM stalls near
  a minimum with non-zero residuals, where ``J^T J`` underestimates the true
  Hessian.

A secant approximation of the full Hessian is maintained on every evaluated
step regardless of the active method, so BFGS starts with useful curvature
information.

References:
    - Madsen, Nielsen & Tingleff, *Methods for Non-Linear Least Squares
      Problems*, 2nd ed. (2004), section 3.5.
    - Nocedal & Wright, *Numerical Optimization* (2006), chapters 4 and 6.
"""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np

from hybridfit.diagnostics import assert_finite, assert_symmetric, is_debug_enabled
from hybridfit.logging import get_logger

from .core import Array, HybridOptimizerControl, Method, StateFlags
from .linalg import solve_direction
from .objective import Invalid, Modified, Objective

logger = get_logger(__name__)

_SQRT_EPS = float(np.sqrt(np.finfo(float).eps))


def _readonly(arr: Array) -> Array:
    view = arr.view()
    view.flags.writeable = False
    return view


def _inf_norm(vec: Array) -> float:
    return float(np.max(np.abs(vec))) if vec.size else 0.0


class HybridOptimizer:
    """
    Stateful hybrid LM/BFGS least-squares optimizer.

    Parameters
    ----------
    objective:
        Supplies residuals, Jacobian and step validation.
    parameters:
        Initial parameter vector of length ``objective.parameter_size``.
    control:
        Control parameters; defaults to ``HybridOptimizerControl()``.

    Example
    -------
    >>> import numpy as np
    >>> from hybridfit.optimize import HybridOptimizer, ResidualObjective, StateFlags
    >>> obj = ResidualObjective(lambda x: np.array([x[0] - 1.0, 10 * (x[1] - x[0] ** 2)]), 2)
    >>> opt = HybridOptimizer(obj, np.array([-1.2, 1.0]))
    >>> bool(opt.run() & StateFlags.SUCCESS)
    True

    Once any terminal flag (``StateFlags.FINISHED``) is set, further calls to
    :meth:`step` and :meth:`run` do nothing and return the frozen state. To
    continue, build a new optimizer from :attr:`parameters`.
    """

    def __init__(
        self,
        objective: Objective,
        parameters: Array,
        control: Optional[HybridOptimizerControl] = None,
    ) -> None:
        self._objective = objective
        self._control = control if control is not None else HybridOptimizerControl()
        self._n_params = int(objective.parameter_size)
        self._n_residuals = int(objective.residual_size)

        x = np.array(parameters, dtype=float).reshape(-1)
        if x.size != self._n_params:
            raise ValueError(
                f"Expected {self._n_params} parameters, got {x.size}."
            )

        self._method = Method.LM
        self._state = StateFlags(0)
        self._count = 0
        self._rank = self._n_params
        self._nit = 0
        self._nfev = 0
        self._njev = 0

        self._x = x
        self._x_new = x.copy()
        self._f = self._evaluate_function(x)
        self._f_new = self._f.copy()
        self._jac = self._evaluate_derivative(x, self._f)
        self._jac_new = self._jac.copy()
        self._q = 0.5 * float(self._f @ self._f)
        self._q_new = self._q
        self._h = np.zeros(self._n_params)

        self._g = self._jac.T @ self._f
        self._g_new = np.zeros(self._n_params)
        self._norm_inf_f = _inf_norm(self._f)
        self._norm_inf_g = _inf_norm(self._g)

        self._a = self._jac.T @ self._jac
        self._mu = self._control.tau * _inf_norm(np.diag(self._a))
        self._a[np.diag_indices_from(self._a)] += self._mu
        self._b = np.eye(self._n_params)
        self._nu = 2.0
        self._delta = self._control.delta0

        logger.debug(
            "Initialized with P=%d, M=%d, chisq=%g, mu=%g",
            self._n_params,
            self._n_residuals,
            2.0 * self._q,
            self._mu,
        )

    # ------------------------------------------------------------------
    # Objective evaluation
    # ------------------------------------------------------------------

    def _evaluate_function(self, x: Array) -> Array:
        f = np.asarray(self._objective.compute_function(x.copy()), dtype=float).reshape(-1)
        if f.size != self._n_residuals:
            raise ValueError(
                f"Objective returned {f.size} residuals, expected {self._n_residuals}."
            )
        self._nfev += 1
        return f

    def _evaluate_derivative(self, x: Array, f: Array) -> Array:
        jac = np.asarray(
            self._objective.compute_derivative(x.copy(), f.copy()), dtype=float
        )
        expected = (self._n_residuals, self._n_params)
        if jac.shape != expected:
            raise ValueError(
                f"Objective returned Jacobian of shape {jac.shape}, expected {expected}."
            )
        self._njev += 1
        return jac

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def _check_step(self, length: float, failure: StateFlags) -> bool:
        """Flag ``failure`` unless ``length`` clears the relative minimum step."""
        min_step = self._control.min_step
        floor = min_step * (float(np.linalg.norm(self._x)) + min_step)
        if not length > floor:
            self._state |= failure
            logger.info("%s: length %g <= floor %g", failure.name, length, floor)
            return False
        return True

    def _solve(self) -> Array:
        mat = self._a if self._method is Method.LM else self._b
        try:
            h, self._rank = solve_direction(mat, self._g, self._control.use_cholesky)
        except np.linalg.LinAlgError as exc:
            logger.warning("Direction solve failed: %s", exc)
            h = np.full(self._n_params, np.nan)
        if not np.all(np.isfinite(h)):
            logger.warning("Non-finite direction with method %s", self._method.name)
        return h

    def _rebuild_lm_hessian(self, jac: Array) -> None:
        self._a = jac.T @ jac
        self._a[np.diag_indices_from(self._a)] += self._mu

    def step(self) -> StateFlags:
        """Take one iteration and return the updated state flags."""
        if self._state & StateFlags.FINISHED:
            logger.debug("step() called on finished optimizer: %s", self._state)
            return self._state

        self._state &= ~StateFlags.TRANSIENT
        self._nit += 1
        is_better = False
        should_switch = False

        h = self._solve()
        norm_h = float(np.linalg.norm(h))
        if not self._check_step(norm_h, StateFlags.FAILURE_MINSTEP):
            return self._state
        if self._method is Method.BFGS and norm_h > self._delta:
            h *= self._delta / norm_h
            norm_h = self._delta

        x_new = self._x + h
        result = self._objective.try_step(self._x.copy(), x_new.copy())
        evaluable = True
        if isinstance(result, Modified):
            self._state |= StateFlags.STEP_MODIFIED
            x_new = np.array(result.parameters, dtype=float).reshape(-1)
            if x_new.size != self._n_params:
                raise ValueError(
                    f"Modified step has {x_new.size} parameters, expected {self._n_params}."
                )
            h = x_new - self._x
            norm_h = float(np.linalg.norm(h))
        elif isinstance(result, Invalid):
            self._state |= StateFlags.STEP_INVALID
            self._q_new = np.inf
            evaluable = False
        self._h = h
        self._x_new = x_new
        if isinstance(result, Modified) and not self._check_step(
            norm_h, StateFlags.FAILURE_MINSTEP
        ):
            return self._state

        norm_inf_g_new = 0.0
        if evaluable:
            self._f_new = self._evaluate_function(x_new)
            self._q_new = 0.5 * float(self._f_new @ self._f_new)
            self._jac_new = self._evaluate_derivative(x_new, self._f_new)
            # Always needed by the secant update below, even on LM rejections.
            self._g_new = self._jac_new.T @ self._f_new
            norm_inf_g_new = _inf_norm(self._g_new)

        q, q_new = self._q, self._q_new
        if self._method is Method.BFGS:
            is_better = q_new < q or (
                q_new <= (1.0 + _SQRT_EPS) * q and norm_inf_g_new < self._norm_inf_g
            )
            should_switch = evaluable and norm_inf_g_new >= self._norm_inf_g
            if q_new < q:
                jh = self._jac @ h
                predicted = -(float(h @ self._g) + 0.5 * float(jh @ jh))
                rho = (q - q_new) / predicted if predicted > 0 else 0.0
                if rho > 0.75:
                    self._delta = max(self._delta, 3.0 * norm_h)
                elif rho < 0.25:
                    self._delta /= 2.0
                    if not self._check_step(self._delta, StateFlags.FAILURE_MINTRUST):
                        return self._state
            else:
                self._delta /= 2.0
                if not self._check_step(self._delta, StateFlags.FAILURE_MINTRUST):
                    return self._state
        elif q_new < q:
            is_better = True
            predicted = -0.5 * float(h @ (self._g - self._mu * h))
            rho = (q - q_new) / predicted if predicted > 0 else 0.0
            # Any rho >= 1 already gives the 1/3 floor.
            self._mu *= max(1.0 / 3.0, 1.0 - (2.0 * min(rho, 1.0) - 1.0) ** 3)
            self._nu = 2.0
            if max(norm_inf_g_new, q - q_new) < 0.02 * q_new:
                self._count += 1
                should_switch = self._count == 3
            else:
                self._count = 0
            if not should_switch:
                self._rebuild_lm_hessian(self._jac_new)
        else:
            self._a[np.diag_indices_from(self._a)] += self._mu * (self._nu - 1.0)
            self._mu *= self._nu
            self._nu *= 2.0
            should_switch = self._nu >= 32.0

        if not evaluable:
            logger.debug("Invalid step; mu=%g delta=%g", self._mu, self._delta)
            return self._state

        y = self._jac_new.T @ (self._jac_new @ h) + (self._g_new - self._g)
        hy = float(h @ y)
        if hy > 0.0:
            v = self._b @ h
            hv = float(h @ v)
            self._b += np.outer(y, y) / hy - np.outer(v, v) / hv
        else:
            logger.debug("Skipping BFGS update: h.y = %g", hy)

        if is_better:
            self._x = x_new.copy()
            self._f = self._f_new.copy()
            self._q = q_new
            self._jac = self._jac_new.copy()
            self._g = self._g_new.copy()
            self._norm_inf_f = _inf_norm(self._f)
            self._norm_inf_g = norm_inf_g_new
            if not self._norm_inf_f > self._control.f_tol:
                self._state |= StateFlags.SUCCESS_FTOL
            if not self._norm_inf_g > self._control.g_tol:
                self._state |= StateFlags.SUCCESS_GTOL
            self._state |= StateFlags.STEP_ACCEPTED

        if should_switch:
            self._switch_method(norm_h)

        logger.debug(
            "%s step %d: chisq=%g trial=%g accepted=%s mu=%g delta=%g rank=%d",
            self._method.name,
            self._nit,
            2.0 * self._q,
            2.0 * self._q_new,
            is_better,
            self._mu,
            self._delta,
            self._rank,
        )
        if is_debug_enabled():
            assert_symmetric(self._a, name="LM Hessian")
            assert_symmetric(self._b, name="BFGS Hessian")
            assert_finite(self._x, name="parameters")
        return self._state

    def _switch_method(self, norm_h: float) -> None:
        if self._method is Method.BFGS:
            self._rebuild_lm_hessian(self._jac)
            self._method = Method.LM
        else:
            min_step = self._control.min_step
            floor = min_step * (float(np.linalg.norm(self._x)) + min_step)
            self._delta = max(1.5 * floor, 0.2 * norm_h)
            self._count = 0
            self._method = Method.BFGS
        logger.info(
            "Switched to %s at chisq=%g (mu=%g, delta=%g)",
            self._method.name,
            2.0 * self._q,
            self._mu,
            self._delta,
        )

    def run(
        self, callback: Optional[Callable[["HybridOptimizer"], None]] = None
    ) -> StateFlags:
        """Iterate until a terminal flag is set or ``max_iter`` steps are taken.

        ``callback``, if given, is called with the optimizer after every step.
        """
        if self._state & StateFlags.FINISHED:
            return self._state
        for _ in range(self._control.max_iter):
            self.step()
            if callback is not None:
                callback(self)
            if self._state & StateFlags.FINISHED:
                logger.info("Finished after %d steps: %s", self._nit, self._state)
                return self._state
        self._state |= StateFlags.FAILURE_MAXITER
        logger.info("No convergence after %d steps", self._control.max_iter)
        return self._state

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def objective(self) -> Objective:
        return self._objective

    @property
    def control(self) -> HybridOptimizerControl:
        return self._control

    @property
    def method(self) -> Method:
        return self._method

    @property
    def state(self) -> StateFlags:
        return self._state

    @property
    def chisq(self) -> float:
        """``2 * Q`` at the accepted parameters."""
        return 2.0 * self._q

    @property
    def trial_chisq(self) -> float:
        """``2 * Q`` at the last trial point (infinite after an invalid step)."""
        return 2.0 * self._q_new

    @property
    def parameters(self) -> Array:
        return _readonly(self._x)

    @property
    def trial_parameters(self) -> Array:
        return _readonly(self._x_new)

    @property
    def last_step(self) -> Array:
        """Step ``h`` from the start of the last iteration to its trial point."""
        return _readonly(self._h)

    @property
    def residuals(self) -> Array:
        return _readonly(self._f)

    @property
    def trial_residuals(self) -> Array:
        return _readonly(self._f_new)

    @property
    def gradient(self) -> Array:
        return _readonly(self._g)

    @property
    def function_inf_norm(self) -> float:
        return self._norm_inf_f

    @property
    def gradient_inf_norm(self) -> float:
        return self._norm_inf_g

    @property
    def mu(self) -> float:
        return self._mu

    @property
    def delta(self) -> float:
        return self._delta

    @property
    def rank(self) -> int:
        """Rank used by the last direction solve."""
        return self._rank

    @property
    def lm_hessian(self) -> Array:
        return _readonly(self._a)

    @property
    def bfgs_hessian(self) -> Array:
        return _readonly(self._b)

    @property
    def iterations(self) -> int:
        return self._nit

    @property
    def nfev(self) -> int:
        return self._nfev

    @property
    def njev(self) -> int:
        return self._njev


__all__ = ["HybridOptimizer"]
