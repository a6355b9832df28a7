"""Linear algebra helpers for computing optimizer directions.

Two strategies solve ``M h = -g`` for a symmetric matrix ``M``:

* a diagonally pivoted LDL^T factorization, cheap and accurate for
  well-conditioned positive (semi)definite matrices;
* a symmetric eigendecomposition with rank truncation, a pseudo-inverse solve
  that stays bounded when ``M`` is close to singular.

Both read only the lower triangle of ``M``. Everything here is pure NumPy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

Array = np.ndarray

_EPS = np.finfo(float).eps


@dataclass(frozen=True)
class LDLTFactor:
    """Factorization ``P M P^T = L D L^T``.

    ``perm`` holds the row order of ``P M P^T`` so that
    ``M[perm][:, perm] == lower @ diag(diag) @ lower.T``.
    """

    lower: Array
    diag: Array
    perm: Array


def _lower_symmetric(mat: Array) -> Array:
    mat = np.asarray(mat, dtype=float)
    if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
        raise ValueError(f"expected a square matrix, got shape {mat.shape}.")
    return np.tril(mat) + np.tril(mat, -1).T


def ldlt_factor(mat: Array) -> LDLTFactor:
    """
    Compute a diagonally pivoted LDL^T factorization.

    At every stage the remaining diagonal entry of largest magnitude is moved
    to the pivot position. A pivot that is exactly zero leaves its column of
    ``L`` empty; :func:`ldlt_solve` then drops that component.

    Parameters
    ----------
    mat:
        Symmetric (n, n) matrix; only the lower triangle is read.
    """
    work = _lower_symmetric(mat)
    n = work.shape[0]
    perm = np.arange(n)
    for k in range(n):
        p = k + int(np.argmax(np.abs(np.diag(work)[k:])))
        if p != k:
            work[[k, p], :] = work[[p, k], :]
            work[:, [k, p]] = work[:, [p, k]]
            perm[[k, p]] = perm[[p, k]]
        pivot = work[k, k]
        if pivot == 0.0:
            work[k + 1 :, k] = 0.0
            continue
        col = work[k + 1 :, k] / pivot
        work[k + 1 :, k + 1 :] -= pivot * np.outer(col, col)
        work[k + 1 :, k] = col
    lower = np.tril(work, -1) + np.eye(n)
    return LDLTFactor(lower=lower, diag=np.diag(work).copy(), perm=perm)


def ldlt_solve(factor: LDLTFactor, rhs: Array) -> Array:
    """Solve ``M x = rhs`` given ``factor = ldlt_factor(M)``."""
    rhs = np.asarray(rhs, dtype=float)
    z = np.linalg.solve(factor.lower, rhs[factor.perm])
    tiny = np.finfo(float).tiny
    safe = np.abs(factor.diag) > tiny
    w = np.zeros_like(z)
    w[safe] = z[safe] / factor.diag[safe]
    u = np.linalg.solve(factor.lower.T, w)
    solution = np.empty_like(u)
    solution[factor.perm] = u
    return solution


def eigh_solve(mat: Array, rhs: Array) -> tuple[Array, int]:
    """
    Solve ``M x = rhs`` with a rank-truncated eigendecomposition.

    Eigenvalues below ``lambda_max * eps`` are discarded, scanning upward from
    the smallest, and the solution is built from the remaining eigenpairs.

    Returns
    -------
    solution, rank:
        The pseudo-inverse solution and the number of eigenpairs kept.
    """
    evals, evecs = np.linalg.eigh(_lower_symmetric(mat), UPLO="L")
    # eigh documents ascending order; sort anyway so the scan below holds.
    order = np.argsort(evals)
    evals = evals[order]
    evecs = evecs[:, order]
    n = evals.size
    threshold = max(evals[-1] * _EPS, np.finfo(float).tiny)
    dropped = 0
    while dropped < n and evals[dropped] < threshold:
        dropped += 1
    rank = n - dropped
    kept_vals = evals[dropped:]
    kept_vecs = evecs[:, dropped:]
    solution = kept_vecs @ ((kept_vecs.T @ np.asarray(rhs, dtype=float)) / kept_vals)
    return solution, rank


def solve_direction(mat: Array, grad: Array, use_cholesky: bool = True) -> tuple[Array, int]:
    """Return ``(h, rank)`` with ``h`` solving ``mat @ h = -grad``."""
    grad = np.asarray(grad, dtype=float)
    if use_cholesky:
        return ldlt_solve(ldlt_factor(mat), -grad), grad.size
    return eigh_solve(mat, -grad)


def approx_jacobian(
    fun: Callable[[Array], Array],
    x: Array,
    eps: float = 1.4901161193847656e-08,
    f0: Optional[Array] = None,
) -> Array:
    """Compute a forward-difference Jacobian approximation.

    Parameters
    ----------
    fun:
        Residual function returning a 1D array given x.
    x:
        Point where the Jacobian is approximated.
    eps:
        Relative perturbation; column ``i`` uses ``eps * max(1, |x_i|)``.
    f0:
        Residuals at ``x`` if already known.
    """
    if eps <= 0:
        raise ValueError("eps must be positive")
    x = np.asarray(x, dtype=float).copy()
    if f0 is None:
        f0 = fun(x)
    f0 = np.asarray(f0, dtype=float).reshape(-1)
    jac = np.zeros((f0.size, x.size), dtype=float)
    for i in range(x.size):
        step = eps * max(1.0, abs(x[i]))
        xi = x.copy()
        xi[i] += step
        # Use the representable step actually taken.
        step = xi[i] - x[i]
        jac[:, i] = (np.asarray(fun(xi), dtype=float).reshape(-1) - f0) / step
    return jac


__all__ = [
    "LDLTFactor",
    "ldlt_factor",
    "ldlt_solve",
    "eigh_solve",
    "solve_direction",
    "approx_jacobian",
]
