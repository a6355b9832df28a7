"""Numerical sanity checks for optimizer state."""

from __future__ import annotations

import numpy as np


def is_symmetric(mat: np.ndarray, atol: float = 1e-8, rtol: float = 1e-8) -> bool:
    """
    Check whether a square matrix is symmetric.

    Parameters
    ----------
    mat:
        Real array with shape (n, n).
    atol, rtol:
        Tolerances passed to ``np.allclose`` when comparing ``mat`` with
        its transpose.

    Returns
    -------
    bool
        True if ``mat`` is square, finite and symmetric within tolerance.
    """
    mat = np.asarray(mat)
    if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
        return False
    if not np.all(np.isfinite(mat)):
        return False
    return bool(np.allclose(mat, mat.T, atol=atol, rtol=rtol))


def assert_symmetric(
    mat: np.ndarray, atol: float = 1e-8, rtol: float = 1e-8, name: str = "matrix"
) -> None:
    """
    Assert that a matrix is symmetric.

    Raises
    ------
    ValueError
        If the matrix is not square, contains non-finite entries, or is not
        symmetric within tolerance.
    """
    if not is_symmetric(mat, atol=atol, rtol=rtol):
        raise ValueError(f"{name} is not symmetric within tolerance atol={atol}, rtol={rtol}.")


def assert_finite(values: np.ndarray, name: str = "array") -> None:
    """
    Assert that every entry of an array is finite.

    Raises
    ------
    ValueError
        If any entry is NaN or infinite.
    """
    values = np.asarray(values)
    if not np.all(np.isfinite(values)):
        bad = int(np.size(values) - np.count_nonzero(np.isfinite(values)))
        raise ValueError(f"{name} contains {bad} non-finite value(s).")
