"""Benchmark the two direction-solve strategies."""

import time
from typing import Dict

import numpy as np

from hybridfit.optimize import solve_direction


def benchmark_direction_solve(
    n_params: int,
    use_cholesky: bool,
    n_repeats: int = 200,
    seed: int = 0,
) -> Dict[str, float]:
    """Benchmark solving ``(J^T J + mu I) h = -g`` for a random Jacobian.

    Args:
        n_params: Number of parameters P.
        use_cholesky: Use the LDL^T path instead of the eigendecomposition.
        n_repeats: Number of timed solves.
        seed: RNG seed.

    Returns:
        Dictionary with timing results.
    """
    rng = np.random.default_rng(seed)
    jac = rng.standard_normal((4 * n_params, n_params))
    mat = jac.T @ jac + 1e-3 * np.eye(n_params)
    grad = rng.standard_normal(n_params)

    for _ in range(5):
        solve_direction(mat, grad, use_cholesky)

    start = time.perf_counter()
    for _ in range(n_repeats):
        solve_direction(mat, grad, use_cholesky)
    total_time = time.perf_counter() - start

    return {
        "n_params": n_params,
        "use_cholesky": use_cholesky,
        "total_time_sec": total_time,
        "time_per_solve_sec": total_time / n_repeats,
    }


if __name__ == "__main__":
    print("Benchmarking direction solves...")
    for n in (4, 16, 64):
        for chol in (True, False):
            res = benchmark_direction_solve(n, chol)
            label = "ldlt" if chol else "eigh"
            print(f"P={n:3d} {label}: {res['time_per_solve_sec'] * 1e6:8.1f} us/solve")
