"""Benchmark full fits with the hybrid optimizer."""

import time
from typing import Dict

import numpy as np

from hybridfit.optimize import HybridOptimizerControl, hybrid_least_squares


def benchmark_gaussian_fit(n_points: int = 200, use_cholesky: bool = True) -> Dict[str, float]:
    """Fit a noisy Gaussian profile and report timing and evaluation counts."""
    rng = np.random.default_rng(0)
    t = np.linspace(-5.0, 5.0, n_points)
    y = 3.0 * np.exp(-0.5 * ((t - 0.7) / 1.3) ** 2) + 0.01 * rng.standard_normal(n_points)

    def residuals(p: np.ndarray) -> np.ndarray:
        return p[0] * np.exp(-0.5 * ((t - p[1]) / p[2]) ** 2) - y

    control = HybridOptimizerControl(use_cholesky=use_cholesky, max_iter=500)
    start = time.perf_counter()
    res = hybrid_least_squares(residuals, np.array([1.0, 0.0, 1.0]), control)
    total_time = time.perf_counter() - start
    return {
        "n_points": n_points,
        "total_time_sec": total_time,
        "nit": res.nit,
        "nfev": res.nfev,
        "chisq": res.chisq,
    }


if __name__ == "__main__":
    print("Benchmarking Gaussian fits...")
    for n in (50, 200, 1000):
        out = benchmark_gaussian_fit(n)
        print(
            f"N={n:5d}: {out['total_time_sec'] * 1e3:7.2f} ms, "
            f"nit={out['nit']}, nfev={out['nfev']}, chisq={out['chisq']:.4g}"
        )
