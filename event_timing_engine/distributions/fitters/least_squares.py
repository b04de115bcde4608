"""SciPy ``least_squares`` wrapper implementing the minimizer interface."""

from __future__ import annotations

from typing import Optional

import numpy as np
from scipy.linalg import svd
from scipy.optimize import least_squares

from event_timing_engine.exceptions import InvalidInputError
from event_timing_engine.interfaces.minimizer import JacobianFn, Minimizer, MinimizerResult, ResidualFn
from event_timing_engine.schema.fit_config import FitConfig


def covariance_from_jacobian(jacobian: np.ndarray, residuals: np.ndarray) -> np.ndarray:
    """Estimate parameter covariance as s^2 * (J^T J)^+ at the solution.

    Singular directions are dropped with the same threshold ``curve_fit`` uses;
    without spare degrees of freedom the covariance is reported as infinite.
    """
    m, n = jacobian.shape
    _, s, vt = svd(jacobian, full_matrices=False)
    if s.size == 0 or not np.isfinite(s).all():
        return np.full((n, n), np.inf)
    threshold = np.finfo(float).eps * max(jacobian.shape) * s[0]
    keep = s > threshold
    s = s[keep]
    vt = vt[: s.size]
    pcov = (vt.T / s**2) @ vt

    dof = m - n
    if dof <= 0:
        return np.full((n, n), np.inf)
    return pcov * (float(np.sum(residuals**2)) / dof)


class LeastSquaresMinimizer(Minimizer):
    """Trust-region (``trf``/``dogbox``) or Levenberg-Marquardt (``lm``) solver."""

    name = "scipy.least_squares"

    def __init__(self, config: Optional[FitConfig] = None) -> None:
        self.config = config or FitConfig()

    def minimize(
        self,
        residual_fn: ResidualFn,
        initial: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
        max_iterations: int,
        jacobian_fn: Optional[JacobianFn] = None,
    ) -> MinimizerResult:
        method = self.config.method
        x0 = np.asarray(initial, dtype=float)
        if method == "lm":
            if np.isfinite(lower).any() or np.isfinite(upper).any():
                raise InvalidInputError("method 'lm' does not support bounds")
        # lm counts finite-difference Jacobian columns as function calls
        evals_per_iteration = x0.size + 1 if method == "lm" and jacobian_fn is None else 1
        max_nfev = max_iterations * evals_per_iteration

        result = least_squares(
            residual_fn,
            x0,
            jac=jacobian_fn if jacobian_fn is not None else "2-point",
            bounds=(lower, upper),
            method=method,
            x_scale="jac",
            xtol=self.config.xtol,
            ftol=self.config.ftol,
            gtol=self.config.gtol,
            max_nfev=max_nfev,
        )

        iterations = int(np.ceil(result.nfev / evals_per_iteration))
        jacobian = np.asarray(result.jac, dtype=float)
        return MinimizerResult(
            params=np.asarray(result.x, dtype=float),
            covariance=covariance_from_jacobian(jacobian, result.fun),
            iterations=iterations,
            converged=bool(result.status > 0),
            residual_norm=float(np.linalg.norm(result.fun)),
            jacobian=jacobian,
            message=str(result.message),
        )


__all__ = ["LeastSquaresMinimizer", "covariance_from_jacobian"]
