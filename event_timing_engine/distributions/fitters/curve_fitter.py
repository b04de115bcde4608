"""Least-squares fitting of the event-timing curve to cumulative proportions."""

from __future__ import annotations

import time
from typing import Optional, Sequence, Tuple

import numpy as np

from event_timing_engine.data.preparer import ObservationSeries
from event_timing_engine.distributions.errors import convergence_failure
from event_timing_engine.distributions.model import cumulative, parameter_jacobian
from event_timing_engine.distributions.models import FittedModel, ModelParameters
from event_timing_engine.distributions.fitters.least_squares import LeastSquaresMinimizer
from event_timing_engine.exceptions import InvalidInputError
from event_timing_engine.interfaces.minimizer import Minimizer, MinimizerResult
from event_timing_engine.schema.fit_config import FitConfig
from event_timing_engine.utils.logging import get_logger

log = get_logger(__name__, component="curve_fitter")

Bounds = Sequence[float]


def _bounds_array(values: Optional[Bounds], fill: float, name: str) -> np.ndarray:
    if values is None:
        return np.full(3, fill)
    arr = np.asarray(values, dtype=float)
    if arr.shape != (3,):
        raise InvalidInputError(f"{name} must have 3 entries (r, c, t), got shape {arr.shape}")
    if np.isnan(arr).any():
        raise InvalidInputError(f"{name} must not contain NaN")
    return arr


def _validate_box(initial: np.ndarray, lower: np.ndarray, upper: np.ndarray) -> np.ndarray:
    """Check the box and return the mask of fixed parameters (lower == upper)."""
    if not np.isfinite(initial).all():
        raise InvalidInputError(f"Initial parameters must be finite, got {initial.tolist()}")
    if np.any(lower > upper):
        raise InvalidInputError(
            f"Lower bounds must not exceed upper bounds: lower={lower.tolist()}, upper={upper.tolist()}"
        )
    if np.any(initial < lower) or np.any(initial > upper):
        raise InvalidInputError(
            f"Initial parameters {initial.tolist()} lie outside bounds [{lower.tolist()}, {upper.tolist()}]"
        )
    return lower == upper


def fit(
    series: ObservationSeries,
    initial: ModelParameters,
    lower_bounds: Optional[Bounds] = None,
    upper_bounds: Optional[Bounds] = None,
    max_iterations: Optional[int] = None,
    *,
    minimizer: Optional[Minimizer] = None,
    config: Optional[FitConfig] = None,
) -> FittedModel:
    """Estimate (r, c, t) by minimizing sum((F(x_i) - y_i)**2).

    ``max_iterations`` defaults to the config value (50). A fit that does not
    converge raises ConvergenceError; there is no retry here. A parameter whose
    lower and upper bounds are equal is held at that value: it is left out of
    the solver's vector and reported with zero variance.
    """

    config = config or FitConfig()
    max_iterations = config.max_iterations if max_iterations is None else int(max_iterations)
    if max_iterations < 1:
        raise InvalidInputError(f"max_iterations must be >= 1, got {max_iterations}")

    x0 = initial.as_array()
    lower = _bounds_array(lower_bounds, -np.inf, "lower_bounds")
    upper = _bounds_array(upper_bounds, np.inf, "upper_bounds")
    fixed = _validate_box(x0, lower, upper)
    free = ~fixed

    minimizer = minimizer or LeastSquaresMinimizer(config)
    x_obs = series.x
    y_obs = series.y

    def expand(p_free: np.ndarray) -> np.ndarray:
        full = x0.copy()
        full[free] = p_free
        return full

    def residuals(p_free: np.ndarray) -> np.ndarray:
        return np.asarray(cumulative(x_obs, ModelParameters(*expand(p_free))), dtype=float) - y_obs

    def jacobian(p_free: np.ndarray) -> np.ndarray:
        return parameter_jacobian(x_obs, ModelParameters(*expand(p_free)))[:, free]

    started = time.perf_counter()
    log.info(
        "Starting fit",
        extra={
            "group": series.group,
            "initial": x0.tolist(),
            "fixed": fixed.tolist(),
            "n_points": len(series),
        },
    )
    if free.any():
        result = minimizer.minimize(
            residuals, x0[free], lower[free], upper[free], max_iterations, jacobian_fn=jacobian
        )
    else:
        fun = residuals(x0[free])
        result = MinimizerResult(
            params=x0[free],
            covariance=np.zeros((0, 0)),
            iterations=0,
            converged=True,
            residual_norm=float(np.linalg.norm(fun)),
            message="all parameters fixed",
        )
    duration_ms = round((time.perf_counter() - started) * 1000.0, 3)

    estimates = expand(np.asarray(result.params, dtype=float))
    if not result.converged:
        raise convergence_failure(
            last_iterate=estimates,
            residual_norm=result.residual_norm,
            iterations=result.iterations,
            max_iterations=max_iterations,
            message=result.message,
            group=series.group,
        )

    covariance = np.zeros((3, 3))
    covariance[np.ix_(free, free)] = np.asarray(result.covariance, dtype=float)
    with np.errstate(invalid="ignore"):
        standard_errors = np.sqrt(np.diag(covariance))
    fitted = FittedModel(
        parameters=ModelParameters.from_sequence(estimates),
        iterations=result.iterations,
        rss=float(result.residual_norm**2),
        residual_norm=result.residual_norm,
        covariance=covariance,
        standard_errors=tuple(standard_errors),
        series=series,
        method=getattr(minimizer, "name", minimizer.__class__.__name__),
        message=result.message,
        fixed=tuple(fixed.tolist()),
    )
    log.info(
        "Fit converged",
        extra={
            "group": series.group,
            "iterations": result.iterations,
            "residual_norm": result.residual_norm,
            "parameters": fitted.parameters.to_dict(),
            "duration_ms": duration_ms,
        },
    )
    return fitted


def initial_guess(series: ObservationSeries) -> ModelParameters:
    """Starting values read off the data.

    The lag is the interpolated median time. With c = 0 the curve reaches 0.5
    at x = ln(0.5) / ln(1 - r/2), so r is chosen to put that point at the lag.
    """

    x = series.x
    y = series.y
    lag = float(np.interp(0.5, y, x)) if y[0] < 0.5 <= y[-1] else float(np.median(x))
    if lag <= 0:
        lag = float(x[x > 0][0]) if np.any(x > 0) else 1.0
    rate = min(2.0 * (1.0 - 0.5 ** (1.0 / lag)), 0.99)
    return ModelParameters(rate=rate, concentration=1.0, lag=lag)


def narrow_rate_bounds(
    rate: float,
    factor: float = 0.5,
    lower_bounds: Optional[Bounds] = None,
    upper_bounds: Optional[Bounds] = None,
) -> Tuple[Tuple[float, float, float], Tuple[float, float, float]]:
    """Bounds that restrict r to [rate*(1-factor), rate*(1+factor)].

    A caller-side retry aid for small datasets that fail to converge with an
    open rate bound; c and t keep the supplied (or infinite) bounds.
    """

    if not np.isfinite(rate) or rate <= 0:
        raise InvalidInputError(f"rate estimate must be positive and finite, got {rate}")
    if not 0 < factor < 1:
        raise InvalidInputError(f"factor must be in (0, 1), got {factor}")
    lower = _bounds_array(lower_bounds, -np.inf, "lower_bounds")
    upper = _bounds_array(upper_bounds, np.inf, "upper_bounds")
    lower[0] = rate * (1.0 - factor)
    upper[0] = rate * (1.0 + factor)
    return tuple(float(v) for v in lower), tuple(float(v) for v in upper)  # type: ignore[return-value]


__all__ = ["fit", "initial_guess", "narrow_rate_bounds"]
