"""
Cumulative and density functions of the event-timing curve.

Franco's time-distribution model:

    g(x) = r / (1 + exp(-c*(x - t)))
    F(x) = 1 - (1 - g(x))**x            for x >= 0, F = 0 below 0
    f(x) = dF/dx = (1 - g)**x * (-ln(1 - g) + x*g'(x) / (1 - g))

with g'(x) = c*r*s*(1 - s) where s is the logistic term. ``r`` is the
per-unit-time event probability reached after the lag (larger r moves events
earlier), ``c`` the steepness of the switch-on around ``t`` and ``t`` the lag
at which half of ``r`` is reached. For 0 < r < 1 and c >= 0, F rises from 0 at
x = 0 to 1 as x grows.

Every function is total over finite real parameters because the solver tries
arbitrary triples during its line search: ``g`` is clipped to [0, 1], so
r <= 0 gives F = 0 and r >= 1 saturates at F = 1 wherever g reaches 1.
Non-finite inputs propagate as NaN.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from scipy import special

from event_timing_engine.distributions.models import ModelParameters

ArrayLike = np.ndarray | float | list


def _terms(x: np.ndarray, params: ModelParameters) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Logistic term s, s*(1 - s), clipped g and a mask of unclipped points."""
    with np.errstate(invalid="ignore", over="ignore"):
        z = params.concentration * (x - params.lag)
        s = special.expit(z)
        s_slope = s * special.expit(-z)
        g_raw = params.rate * s
        g = np.clip(g_raw, 0.0, 1.0)
        free = (g_raw > 0.0) & (g_raw < 1.0)
    return s, s_slope, g, free


def _survival(x: np.ndarray, g: np.ndarray) -> np.ndarray:
    """(1 - g)**x for x >= 0, evaluated in log space."""
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        log_u = np.log1p(-g)
        out = np.exp(x * log_u)
    # 0**0 is 1 at the origin
    return np.where(x == 0.0, 1.0, np.where(g >= 1.0, 0.0, out))


def _as_output(values: np.ndarray) -> np.ndarray | float:
    return float(values) if np.ndim(values) == 0 else values


def cumulative(x: ArrayLike, params: ModelParameters) -> np.ndarray | float:
    """F(x; r, c, t)."""
    x_arr = np.asarray(x, dtype=float)
    if not params.is_finite():
        return _as_output(np.full(x_arr.shape, np.nan))

    positive = np.where(x_arr > 0.0, x_arr, 0.0)
    _, _, g, _ = _terms(positive, params)
    values = 1.0 - _survival(positive, g)
    values = np.where(x_arr > 0.0, values, np.where(np.isnan(x_arr), np.nan, 0.0))
    return _as_output(np.clip(values, 0.0, 1.0))


def density(x: ArrayLike, params: ModelParameters) -> np.ndarray | float:
    """f(x; r, c, t) = dF/dx, zero below the origin."""
    x_arr = np.asarray(x, dtype=float)
    if not params.is_finite():
        return _as_output(np.full(x_arr.shape, np.nan))

    positive = np.where(x_arr >= 0.0, x_arr, 0.0)
    _, s_slope, g, free = _terms(positive, params)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        u = 1.0 - g
        survival = _survival(positive, g)
        slope = params.concentration * params.rate * s_slope
        values = survival * (-np.log1p(-g) + positive * slope / u)
    values = np.where(free, values, 0.0)
    values = np.where(x_arr >= 0.0, values, np.where(np.isnan(x_arr), np.nan, 0.0))
    return _as_output(values)


def parameter_jacobian(x: ArrayLike, params: ModelParameters) -> np.ndarray:
    """Partial derivatives of F with respect to (r, c, t), shape (n, 3).

    dF/dp = x * (1 - g)**(x - 1) * dg/dp, zero where g is clipped or x <= 0.
    """
    x_arr = np.atleast_1d(np.asarray(x, dtype=float))
    positive = np.where(x_arr > 0.0, x_arr, 0.0)
    s, s_slope, g, free = _terms(positive, params)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        outer = positive * np.exp((positive - 1.0) * np.log1p(-g))
    outer = np.where(free & (x_arr > 0.0), outer, 0.0)

    d_rate = outer * s
    d_conc = outer * params.rate * s_slope * (positive - params.lag)
    d_lag = -outer * params.rate * s_slope * params.concentration
    return np.column_stack([d_rate, d_conc, d_lag])


def support(params: ModelParameters) -> Tuple[float, float]:
    """Domain of the model: events occur at x >= 0."""
    if not params.is_finite():
        return float("nan"), float("nan")
    return 0.0, float("inf")


class DistributionModel:
    """Evaluation wrapper binding one parameter triple."""

    def __init__(self, parameters: ModelParameters) -> None:
        self.parameters = parameters

    def cdf(self, x: ArrayLike) -> np.ndarray | float:
        return cumulative(x, self.parameters)

    def pdf(self, x: ArrayLike) -> np.ndarray | float:
        return density(x, self.parameters)

    def jacobian(self, x: ArrayLike) -> np.ndarray:
        return parameter_jacobian(x, self.parameters)

    def support(self) -> Tuple[float, float]:
        return support(self.parameters)

    def __repr__(self) -> str:
        p = self.parameters
        return f"DistributionModel(r={p.rate:.6g}, c={p.concentration:.6g}, t={p.lag:.6g})"


__all__ = ["DistributionModel", "cumulative", "density", "parameter_jacobian", "support"]
