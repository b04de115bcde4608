"""Percentiles of a fitted event-timing curve by bracketed root finding."""

from __future__ import annotations

import math
from typing import Iterable, Optional, Tuple

import numpy as np
from scipy.optimize import brentq

from event_timing_engine.distributions.model import cumulative
from event_timing_engine.distributions.models import FittedModel, ModelParameters
from event_timing_engine.exceptions import InvalidInputError, NumericalError
from event_timing_engine.schema.fit_config import PercentileConfig
from event_timing_engine.utils.logging import get_logger

log = get_logger(__name__, component="percentiles")

ModelLike = FittedModel | ModelParameters


def _parameters(model: ModelLike) -> ModelParameters:
    return model.parameters if isinstance(model, FittedModel) else model


def _validate_probability(p: float) -> float:
    try:
        value = float(p)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Probability must be numeric, got {p!r}") from exc
    if not (math.isfinite(value) and 0.0 < value < 1.0):
        raise InvalidInputError(f"Probability must lie in the open interval (0, 1), got {p!r}")
    return value


def _bracket(params: ModelParameters, p: float, config: PercentileConfig) -> Tuple[float, float]:
    """Expand outward from the lag until F(lo) <= p <= F(hi)."""

    half_width = config.initial_half_width
    lo = hi = params.lag
    for _ in range(config.max_expansions + 1):
        lo = params.lag - half_width
        hi = params.lag + half_width
        f_lo = float(cumulative(lo, params))
        f_hi = float(cumulative(hi, params))
        if f_lo <= p <= f_hi:
            return lo, hi
        half_width *= 2.0
    raise NumericalError(
        f"No sign change for F(x) - {p} after {config.max_expansions} bracket expansions for {params}",
        interval=(lo, hi),
    )


def _solve(params: ModelParameters, p: float, config: PercentileConfig) -> float:
    lo, hi = _bracket(params, p, config)
    f_lo = float(cumulative(lo, params)) - p
    f_hi = float(cumulative(hi, params)) - p
    if f_lo == 0.0:
        return lo
    if f_hi == 0.0:
        return hi
    root, info = brentq(
        lambda x: float(cumulative(x, params)) - p,
        lo,
        hi,
        xtol=config.xtol,
        maxiter=config.max_iterations,
        full_output=True,
        disp=False,
    )
    if not info.converged:
        raise NumericalError(
            f"Root finding for p={p} stopped after {info.iterations} iterations: {info.flag}",
            interval=(lo, hi),
        )
    return float(root)


def percentile(model: ModelLike, p: float, config: Optional[PercentileConfig] = None) -> float:
    """Time x with F(x) = p, for p strictly inside (0, 1)."""

    config = config or PercentileConfig()
    params = _parameters(model)
    value = _validate_probability(p)
    if not params.is_finite():
        raise NumericalError(f"Cannot invert a model with non-finite parameters {params}")
    return _solve(params, value, config)


def percentiles(model: ModelLike, ps: Iterable[float], config: Optional[PercentileConfig] = None) -> np.ndarray:
    """Vectorized :func:`percentile`; the output follows the order of ``ps``.

    Every probability is validated before any root is searched.
    """

    config = config or PercentileConfig()
    params = _parameters(model)
    values = [_validate_probability(p) for p in ps]
    if not params.is_finite():
        raise NumericalError(f"Cannot invert a model with non-finite parameters {params}")
    result = np.array([_solve(params, p, config) for p in values], dtype=float)
    log.debug("Computed percentiles", extra={"n_probabilities": len(values)})
    return result


__all__ = ["percentile", "percentiles"]
