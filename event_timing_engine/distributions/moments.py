"""Moments and entropy of a fitted event-timing curve by numerical integration."""

from __future__ import annotations

import math
from typing import Callable, Optional, Tuple

from scipy import integrate, special

from event_timing_engine.distributions.model import cumulative, density, support
from event_timing_engine.distributions.models import FittedModel, ModelParameters, MomentSet
from event_timing_engine.exceptions import NumericalError
from event_timing_engine.schema.fit_config import IntegrationConfig
from event_timing_engine.utils.logging import get_logger

log = get_logger(__name__, component="moments")

ModelLike = FittedModel | ModelParameters


def _parameters(model: ModelLike) -> ModelParameters:
    return model.parameters if isinstance(model, FittedModel) else model


def integration_window(params: ModelParameters, config: IntegrationConfig) -> Tuple[float, float]:
    """Grow a window around the lag, clipped to the support, until the mass outside it
    is below tolerance.
    """

    if not params.is_finite():
        raise NumericalError(f"Cannot integrate a model with non-finite parameters {params}")

    lo_support, hi_support = support(params)
    centre = min(max(params.lag, lo_support), hi_support)
    half_width = config.initial_half_width
    lo = hi = centre
    for _ in range(config.max_expansions + 1):
        lo = max(centre - half_width, lo_support)
        hi = min(centre + half_width, hi_support)
        mass = float(cumulative(hi, params)) - float(cumulative(lo, params))
        if 1.0 - mass <= config.tail_tolerance:
            return lo, hi
        half_width *= 2.0
    raise NumericalError(
        f"Tail mass did not fall below {config.tail_tolerance} after "
        f"{config.max_expansions} window expansions for {params}",
        interval=(lo, hi),
    )


def _quad(
    integrand: Callable[[float], float],
    window: Tuple[float, float],
    params: ModelParameters,
    config: IntegrationConfig,
    label: str,
) -> float:
    lo, hi = window
    points = [params.lag] if lo < params.lag < hi else None
    result = integrate.quad(
        integrand,
        lo,
        hi,
        points=points,
        limit=config.max_subdivisions,
        epsabs=config.epsabs,
        epsrel=config.epsrel,
        full_output=1,
    )
    value, abserr = result[0], result[1]
    # quad appends a message when the integral missed its tolerance
    if len(result) > 3:
        raise NumericalError(
            f"Integral of {label} did not converge within {config.max_subdivisions} subdivisions: {result[3]}",
            interval=window,
        )
    if not (math.isfinite(value) and math.isfinite(abserr)):
        raise NumericalError(f"Integral of {label} is not finite", interval=window)
    return float(value)


def density_mass(model: ModelLike, config: Optional[IntegrationConfig] = None) -> float:
    """Integral of the density over the integration window (1 for a valid model)."""

    config = config or IntegrationConfig()
    params = _parameters(model)
    window = integration_window(params, config)
    return _quad(lambda x: float(density(x, params)), window, params, config, "density")


def get_moments(model: ModelLike, config: Optional[IntegrationConfig] = None) -> MomentSet:
    """Mean, variance, standard deviation, skewness, kurtosis and entropy.

    Kurtosis is the fourth standardized moment (3 for a normal law).
    """

    config = config or IntegrationConfig()
    params = _parameters(model)
    window = integration_window(params, config)

    def pdf(x: float) -> float:
        return float(density(x, params))

    mass = _quad(pdf, window, params, config, "density")
    if abs(mass - 1.0) > config.normalization_tolerance:
        raise NumericalError(
            f"Density integrates to {mass:.12g} instead of 1 for {params}",
            interval=window,
        )

    # centre and standardize the integrands to keep their magnitude near 1
    lag = params.lag
    mean = lag + _quad(lambda x: (x - lag) * pdf(x), window, params, config, "x*f(x)") / mass
    variance = _quad(lambda x: (x - mean) ** 2 * pdf(x), window, params, config, "(x-mean)^2*f(x)") / mass
    if not variance > 0.0:
        raise NumericalError(f"Variance {variance} is not positive for {params}", interval=window)
    std_dev = math.sqrt(variance)
    skewness = _quad(lambda x: ((x - mean) / std_dev) ** 3 * pdf(x), window, params, config, "z^3*f(x)") / mass
    kurtosis = _quad(lambda x: ((x - mean) / std_dev) ** 4 * pdf(x), window, params, config, "z^4*f(x)") / mass
    entropy = _quad(lambda x: float(special.entr(pdf(x))), window, params, config, "-f*ln(f)")

    moments = MomentSet(
        mean=mean,
        variance=variance,
        std_dev=std_dev,
        skewness=skewness,
        kurtosis=kurtosis,
        entropy=entropy,
        window=window,
    )
    log.debug("Computed moments", extra={"moments": moments.to_dict()})
    return moments


__all__ = ["density_mass", "get_moments", "integration_window"]
