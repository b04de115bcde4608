"""Shared models for fitted event-timing curves."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Sequence, Tuple

import numpy as np
from scipy import stats

from event_timing_engine.data.preparer import ObservationSeries
from event_timing_engine.distributions.metrics.information_criteria import aic_from_rss, bic_from_rss
from event_timing_engine.exceptions import InvalidInputError

PARAMETER_NAMES: Tuple[str, str, str] = ("rate", "concentration", "lag")


@dataclass(frozen=True)
class ModelParameters:
    """Rate ``r``, concentration ``c`` and lag ``t`` of the timing curve."""

    rate: float
    concentration: float
    lag: float

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "ModelParameters":
        values = list(values)
        if len(values) != 3:
            raise InvalidInputError(f"Expected 3 parameter values (r, c, t), got {len(values)}")
        return cls(*(float(v) for v in values))

    def as_array(self) -> np.ndarray:
        return np.array([self.rate, self.concentration, self.lag], dtype=float)

    def to_dict(self) -> Dict[str, float]:
        return dict(zip(PARAMETER_NAMES, (self.rate, self.concentration, self.lag)))

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.rate, self.concentration, self.lag))


@dataclass(frozen=True, eq=False)
class FittedModel:
    parameters: ModelParameters
    iterations: int
    rss: float
    residual_norm: float
    covariance: np.ndarray
    standard_errors: Tuple[float, float, float]
    series: ObservationSeries
    method: str = "trf"
    message: str = ""
    fixed: Tuple[bool, bool, bool] = (False, False, False)

    def __post_init__(self) -> None:
        cov = np.array(self.covariance, dtype=float)
        if cov.shape != (3, 3):
            raise InvalidInputError(f"covariance must be 3x3, got {cov.shape}")
        cov.flags.writeable = False
        object.__setattr__(self, "covariance", cov)
        object.__setattr__(self, "standard_errors", tuple(float(v) for v in self.standard_errors))
        object.__setattr__(self, "fixed", tuple(bool(v) for v in self.fixed))

    @property
    def n_points(self) -> int:
        return len(self.series)

    @property
    def n_free(self) -> int:
        """Number of parameters estimated by the solver (bounds with lower == upper hold the rest)."""
        return len(PARAMETER_NAMES) - sum(self.fixed)

    @property
    def degrees_of_freedom(self) -> int:
        return self.n_points - self.n_free

    @property
    def rmse(self) -> float:
        return float(np.sqrt(self.rss / self.n_points))

    @property
    def r_squared(self) -> float:
        y = self.series.y
        tss = float(np.sum((y - y.mean()) ** 2))
        if tss == 0.0:
            return float("nan")
        return 1.0 - self.rss / tss

    @property
    def aic(self) -> float:
        return aic_from_rss(self.rss, self.n_free, self.n_points)

    @property
    def bic(self) -> float:
        return bic_from_rss(self.rss, self.n_free, self.n_points)

    def standard_error_dict(self) -> Dict[str, float]:
        return dict(zip(PARAMETER_NAMES, self.standard_errors))

    def confidence_intervals(self, level: float = 0.95) -> Dict[str, Tuple[float, float]]:
        """Wald intervals from the covariance at convergence with a Student-t quantile."""

        if not 0.0 < level < 1.0:
            raise InvalidInputError(f"level must be in (0, 1), got {level}")
        if self.degrees_of_freedom <= 0:
            nan = float("nan")
            return {name: (nan, nan) for name in PARAMETER_NAMES}
        q = float(stats.t.ppf(0.5 + level / 2.0, self.degrees_of_freedom))
        estimates = self.parameters.as_array()
        return {
            name: (float(est - q * se), float(est + q * se))
            for name, est, se in zip(PARAMETER_NAMES, estimates, self.standard_errors)
        }

    def summary(self) -> Dict[str, object]:
        return {
            "group": self.series.group,
            "parameters": self.parameters.to_dict(),
            "standard_errors": self.standard_error_dict(),
            "iterations": self.iterations,
            "rss": self.rss,
            "rmse": self.rmse,
            "r_squared": self.r_squared,
            "aic": self.aic,
            "bic": self.bic,
            "n_points": self.n_points,
            "method": self.method,
            "fixed": [name for name, held in zip(PARAMETER_NAMES, self.fixed) if held],
        }


@dataclass(frozen=True)
class MomentSet:
    mean: float
    variance: float
    std_dev: float
    skewness: float
    kurtosis: float
    entropy: float
    window: Tuple[float, float] = field(default=(float("nan"), float("nan")), compare=False)

    def to_dict(self) -> Dict[str, float]:
        return {
            "mean": self.mean,
            "variance": self.variance,
            "std_dev": self.std_dev,
            "skewness": self.skewness,
            "kurtosis": self.kurtosis,
            "entropy": self.entropy,
        }


__all__ = ["FittedModel", "ModelParameters", "MomentSet", "PARAMETER_NAMES"]
