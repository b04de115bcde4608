"""Fit, integration and percentile configuration schemas and validation."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Literal

from event_timing_engine.exceptions import ConfigValidationError

SolverMethod = Literal["trf", "dogbox", "lm"]


@dataclass(slots=True)
class FitConfig:
    max_iterations: int = 50
    method: SolverMethod = "trf"
    xtol: float = 1e-8
    ftol: float = 1e-8
    gtol: float = 1e-8
    min_points: int = 4

    def __post_init__(self) -> None:
        if self.max_iterations <= 0:
            raise ConfigValidationError("max_iterations must be > 0")
        if self.method not in {"trf", "dogbox", "lm"}:
            raise ConfigValidationError("invalid method")
        for name in ("xtol", "ftol", "gtol"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ConfigValidationError(f"{name} must be a positive finite number")
        if self.min_points < 4:
            raise ConfigValidationError("min_points must be >= 4 for a three-parameter fit")

    @classmethod
    def from_dict(cls, data: dict) -> "FitConfig":
        return cls(**data)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(slots=True)
class IntegrationConfig:
    """Numerical integration policy for moments.

    The window starts at ``initial_half_width`` around the lag and doubles until
    the mass left outside falls below ``tail_tolerance``.
    """

    tail_tolerance: float = 1e-10
    initial_half_width: float = 1.0
    max_expansions: int = 64
    max_subdivisions: int = 200
    epsabs: float = 1e-10
    epsrel: float = 1e-9
    normalization_tolerance: float = 1e-6

    def __post_init__(self) -> None:
        if not 0 < self.tail_tolerance < 1:
            raise ConfigValidationError("tail_tolerance must be in (0, 1)")
        if not math.isfinite(self.initial_half_width) or self.initial_half_width <= 0:
            raise ConfigValidationError("initial_half_width must be positive")
        if self.max_expansions < 0:
            raise ConfigValidationError("max_expansions must be >= 0")
        if self.max_subdivisions <= 0:
            raise ConfigValidationError("max_subdivisions must be > 0")
        if self.epsabs <= 0 or self.epsrel <= 0:
            raise ConfigValidationError("epsabs and epsrel must be positive")
        if self.normalization_tolerance <= 0:
            raise ConfigValidationError("normalization_tolerance must be positive")

    @classmethod
    def from_dict(cls, data: dict) -> "IntegrationConfig":
        return cls(**data)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(slots=True)
class PercentileConfig:
    initial_half_width: float = 1.0
    max_expansions: int = 64
    xtol: float = 1e-12
    max_iterations: int = 200

    def __post_init__(self) -> None:
        if not math.isfinite(self.initial_half_width) or self.initial_half_width <= 0:
            raise ConfigValidationError("initial_half_width must be positive")
        if self.max_expansions < 0:
            raise ConfigValidationError("max_expansions must be >= 0")
        if self.xtol <= 0:
            raise ConfigValidationError("xtol must be positive")
        if self.max_iterations <= 0:
            raise ConfigValidationError("max_iterations must be > 0")

    @classmethod
    def from_dict(cls, data: dict) -> "PercentileConfig":
        return cls(**data)

    def to_dict(self) -> dict:
        return asdict(self)


__all__ = ["FitConfig", "IntegrationConfig", "PercentileConfig", "SolverMethod"]
