"""Project-wide exception types."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple


class EventTimingError(Exception):
    """Base exception for all engine errors."""


class InvalidInputError(EventTimingError):
    """Raised when inputs are malformed or outside the accepted domain."""


class ConvergenceError(EventTimingError):
    """Raised when the minimizer exhausts its iteration budget.

    Carries the last iterate and residual norm so callers can retry with
    different starting values or tighter bounds.
    """

    def __init__(
        self,
        message: str,
        *,
        last_iterate: Sequence[float] | None = None,
        residual_norm: float = float("nan"),
        iterations: int = 0,
    ) -> None:
        super().__init__(message)
        self.last_iterate: Optional[Tuple[float, ...]] = (
            tuple(float(v) for v in last_iterate) if last_iterate is not None else None
        )
        self.residual_norm = float(residual_norm)
        self.iterations = int(iterations)


class NumericalError(EventTimingError):
    """Raised when integration or root bracketing misses its accuracy target."""

    def __init__(self, message: str, *, interval: Tuple[float, float] | None = None) -> None:
        super().__init__(message)
        self.interval = interval


class ConfigError(EventTimingError):
    """Raised when configuration is missing or malformed."""


class ConfigValidationError(ConfigError):
    """Raised when validation fails for supplied configuration."""


__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "ConvergenceError",
    "EventTimingError",
    "InvalidInputError",
    "NumericalError",
]
