"""CLI validation helpers."""

from __future__ import annotations

import math
from typing import Any, Iterable, List, Optional, Tuple

from event_timing_engine.exceptions import ConfigValidationError


def require_positive(name: str, value: int | float) -> None:
    if value <= 0:
        raise ConfigValidationError(f"{name} must be > 0")


def parse_triple(name: str, raw: Any) -> Optional[Tuple[float, float, float]]:
    """Parse ``"r,c,t"`` or a three-item list; ``inf``/``-inf`` are accepted for open bounds."""
    if raw is None:
        return None
    if isinstance(raw, str):
        parts = [p.strip() for p in raw.split(",")]
    elif isinstance(raw, (list, tuple)):
        parts = list(raw)
    else:
        raise ConfigValidationError(f"{name} must be 'r,c,t' or a list of three numbers, got {raw!r}")
    if len(parts) != 3:
        raise ConfigValidationError(f"{name} must be three comma-separated numbers (r,c,t), got {raw!r}")
    try:
        values = tuple(float(p) for p in parts)
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError(f"{name} contains a non-numeric entry: {raw!r}") from exc
    if any(math.isnan(v) for v in values):
        raise ConfigValidationError(f"{name} must not contain NaN")
    return values  # type: ignore[return-value]


def validate_fit_inputs(
    *,
    max_iterations: int,
    max_workers: int,
    probabilities: Iterable[float],
    method: str,
) -> List[float]:
    require_positive("max_iterations", max_iterations)
    require_positive("workers", max_workers)
    if method not in {"trf", "dogbox", "lm"}:
        raise ConfigValidationError(f"method must be one of ['dogbox', 'lm', 'trf'], got {method!r}")
    probs = [float(p) for p in probabilities]
    bad = [p for p in probs if not 0.0 < p < 1.0]
    if bad:
        raise ConfigValidationError(f"percentiles must lie in (0, 1), got {bad}")
    return probs


__all__ = ["parse_triple", "require_positive", "validate_fit_inputs"]
