"""Error helpers for series preparation and fitting."""

from __future__ import annotations

from .data_errors import MIN_POINTS, ensure_minimum_points, has_minimum_points
from .convergence_errors import convergence_failure

__all__ = [
    "MIN_POINTS",
    "convergence_failure",
    "ensure_minimum_points",
    "has_minimum_points",
]
