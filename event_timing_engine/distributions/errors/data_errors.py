"""Insufficient data handling helpers for curve fitting."""

from __future__ import annotations

from typing import Hashable, Optional

from event_timing_engine.exceptions import InvalidInputError
from event_timing_engine.utils.logging import get_logger

log = get_logger(__name__, component="fit_errors")

MIN_POINTS = 4


def has_minimum_points(point_count: int, min_required: Optional[int] = None) -> bool:
    """Return True when the number of distinct times supports a three-parameter fit."""

    required = min_required if min_required is not None else MIN_POINTS
    return point_count >= required


def ensure_minimum_points(
    point_count: int,
    *,
    min_required: Optional[int] = None,
    group: Hashable | None = None,
) -> None:
    """Raise InvalidInputError when a group has too few distinct time points."""

    required = min_required if min_required is not None else MIN_POINTS
    if has_minimum_points(point_count, required):
        return
    message = f"Insufficient data for group {group!r}: need >={required} distinct times, got {point_count}"
    log.warning(
        "Rejecting series with too few points",
        extra={"group": group, "required": required, "n_points": point_count},
    )
    raise InvalidInputError(message)


__all__ = ["MIN_POINTS", "ensure_minimum_points", "has_minimum_points"]
