"""Conversion of raw event counts into cumulative proportion series."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List, Optional

import numpy as np
import pandas as pd

from event_timing_engine.distributions.errors import MIN_POINTS, ensure_minimum_points
from event_timing_engine.exceptions import InvalidInputError
from event_timing_engine.utils.logging import get_logger

log = get_logger(__name__, component="data_preparer")

_GROUP = "group"
_TIME = "x"
_COUNT = "count"


@dataclass(frozen=True)
class RawCountRecord:
    x: float
    count: float
    group: Optional[Hashable] = None


@dataclass(frozen=True, eq=False)
class ObservationSeries:
    """Cumulative proportions y observed at strictly increasing times x."""

    x: np.ndarray
    y: np.ndarray
    group: Optional[Hashable] = None
    total: Optional[float] = None

    def __post_init__(self) -> None:
        x = np.array(self.x, dtype=float)
        y = np.array(self.y, dtype=float)
        if x.ndim != 1 or y.ndim != 1 or x.shape != y.shape:
            raise InvalidInputError("x and y must be one-dimensional and the same length")
        if x.size == 0:
            raise InvalidInputError("series must not be empty")
        if not (np.isfinite(x).all() and np.isfinite(y).all()):
            raise InvalidInputError("series values must be finite")
        if np.any(np.diff(x) <= 0):
            raise InvalidInputError("x must be strictly increasing")
        if np.any(np.diff(y) < 0):
            raise InvalidInputError("y must be non-decreasing")
        if y.min() < 0.0 or y.max() > 1.0:
            raise InvalidInputError("y must lie in [0, 1]")
        if self.total is not None and not (np.isfinite(self.total) and self.total > 0):
            raise InvalidInputError("total must be a positive finite count")
        x.flags.writeable = False
        y.flags.writeable = False
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)

    def __len__(self) -> int:
        return int(self.x.size)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"x": self.x, "y": self.y})


def _records_to_frame(records: Iterable[RawCountRecord]) -> pd.DataFrame:
    rows = [(rec.group, rec.x, rec.count) for rec in records]
    if not rows:
        raise InvalidInputError("No records supplied")
    frame = pd.DataFrame(rows, columns=[_GROUP, _TIME, _COUNT])
    try:
        frame[_TIME] = frame[_TIME].astype(float)
        frame[_COUNT] = frame[_COUNT].astype(float)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Times and counts must be numeric: {exc}") from exc

    if not np.isfinite(frame[_TIME].to_numpy()).all():
        raise InvalidInputError("Times must be finite")
    counts = frame[_COUNT].to_numpy()
    if not np.isfinite(counts).all():
        raise InvalidInputError("Counts must be finite")
    if (counts < 0).any():
        bad = frame.loc[frame[_COUNT] < 0, [_GROUP, _TIME, _COUNT]].to_dict("records")
        raise InvalidInputError(f"Counts must be non-negative, got {bad}")
    return frame


def _cumulative_series(group: Optional[Hashable], frame: pd.DataFrame, min_points: int) -> ObservationSeries:
    merged = frame.groupby(_TIME, sort=True)[_COUNT].sum()
    ensure_minimum_points(len(merged), min_required=min_points, group=group)

    total = float(merged.sum())
    if total <= 0.0:
        log.warning("Rejecting group with zero total count", extra={"group": group})
        raise InvalidInputError(f"Total count for group {group!r} is zero")

    cumulative = merged.cumsum().to_numpy() / total
    # guard the last point against rounding in the running sum
    cumulative[-1] = 1.0
    cumulative = np.clip(cumulative, 0.0, 1.0)
    return ObservationSeries(
        x=merged.index.to_numpy(dtype=float),
        y=cumulative,
        group=group,
        total=total,
    )


def prepare_series(
    records: Iterable[RawCountRecord],
    min_points: int = MIN_POINTS,
) -> Dict[Optional[Hashable], ObservationSeries]:
    """Build one cumulative proportion series per group.

    Records without a group share the implicit ``None`` group. Ties in ``x`` are
    summed into a single point before the cumulative sum. Groups appear in the
    order they are first seen.
    """

    frame = _records_to_frame(records)
    series: Dict[Optional[Hashable], ObservationSeries] = {}
    for group, group_frame in frame.groupby(_GROUP, sort=False, dropna=False):
        label = None if pd.isna(group) else group
        series[label] = _cumulative_series(label, group_frame, min_points)

    log.info("Prepared observation series", extra={"n_groups": len(series)})
    return series


def records_from_frame(
    frame: pd.DataFrame,
    time_col: str = "time",
    count_col: str = "count",
    group_col: Optional[str] = None,
) -> List[RawCountRecord]:
    """Adapt an already-loaded table into raw count records."""

    required = [time_col, count_col] + ([group_col] if group_col else [])
    missing = [c for c in required if c not in frame.columns]
    if missing:
        raise InvalidInputError(f"Missing required columns: {missing}")

    groups = frame[group_col].tolist() if group_col else [None] * len(frame)
    return [
        RawCountRecord(x=x, count=count, group=group)
        for x, count, group in zip(frame[time_col].tolist(), frame[count_col].tolist(), groups)
    ]


__all__ = ["ObservationSeries", "RawCountRecord", "prepare_series", "records_from_frame"]
