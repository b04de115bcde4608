"""Curve evaluation exposed to renderers.

Renderers receive plain arrays or a tidy DataFrame and never call into the
fitting code themselves. Multiple groups are passed as an ordered sequence of
fitted models with one scale factor per model.
"""

from __future__ import annotations

from typing import Literal, Optional, Sequence

import numpy as np
import pandas as pd

from event_timing_engine.distributions.model import cumulative, density
from event_timing_engine.distributions.models import FittedModel
from event_timing_engine.exceptions import InvalidInputError

CurveKind = Literal["cumulative", "density"]


def _scaled(values: np.ndarray | float, scale: float) -> np.ndarray:
    if not np.isfinite(scale):
        raise InvalidInputError(f"scale must be finite, got {scale}")
    return np.atleast_1d(np.asarray(values, dtype=float)) * float(scale)


def evaluate_density(model: FittedModel, x_values: Sequence[float], scale: float = 1.0) -> np.ndarray:
    return _scaled(density(np.asarray(x_values, dtype=float), model.parameters), scale)


def evaluate_cumulative(model: FittedModel, x_values: Sequence[float], scale: float = 1.0) -> np.ndarray:
    return _scaled(cumulative(np.asarray(x_values, dtype=float), model.parameters), scale)


def _label(model: FittedModel, index: int) -> str:
    group = model.series.group
    return str(group) if group is not None else f"model_{index}"


def curve_table(
    models: Sequence[FittedModel],
    scales: Optional[Sequence[float]] = None,
    x_values: Optional[Sequence[float]] = None,
    kind: CurveKind = "cumulative",
    n_points: int = 200,
) -> pd.DataFrame:
    """Long-format table with columns ``model_index, label, x, value`` for every model.

    ``scales`` defaults to 1 per model and must match ``models`` in length.
    Without ``x_values`` a shared grid spans the observed times of all models.
    """

    models = list(models)
    if not models:
        raise InvalidInputError("At least one fitted model is required")
    scales = [1.0] * len(models) if scales is None else list(scales)
    if len(scales) != len(models):
        raise InvalidInputError(f"Got {len(models)} models but {len(scales)} scale factors")
    if kind not in ("cumulative", "density"):
        raise InvalidInputError(f"kind must be 'cumulative' or 'density', got {kind!r}")

    if x_values is None:
        lo = min(float(m.series.x[0]) for m in models)
        hi = max(float(m.series.x[-1]) for m in models)
        grid = np.linspace(lo, hi, n_points)
    else:
        grid = np.asarray(x_values, dtype=float)

    evaluate = evaluate_cumulative if kind == "cumulative" else evaluate_density
    frames = [
        pd.DataFrame(
            {
                "model_index": i,
                "label": _label(model, i),
                "x": grid,
                "value": evaluate(model, grid, scale),
            }
        )
        for i, (model, scale) in enumerate(zip(models, scales))
    ]
    return pd.concat(frames, ignore_index=True)


__all__ = ["CurveKind", "curve_table", "evaluate_cumulative", "evaluate_density"]
