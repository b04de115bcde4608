"""Independent fits over several groups with optional process parallelism."""

from __future__ import annotations

import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Hashable, Mapping, Optional

from event_timing_engine.data.preparer import ObservationSeries
from event_timing_engine.distributions.fitters.curve_fitter import Bounds, fit
from event_timing_engine.distributions.models import FittedModel, ModelParameters
from event_timing_engine.exceptions import EventTimingError, InvalidInputError
from event_timing_engine.schema.fit_config import FitConfig
from event_timing_engine.utils.logging import get_logger

log = get_logger(__name__, component="batch_fit")

StartValues = ModelParameters | Mapping[Optional[Hashable], ModelParameters]


@dataclass
class BatchFitResult:
    """Fitted models and per-group failures, both in input order."""

    models: Dict[Optional[Hashable], FittedModel] = field(default_factory=dict)
    errors: Dict[Optional[Hashable], EventTimingError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


def _clamp_workers(max_workers: int) -> int:
    return max(1, min(int(max_workers), os.cpu_count() or 1))


def _check_start_values(groups: list, initial: StartValues) -> None:
    if isinstance(initial, ModelParameters):
        return
    missing = [group for group in groups if group not in initial]
    if missing:
        raise InvalidInputError(f"No starting parameters for groups: {missing}")


def _initial_for(group: Optional[Hashable], initial: StartValues) -> ModelParameters:
    if isinstance(initial, ModelParameters):
        return initial
    return initial[group]


def _fit_one(
    series: ObservationSeries,
    initial: ModelParameters,
    lower_bounds: Optional[Bounds],
    upper_bounds: Optional[Bounds],
    config: FitConfig,
) -> FittedModel:
    return fit(series, initial, lower_bounds, upper_bounds, config=config)


def fit_groups(
    series_by_group: Mapping[Optional[Hashable], ObservationSeries],
    initial: StartValues,
    lower_bounds: Optional[Bounds] = None,
    upper_bounds: Optional[Bounds] = None,
    *,
    config: Optional[FitConfig] = None,
    max_workers: int = 1,
) -> BatchFitResult:
    """Fit every group; a failing group is recorded in ``errors``, never defaulted.

    ``initial`` is either one starting triple for all groups or a mapping keyed
    by group; a mapping that lacks any group raises InvalidInputError before
    fitting starts. Fits share no state, so ``max_workers > 1`` runs them in
    separate processes.
    """

    config = config or FitConfig()
    groups = list(series_by_group)
    _check_start_values(groups, initial)
    worker_count = _clamp_workers(max_workers)
    outcomes: Dict[Optional[Hashable], FittedModel | EventTimingError] = {}

    if worker_count == 1:
        for group in groups:
            try:
                outcomes[group] = _fit_one(
                    series_by_group[group], _initial_for(group, initial), lower_bounds, upper_bounds, config
                )
            except EventTimingError as exc:
                outcomes[group] = exc
    else:
        with ProcessPoolExecutor(max_workers=worker_count) as executor:
            futures = {
                executor.submit(
                    _fit_one,
                    series_by_group[group],
                    _initial_for(group, initial),
                    lower_bounds,
                    upper_bounds,
                    config,
                ): group
                for group in groups
            }
            for fut in as_completed(futures):
                group = futures[fut]
                try:
                    outcomes[group] = fut.result()
                except EventTimingError as exc:
                    outcomes[group] = exc

    result = BatchFitResult()
    for group in groups:
        outcome = outcomes[group]
        if isinstance(outcome, EventTimingError):
            log.error("fit failed for group", extra={"group": group, "error": str(outcome)})
            result.errors[group] = outcome
        else:
            result.models[group] = outcome

    log.info(
        "batch fit complete",
        extra={"n_groups": len(groups), "n_failed": len(result.errors)},
    )
    return result


__all__ = ["BatchFitResult", "fit_groups"]
