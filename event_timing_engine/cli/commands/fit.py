"""Fit CLI command wiring."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import typer

from event_timing_engine.cli.validation import parse_triple, validate_fit_inputs
from event_timing_engine.config.loader import load_config_with_precedence
from event_timing_engine.data.preparer import prepare_series, records_from_frame
from event_timing_engine.distributions.fitters.curve_fitter import initial_guess
from event_timing_engine.distributions.models import FittedModel, ModelParameters
from event_timing_engine.distributions.moments import get_moments
from event_timing_engine.distributions.percentiles import percentiles as compute_percentiles
from event_timing_engine.exceptions import InvalidInputError
from event_timing_engine.schema.fit_config import FitConfig
from event_timing_engine.simulation.batch import fit_groups
from event_timing_engine.utils.logging import get_logger

log = get_logger(__name__, component="cli_fit")


def _to_list(value: Any) -> List[float]:
    if isinstance(value, str):
        return [float(p) for p in value.split(",") if p.strip()]
    return [float(p) for p in value]


def _model_report(model: FittedModel, probabilities: List[float]) -> Dict[str, Any]:
    report = model.summary()
    report["group"] = None if model.series.group is None else str(model.series.group)
    report["confidence_intervals"] = {k: list(v) for k, v in model.confidence_intervals().items()}
    report["moments"] = get_moments(model).to_dict()
    if probabilities:
        values = compute_percentiles(model, probabilities)
        report["percentiles"] = {f"{p:g}": float(x) for p, x in zip(probabilities, values)}
    return report


def fit(
    data: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV file with time/count columns"),
    config: Path | None = typer.Option(None, "--config", help="Optional JSON config path"),
    time_col: str | None = typer.Option(None, "--time-col", help="Time column name"),
    count_col: str | None = typer.Option(None, "--count-col", help="Event count column name"),
    group_col: str | None = typer.Option(None, "--group-col", help="Optional group column name"),
    initial: str | None = typer.Option(None, "--initial", help="Starting values 'r,c,t' (default: estimated per group)"),
    lower: str | None = typer.Option(None, "--lower", help="Lower bounds 'r,c,t'"),
    upper: str | None = typer.Option(None, "--upper", help="Upper bounds 'r,c,t'"),
    max_iterations: int | None = typer.Option(None, "--max-iterations", help="Solver iteration cap"),
    method: str | None = typer.Option(None, "--method", help="Solver method: trf, dogbox or lm"),
    percentile: Optional[List[float]] = typer.Option(None, "--percentile", help="Probability to invert (repeatable)"),
    workers: int | None = typer.Option(None, "--workers", help="Parallel worker processes"),
    plot: Path | None = typer.Option(None, "--plot", help="Save an overlay plot to this path"),
    scale_by_total: bool = typer.Option(False, "--scale-by-total/--no-scale-by-total", help="Plot counts instead of proportions"),
) -> None:
    defaults = {
        "time_col": "time",
        "count_col": "count",
        "group_col": None,
        "initial": None,
        "lower": None,
        "upper": None,
        "max_iterations": 50,
        "method": "trf",
        "percentiles": [0.1, 0.5, 0.9],
        "workers": 1,
    }
    cli_values = {
        "time_col": time_col,
        "count_col": count_col,
        "group_col": group_col,
        "initial": initial,
        "lower": lower,
        "upper": upper,
        "max_iterations": max_iterations,
        "method": method,
        "percentiles": list(percentile) if percentile else None,
        "workers": workers,
    }
    casters = {
        "time_col": str,
        "count_col": str,
        "group_col": str,
        "max_iterations": int,
        "method": str,
        "percentiles": _to_list,
        "workers": int,
    }

    cfg = load_config_with_precedence(
        config_path=config,
        env_prefix="ETE_",
        cli_values=cli_values,
        defaults=defaults,
        casters=casters,
    )
    probabilities = validate_fit_inputs(
        max_iterations=cfg["max_iterations"],
        max_workers=cfg["workers"],
        probabilities=cfg["percentiles"],
        method=cfg["method"],
    )
    start = parse_triple("initial", cfg["initial"])
    lower_bounds = parse_triple("lower", cfg["lower"])
    upper_bounds = parse_triple("upper", cfg["upper"])
    fit_config = FitConfig(max_iterations=cfg["max_iterations"], method=cfg["method"])

    frame = pd.read_csv(data)
    records = records_from_frame(frame, cfg["time_col"], cfg["count_col"], cfg["group_col"])
    series_by_group = prepare_series(records, min_points=fit_config.min_points)
    log.info("Loaded dataset", extra={"path": str(data), "n_groups": len(series_by_group)})

    if start is not None:
        initial_by_group = {group: ModelParameters.from_sequence(start) for group in series_by_group}
    else:
        initial_by_group = {group: initial_guess(s) for group, s in series_by_group.items()}

    result = fit_groups(
        series_by_group,
        initial_by_group,
        lower_bounds,
        upper_bounds,
        config=fit_config,
        max_workers=cfg["workers"],
    )

    output = {
        "fits": [_model_report(model, probabilities) for model in result.models.values()],
        "failures": [
            {"group": None if group is None else str(group), "error": type(exc).__name__, "message": str(exc)}
            for group, exc in result.errors.items()
        ],
    }
    typer.echo(json.dumps(output, indent=2))

    if plot is not None and result.models:
        from event_timing_engine.distributions.plotting.overlay import plot_fitted_curves

        models = list(result.models.values())
        scales = [m.series.total or 1.0 for m in models] if scale_by_total else None
        plot_fitted_curves(models, scales, output_path=plot)

    if result.errors:
        first_group, first_error = next(iter(result.errors.items()))
        log.error("Some groups failed to fit", extra={"group": first_group, "n_failed": len(result.errors)})
        raise first_error
    if not result.models:
        raise InvalidInputError("No groups were fitted")
