"""Convergence failure helpers for curve fitting."""

from __future__ import annotations

from typing import Hashable, Sequence

from event_timing_engine.exceptions import ConvergenceError
from event_timing_engine.utils.logging import get_logger

log = get_logger(__name__, component="fit_errors")


def convergence_failure(
    *,
    last_iterate: Sequence[float],
    residual_norm: float,
    iterations: int,
    max_iterations: int,
    message: str = "",
    group: Hashable | None = None,
) -> ConvergenceError:
    """Log diagnostics for a failed fit and build the error the caller raises."""

    iterate = [float(v) for v in last_iterate]
    text = (
        f"Fit did not converge within {max_iterations} iterations "
        f"(residual norm {residual_norm:.6g}, last iterate {iterate})"
    )
    if message:
        text = f"{text}: {message}"

    log.warning(
        "Model failed to converge",
        extra={
            "group": group,
            "iterations": iterations,
            "residual_norm": residual_norm,
            "last_iterate": iterate,
            "status": "FAILED",
        },
    )
    return ConvergenceError(
        text,
        last_iterate=iterate,
        residual_norm=residual_norm,
        iterations=iterations,
    )


__all__ = ["convergence_failure"]
