"""
Overlay plots of fitted event-timing curves.

Draws the cumulative curves with their observed proportions and the density
curves of several fitted groups on one figure. Curves come from
``curve_table`` so the renderer only sees evaluated values.
"""

from __future__ import annotations

from itertools import cycle
from pathlib import Path
from typing import Optional, Sequence

import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from event_timing_engine.distributions.models import FittedModel
from event_timing_engine.distributions.plotting.curves import curve_table
from event_timing_engine.exceptions import InvalidInputError
from event_timing_engine.utils.logging import get_logger

log = get_logger(__name__, component="overlay_plot")

# Colorblind-friendly Wong palette, one line style per slot
GROUP_STYLES = [
    {"color": "#0072B2", "linestyle": "-", "marker": "o"},
    {"color": "#E69F00", "linestyle": "--", "marker": "s"},
    {"color": "#009E73", "linestyle": "-.", "marker": "^"},
    {"color": "#CC79A7", "linestyle": ":", "marker": "D"},
    {"color": "#D55E00", "linestyle": "-", "marker": "v"},
    {"color": "#56B4E9", "linestyle": "--", "marker": "P"},
]


def _format_legend_label(label: str, model: FittedModel) -> str:
    """
    Example output:
    "25C (r=0.0400, c=0.5000, t=12.5000) | R2=0.998"
    """
    p = model.parameters
    return f"{label} (r={p.rate:.4f}, c={p.concentration:.4f}, t={p.lag:.4f}) | R2={model.r_squared:.3f}"


def plot_fitted_curves(
    models: Sequence[FittedModel],
    scales: Optional[Sequence[float]] = None,
    title: str = "Event timing fits",
    xlabel: str = "Time",
    output_path: Optional[Path] = None,
    n_points: int = 300,
) -> Figure:
    """
    Render cumulative and density panels for an ordered sequence of models.

    Parameters
    ----------
    models : Sequence[FittedModel]
        Fitted models, one per group, drawn in order
    scales : Optional[Sequence[float]]
        Multiplier per model (e.g. group totals to plot counts instead of
        proportions); defaults to 1 for every model
    output_path : Optional[Path]
        If provided, save figure to this path

    Returns
    -------
    Figure
        Matplotlib figure object
    """
    models = list(models)
    scales = [1.0] * len(models) if scales is None else list(scales)
    if len(scales) != len(models):
        raise InvalidInputError(f"Got {len(models)} models but {len(scales)} scale factors")

    cdf_table = curve_table(models, scales, kind="cumulative", n_points=n_points)
    pdf_table = curve_table(models, scales, kind="density", n_points=n_points)

    fig, (ax_cdf, ax_pdf) = plt.subplots(1, 2, figsize=(14, 5))
    fig.suptitle(title, fontsize=14, fontweight="bold")

    for index, (model, scale, style) in enumerate(zip(models, scales, cycle(GROUP_STYLES))):
        curve = cdf_table[cdf_table["model_index"] == index]
        label = str(curve["label"].iloc[0])
        ax_cdf.plot(
            curve["x"],
            curve["value"],
            label=_format_legend_label(label, model),
            color=style["color"],
            linestyle=style["linestyle"],
            linewidth=2.0,
        )
        ax_cdf.scatter(
            model.series.x,
            model.series.y * scale,
            color=style["color"],
            marker=style["marker"],
            s=30,
            alpha=0.8,
            edgecolors="black",
            linewidths=0.5,
        )
        density_curve = pdf_table[pdf_table["model_index"] == index]
        ax_pdf.plot(
            density_curve["x"],
            density_curve["value"],
            label=label,
            color=style["color"],
            linestyle=style["linestyle"],
            linewidth=2.0,
        )

    ax_cdf.set_xlabel(xlabel)
    ax_cdf.set_ylabel("Cumulative proportion" if all(s == 1.0 for s in scales) else "Cumulative (scaled)")
    ax_cdf.set_title("Cumulative curves")
    ax_cdf.legend(loc="lower right", fontsize=8)
    ax_cdf.grid(True, alpha=0.3)

    ax_pdf.set_xlabel(xlabel)
    ax_pdf.set_ylabel("Density")
    ax_pdf.set_title("Density curves")
    ax_pdf.legend(loc="upper right", fontsize=8)
    ax_pdf.grid(True, alpha=0.3)

    fig.tight_layout()

    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=150, bbox_inches="tight")
        log.info("Saved overlay plot", extra={"path": str(output_path)})

    return fig


__all__ = ["plot_fitted_curves"]
