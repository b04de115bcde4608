"""Event timing engine: cumulative timing curves fitted to event counts."""

from event_timing_engine.data.preparer import ObservationSeries, RawCountRecord, prepare_series
from event_timing_engine.distributions.fitters.curve_fitter import fit, initial_guess
from event_timing_engine.distributions.model import DistributionModel
from event_timing_engine.distributions.models import FittedModel, ModelParameters, MomentSet
from event_timing_engine.distributions.moments import get_moments
from event_timing_engine.distributions.percentiles import percentile, percentiles

__all__ = [
    "DistributionModel",
    "FittedModel",
    "ModelParameters",
    "MomentSet",
    "ObservationSeries",
    "RawCountRecord",
    "fit",
    "get_moments",
    "initial_guess",
    "percentile",
    "percentiles",
    "prepare_series",
]
