import numpy as np
import pytest

from event_timing_engine.data.preparer import ObservationSeries
from event_timing_engine.distributions.model import cumulative, density
from event_timing_engine.distributions.models import FittedModel, ModelParameters
from event_timing_engine.distributions.plotting.curves import curve_table, evaluate_cumulative, evaluate_density
from event_timing_engine.exceptions import InvalidInputError


def _model(params, group=None):
    x = np.arange(1.0, 26.0)
    series = ObservationSeries(x=x, y=np.asarray(cumulative(x, params)), group=group, total=200.0)
    return FittedModel(
        parameters=params,
        iterations=5,
        rss=0.0,
        residual_norm=0.0,
        covariance=np.zeros((3, 3)),
        standard_errors=(0.0, 0.0, 0.0),
        series=series,
    )


A = _model(ModelParameters(0.04, 1.0, 12.5), group="north")
B = _model(ModelParameters(0.05, 3.0, 10.0))


def test_evaluate_functions_apply_scale():
    grid = [5.0, 12.5, 20.0]
    np.testing.assert_allclose(evaluate_density(A, grid, scale=200.0), 200.0 * density(np.array(grid), A.parameters))
    np.testing.assert_allclose(evaluate_cumulative(A, grid), cumulative(np.array(grid), A.parameters))


def test_evaluate_rejects_non_finite_scale():
    with pytest.raises(InvalidInputError):
        evaluate_density(A, [1.0], scale=float("inf"))


def test_curve_table_lists_every_model_in_order():
    table = curve_table([A, B], scales=[200.0, 1.0], n_points=11)

    assert list(table.columns) == ["model_index", "label", "x", "value"]
    assert len(table) == 22
    assert table["label"].unique().tolist() == ["north", "model_1"]
    first = table[table["model_index"] == 0]
    assert first["value"].iloc[-1] == pytest.approx(200.0 * cumulative(25.0, A.parameters))


def test_curve_table_uses_given_grid_for_density():
    table = curve_table([B], x_values=[10.0], kind="density")
    assert table["value"].iloc[0] == pytest.approx(density(10.0, B.parameters))


def test_curve_table_requires_matching_scales():
    with pytest.raises(InvalidInputError, match="scale factors"):
        curve_table([A, B], scales=[1.0])


def test_curve_table_rejects_empty_and_unknown_kind():
    with pytest.raises(InvalidInputError):
        curve_table([])
    with pytest.raises(InvalidInputError):
        curve_table([A], kind="hazard")
