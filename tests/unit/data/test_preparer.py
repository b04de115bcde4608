import numpy as np
import pandas as pd
import pytest

from event_timing_engine.data.preparer import (
    ObservationSeries,
    RawCountRecord,
    prepare_series,
    records_from_frame,
)
from event_timing_engine.exceptions import InvalidInputError


def _records(pairs, group=None):
    return [RawCountRecord(x=x, count=c, group=group) for x, c in pairs]


def test_prepare_series_merges_ties_and_sorts():
    records = _records([(3, 2), (1, 1), (3, 1), (2, 0), (4, 4)])
    series = prepare_series(records)[None]

    assert series.x.tolist() == [1.0, 2.0, 3.0, 4.0]
    assert series.y.tolist() == pytest.approx([0.125, 0.125, 0.5, 1.0])
    assert series.total == pytest.approx(8.0)
    assert series.group is None


def test_prepare_series_is_non_decreasing_and_ends_at_one():
    rng = np.random.default_rng(7)
    counts = rng.integers(0, 50, size=30)
    counts[0] = 3
    series = prepare_series(_records(zip(range(30), counts)))[None]

    assert np.all(np.diff(series.y) >= 0)
    assert series.y[-1] == 1.0
    assert series.y.min() >= 0.0


def test_prepare_series_keeps_first_seen_group_order():
    records = _records([(1, 1), (2, 1), (3, 1), (4, 1)], group="b") + _records(
        [(1, 2), (2, 2), (3, 2), (4, 2)], group="a"
    )
    series = prepare_series(records)

    assert list(series) == ["b", "a"]
    assert series["a"].total == pytest.approx(8.0)


def test_prepare_series_rejects_all_zero_counts():
    with pytest.raises(InvalidInputError, match="zero"):
        prepare_series(_records([(1, 0), (2, 0), (3, 0), (4, 0)]))


def test_prepare_series_rejects_negative_counts():
    with pytest.raises(InvalidInputError, match="non-negative"):
        prepare_series(_records([(1, 1), (2, -1), (3, 1), (4, 1)]))


def test_prepare_series_rejects_non_finite_time():
    with pytest.raises(InvalidInputError, match="finite"):
        prepare_series(_records([(1, 1), (float("nan"), 1), (3, 1), (4, 1)]))


def test_prepare_series_requires_minimum_distinct_times():
    # four records but only three distinct times
    with pytest.raises(InvalidInputError, match="Insufficient data"):
        prepare_series(_records([(1, 1), (2, 1), (2, 1), (3, 1)]))


def test_prepare_series_rejects_empty_input():
    with pytest.raises(InvalidInputError):
        prepare_series([])


def test_observation_series_validates_shape_and_order():
    with pytest.raises(InvalidInputError):
        ObservationSeries(x=[1.0, 1.0, 2.0], y=[0.1, 0.2, 1.0])
    with pytest.raises(InvalidInputError):
        ObservationSeries(x=[1.0, 2.0, 3.0], y=[0.5, 0.2, 1.0])
    with pytest.raises(InvalidInputError):
        ObservationSeries(x=[1.0, 2.0], y=[0.5, 1.2])


def test_observation_series_arrays_are_read_only():
    series = ObservationSeries(x=[1.0, 2.0, 3.0, 4.0], y=[0.1, 0.4, 0.8, 1.0])
    with pytest.raises(ValueError):
        series.x[0] = 10.0
    assert len(series) == 4
    assert list(series.to_frame().columns) == ["x", "y"]


def test_records_from_frame_maps_columns():
    frame = pd.DataFrame({"day": [1, 2, 3, 4], "n": [5, 3, 2, 1], "site": ["a", "a", "b", "b"]})
    records = records_from_frame(frame, time_col="day", count_col="n", group_col="site")

    assert records[0] == RawCountRecord(x=1, count=5, group="a")
    assert [r.group for r in records] == ["a", "a", "b", "b"]


def test_records_from_frame_reports_missing_columns():
    frame = pd.DataFrame({"time": [1, 2], "count": [1, 1]})
    with pytest.raises(InvalidInputError, match="site"):
        records_from_frame(frame, group_col="site")
