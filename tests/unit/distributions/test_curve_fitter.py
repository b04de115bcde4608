import numpy as np
import pytest

from event_timing_engine.data.preparer import ObservationSeries
from event_timing_engine.distributions.fitters.curve_fitter import fit, initial_guess, narrow_rate_bounds
from event_timing_engine.distributions.model import cumulative
from event_timing_engine.distributions.models import ModelParameters
from event_timing_engine.exceptions import ConvergenceError, InvalidInputError
from event_timing_engine.interfaces.minimizer import Minimizer, MinimizerResult
from event_timing_engine.schema.fit_config import FitConfig

TRUE = ModelParameters(rate=0.04, concentration=0.5, lag=12.5)
START = ModelParameters(rate=0.03, concentration=0.5, lag=14.5)


def _synthetic_series(params=TRUE, noise=0.0, seed=42, stop=25):
    x = np.arange(1.0, stop + 1.0)
    y = np.asarray(cumulative(x, params))
    if noise:
        rng = np.random.default_rng(seed)
        y = np.maximum.accumulate(np.clip(y + rng.normal(0.0, noise, size=y.size), 0.0, 1.0))
    return ObservationSeries(x=x, y=y)


class _StalledMinimizer(Minimizer):
    name = "stalled"

    def minimize(self, residual_fn, initial, lower, upper, max_iterations, jacobian_fn=None):
        return MinimizerResult(
            params=np.asarray(initial) + 0.01,
            covariance=np.full((3, 3), np.nan),
            iterations=max_iterations,
            converged=False,
            residual_norm=0.75,
            message="budget exhausted",
        )


class _FixedMinimizer(Minimizer):
    name = "fixed"

    def minimize(self, residual_fn, initial, lower, upper, max_iterations, jacobian_fn=None):
        residuals = residual_fn(np.asarray(initial))
        return MinimizerResult(
            params=np.asarray(initial),
            covariance=np.diag([4e-6, 9e-4, 1e-2]),
            iterations=3,
            converged=True,
            residual_norm=float(np.linalg.norm(residuals)),
        )


def test_fit_recovers_known_parameters():
    fitted = fit(_synthetic_series(), START)

    assert fitted.parameters.rate == pytest.approx(TRUE.rate, rel=0.1)
    assert fitted.parameters.concentration == pytest.approx(TRUE.concentration, rel=0.1)
    assert fitted.parameters.lag == pytest.approx(TRUE.lag, rel=0.1)
    assert fitted.rss < 1e-6
    assert fitted.iterations >= 1
    assert fitted.method == "scipy.least_squares"


def test_fit_on_noisy_data_reports_uncertainty():
    series = _synthetic_series(noise=0.003, stop=60)
    fitted = fit(series, START)

    assert fitted.parameters.lag == pytest.approx(TRUE.lag, rel=0.1)
    assert fitted.r_squared > 0.99
    assert fitted.covariance.shape == (3, 3)
    assert all(np.isfinite(se) and se > 0 for se in fitted.standard_errors)
    lo, hi = fitted.confidence_intervals()["lag"]
    assert lo < fitted.parameters.lag < hi
    assert fitted.degrees_of_freedom == len(series) - 3


def test_refit_from_solution_is_stable():
    series = _synthetic_series(noise=0.003, stop=60)
    first = fit(series, START)
    second = fit(series, first.parameters)

    np.testing.assert_allclose(second.parameters.as_array(), first.parameters.as_array(), rtol=1e-3)


def test_fit_respects_bounds():
    fitted = fit(
        _synthetic_series(),
        ModelParameters(0.035, 0.5, 13.0),
        lower_bounds=(0.03, 0.0, 10.0),
        upper_bounds=(0.05, 5.0, 15.0),
    )
    p = fitted.parameters
    assert 0.03 <= p.rate <= 0.05
    assert 0.0 <= p.concentration <= 5.0
    assert 10.0 <= p.lag <= 15.0


@pytest.mark.parametrize(
    "lower, upper",
    [
        ((0.05, 0.0, 0.0), (0.01, 5.0, 20.0)),
        ((0.01, float("nan"), 0.0), (0.05, 5.0, 20.0)),
        ((0.01, 0.0), (0.05, 5.0, 20.0)),
    ],
)
def test_fit_rejects_invalid_bounds(lower, upper):
    with pytest.raises(InvalidInputError):
        fit(_synthetic_series(), START, lower, upper)


def test_fit_rejects_start_outside_bounds():
    with pytest.raises(InvalidInputError, match="outside bounds"):
        fit(_synthetic_series(), START, (0.035, 0.0, 0.0), (0.05, 5.0, 20.0))


def test_fit_rejects_non_finite_start():
    with pytest.raises(InvalidInputError, match="finite"):
        fit(_synthetic_series(), ModelParameters(float("inf"), 0.5, 12.0))


def test_fit_rejects_zero_iteration_budget():
    with pytest.raises(InvalidInputError, match="max_iterations"):
        fit(_synthetic_series(), START, max_iterations=0)


def test_fit_raises_convergence_error_with_diagnostics():
    with pytest.raises(ConvergenceError) as excinfo:
        fit(_synthetic_series(), START, max_iterations=1, minimizer=_StalledMinimizer())

    err = excinfo.value
    assert err.iterations == 1
    assert err.residual_norm == pytest.approx(0.75)
    assert err.last_iterate == pytest.approx((0.04, 0.51, 14.51))
    assert "budget exhausted" in str(err)


def test_fit_uses_minimizer_covariance():
    fitted = fit(_synthetic_series(), TRUE, minimizer=_FixedMinimizer())

    assert fitted.standard_errors == pytest.approx((2e-3, 3e-2, 1e-1))
    assert fitted.method == "fixed"
    assert fitted.rss == pytest.approx(0.0, abs=1e-20)
    assert not fitted.covariance.flags.writeable


def test_levenberg_marquardt_rejects_bounds():
    with pytest.raises(InvalidInputError, match="lm"):
        fit(
            _synthetic_series(),
            START,
            lower_bounds=(0.0, 0.0, 0.0),
            upper_bounds=(1.0, 5.0, 30.0),
            config=FitConfig(method="lm"),
        )


def test_levenberg_marquardt_unbounded_fit():
    fitted = fit(_synthetic_series(), START, config=FitConfig(method="lm"))
    assert fitted.parameters.lag == pytest.approx(TRUE.lag, rel=0.01)


def test_initial_guess_places_half_mass_at_median():
    guess = initial_guess(_synthetic_series())

    # F(x) = 0.5 near x = 18 for the reference curve
    assert 17.0 < guess.lag < 19.0
    assert 1.0 - (1.0 - guess.rate / 2.0) ** guess.lag == pytest.approx(0.5)
    assert guess.concentration == 1.0


def test_initial_guess_without_half_mass_uses_median_time():
    series = ObservationSeries(x=np.array([1.0, 2.0, 3.0, 4.0]), y=np.array([0.05, 0.1, 0.2, 0.3]))
    guess = initial_guess(series)

    assert guess.lag == pytest.approx(2.5)
    assert 0.0 < guess.rate < 1.0


def test_fit_holds_parameter_with_equal_bounds():
    series = _synthetic_series()
    fitted = fit(series, START, (0.0, 0.5, 0.0), (1.0, 0.5, 30.0))

    assert fitted.parameters.concentration == 0.5
    assert fitted.parameters.rate == pytest.approx(TRUE.rate, rel=0.1)
    assert fitted.parameters.lag == pytest.approx(TRUE.lag, rel=0.1)
    assert fitted.fixed == (False, True, False)
    assert fitted.standard_errors[1] == 0.0
    np.testing.assert_array_equal(fitted.covariance[1], 0.0)
    np.testing.assert_array_equal(fitted.covariance[:, 1], 0.0)
    assert fitted.degrees_of_freedom == len(series) - 2
    assert fitted.summary()["fixed"] == ["concentration"]


def test_fixed_parameter_is_left_out_of_solver_vector():
    seen = []

    class _Recording(_FixedMinimizer):
        def minimize(self, residual_fn, initial, lower, upper, max_iterations, jacobian_fn=None):
            seen.append((np.asarray(initial).copy(), np.asarray(lower).copy(), jacobian_fn(initial).shape))
            residuals = residual_fn(np.asarray(initial))
            return MinimizerResult(
                params=np.asarray(initial),
                covariance=np.diag([4e-6, 1e-2]),
                iterations=2,
                converged=True,
                residual_norm=float(np.linalg.norm(residuals)),
            )

    fitted = fit(_synthetic_series(), TRUE, (0.0, 0.5, 0.0), (1.0, 0.5, 30.0), minimizer=_Recording())

    initial, lower, jac_shape = seen[0]
    np.testing.assert_array_equal(initial, [TRUE.rate, TRUE.lag])
    np.testing.assert_array_equal(lower, [0.0, 0.0])
    assert jac_shape == (25, 2)
    assert fitted.standard_errors == pytest.approx((2e-3, 0.0, 1e-1))


def test_convergence_error_reports_full_iterate_with_fixed_parameter():
    with pytest.raises(ConvergenceError) as excinfo:
        fit(
            _synthetic_series(),
            START,
            (0.0, 0.5, 0.0),
            (1.0, 0.5, 30.0),
            max_iterations=1,
            minimizer=_StalledMinimizer(),
        )
    assert excinfo.value.last_iterate == pytest.approx((0.04, 0.5, 14.51))


def test_fit_with_every_parameter_fixed_evaluates_the_curve():
    bounds = TRUE.as_array().tolist()
    fitted = fit(_synthetic_series(), TRUE, bounds, bounds)

    assert fitted.iterations == 0
    assert fitted.parameters == TRUE
    assert fitted.rss == pytest.approx(0.0, abs=1e-20)
    np.testing.assert_array_equal(fitted.covariance, 0.0)
    assert fitted.degrees_of_freedom == 25


def test_repeated_fits_are_identical():
    series = _synthetic_series(noise=0.003, stop=60)
    first = fit(series, START)
    second = fit(series, START)

    np.testing.assert_array_equal(first.parameters.as_array(), second.parameters.as_array())
    assert first.rss == second.rss
    assert first.iterations == second.iterations
    np.testing.assert_array_equal(first.covariance, second.covariance)


def test_narrow_rate_bounds_only_touches_rate():
    lower, upper = narrow_rate_bounds(0.04, factor=0.25, lower_bounds=(0.0, -1.0, 5.0), upper_bounds=(1.0, 3.0, 20.0))

    assert lower == pytest.approx((0.03, -1.0, 5.0))
    assert upper == pytest.approx((0.05, 3.0, 20.0))


def test_narrow_rate_bounds_rejects_bad_rate():
    with pytest.raises(InvalidInputError):
        narrow_rate_bounds(0.0)
    with pytest.raises(InvalidInputError):
        narrow_rate_bounds(0.04, factor=1.5)
