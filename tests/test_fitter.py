import warnings

import numpy as np
import pytest
import uncertainties
from scipy import stats

from easyphys import (
    BadDataError,
    CannotFitError,
    ConvergenceWarning,
    FitState,
    Fitter,
    NoResultsError,
    models,
)


def f(x, a, b):
    return a * x + b


def g(x):
    return x**2


XDATA = np.array([1.0, 2.0, 3.0, 4.0])
YDATA = np.array([0.0, 1.0, 3.0, 5.5])
EYDATA = np.array([0.5, 0.4, 0.8, 0.5])


def _scenario_fitter() -> Fitter:
    return Fitter(f).set_data(XDATA, YDATA, EYDATA)


def test_model_without_parameters_cannot_fit():
    with pytest.raises(CannotFitError):
        Fitter(g)


def test_fit_without_data_raises():
    fitter = Fitter(f)

    assert fitter.state is FitState.NO_DATA
    with pytest.raises(BadDataError):
        fitter.fit()


def test_mismatched_data_raises():
    with pytest.raises(BadDataError):
        Fitter(f).set_data([1, 2, 3], [4, 5], [1, 2, 3])


def test_results_before_fit_raise():
    fitter = _scenario_fitter()

    assert fitter.state is FitState.DATA_SET
    with pytest.raises(NoResultsError):
        fitter.results
    with pytest.raises(NoResultsError):
        fitter.read("a")
    with pytest.raises(NoResultsError):
        fitter.parameter_covariance()
    with pytest.raises(NoResultsError):
        fitter.studentized_residuals()
    with pytest.raises(NoResultsError):
        fitter.apply_model(XDATA)


def test_scalar_error_broadcast_through_fitter():
    fitter = Fitter(f).set_data(XDATA, YDATA, 1.0)

    assert np.array_equal(fitter.eydata, [1.0, 1.0, 1.0, 1.0])
    assert fitter.active_mask().all()


def test_weighted_line_fit():
    fitter = _scenario_fitter().fit()
    a_expected, b_expected = np.polyfit(XDATA, YDATA, 1, w=1.0 / EYDATA)

    assert fitter.state is FitState.CONVERGED
    assert fitter.read("a") == pytest.approx(a_expected, rel=1e-5)
    assert fitter.read("b") == pytest.approx(b_expected, rel=1e-5)
    assert fitter.parameters.uncertainty("a") > 0.0

    chi2 = fitter.reduced_chi_squared()
    assert np.isfinite(chi2)
    assert chi2 >= 0.0


def test_noiseless_line_is_recovered():
    x = np.linspace(0.0, 10.0, 20)
    y = f(x, 2.5, -1.3)

    fitter = Fitter(f).set_data(x, y, 0.1).fit()

    assert fitter.read("a") == pytest.approx(2.5, abs=1e-6)
    assert fitter.read("b") == pytest.approx(-1.3, abs=1e-6)
    assert fitter.reduced_chi_squared() == pytest.approx(0.0, abs=1e-8)


def test_refitting_is_idempotent():
    fitter = _scenario_fitter().fit()
    first = fitter.results.params.copy()

    fitter.fit()

    assert np.array_equal(fitter.results.params, first)


def test_residuals_are_observed_minus_predicted_weighted():
    fitter = _scenario_fitter().fit()
    predicted = f(XDATA, fitter.read("a"), fitter.read("b"))

    expected = (YDATA - predicted) / EYDATA

    assert np.allclose(fitter.studentized_residuals(), expected, atol=1e-8)
    assert np.allclose(
        fitter.studentized_residuals(fitter.parameters.best_fit_vector()),
        expected,
        atol=1e-8,
    )


def test_errors_use_student_t_at_error_range():
    fitter = _scenario_fitter().fit()
    cov = fitter.parameter_covariance()
    scale = stats.t.ppf(1.0 - (1.0 - 0.68) / 2.0, 2)

    assert cov.shape == (2, 2)
    assert np.allclose(fitter.parameter_errors(), np.sqrt(np.diag(cov)) * scale)


def test_fixed_parameters_are_substituted():
    x = np.linspace(0.0, 5.0, 12)
    y = f(x, 1.7, 0.4)

    fitter = Fitter(f).set_data(x, y, 0.2).fix(b=0.4).fit()

    assert fitter.results.free_names == ("a",)
    assert fitter.parameter_covariance().shape == (1, 1)
    assert fitter.read("b") == 0.4
    assert fitter.read("a") == pytest.approx(1.7, abs=1e-6)
    assert np.allclose(fitter.apply_model(x), y)


def test_all_fixed_cannot_fit():
    fitter = _scenario_fitter().fix(a=1.0, b=0.0)

    with pytest.raises(CannotFitError):
        fitter.fit()


def test_all_fixed_is_reported_before_empty_window():
    fitter = _scenario_fitter().fix(a=1.0, b=0.0)

    with pytest.raises(CannotFitError):
        fitter.fit(xmin=10.0, xmax=20.0)


def test_fit_with_initial_guesses():
    fitter = _scenario_fitter().fit([2.0, -2.0])

    assert np.array_equal(fitter.guesses, [2.0, -2.0])
    assert fitter.state is FitState.CONVERGED


@pytest.mark.parametrize(
    "mutate",
    [
        lambda ft: ft.set_guess(a=3.0),
        lambda ft: ft.fix(b=0.0),
        lambda ft: ft.free("a"),
        lambda ft: ft.set(xmin=2.0),
        lambda ft: ft.set(error_range=0.95),
        lambda ft: ft.set_data(XDATA, YDATA, 1.0),
        lambda ft: ft.apply_mask([True, True, True, False]),
        lambda ft: ft.parameters.fix(b=0.0),
        lambda ft: ft.data.apply_mask([False, True, True, True]),
    ],
)
def test_mutations_invalidate_results(mutate):
    fitter = _scenario_fitter().fit()

    mutate(fitter)

    assert fitter.state is FitState.DATA_SET
    with pytest.raises(NoResultsError):
        fitter.read("a")
    with pytest.raises(NoResultsError):
        fitter.parameter_covariance()
    assert not fitter.parameters.has_results()


@pytest.mark.parametrize(
    "mutate",
    [
        lambda ft: ft.set(xmin=2.0),
        lambda ft: ft.set(error_range=0.95),
        lambda ft: ft.set(solver="scipy.curve_fit"),
        lambda ft: ft.set(solver_options={"max_nfev": 50}),
        lambda ft: ft.apply_mask([True, True, True, False]),
        lambda ft: ft.reset_mask(),
        lambda ft: ft.ignore_outliers(0.1),
        lambda ft: ft.set_data(XDATA, YDATA, 1.0),
    ],
)
def test_parameter_set_is_cleared_as_soon_as_inputs_change(mutate):
    fitter = _scenario_fitter().fit()
    params = fitter.parameters

    mutate(fitter)

    assert not params.has_results()
    with pytest.raises(NoResultsError):
        params.read("a")
    with pytest.raises(NoResultsError):
        params.uncertainty("a")
    assert params["a"].fit_value is None


def test_parameters_property_clears_after_direct_data_change():
    fitter = _scenario_fitter().fit()

    fitter.data.apply_mask([True, True, True, False])

    with pytest.raises(NoResultsError):
        fitter.parameters.uncertainty("a")
    assert fitter.parameters["b"].fit_value is None


def test_display_settings_keep_results():
    fitter = _scenario_fitter().fit()

    fitter.set(xlabel="time", yscale="log")

    assert fitter.state is FitState.CONVERGED
    fitter.read("a")


def test_fit_applies_bounds_before_masking():
    x = np.arange(10.0)
    fitter = Fitter(f).set_data(x, f(x, 2.0, 1.0), 0.1)

    fitter.fit(xmin=2.5, xmax=7.0)

    assert fitter.xlims() == (2.5, 7.0)
    assert fitter.results.n_points == 5
    assert fitter.studentized_residuals().shape == (5,)
    assert fitter.results.dof == 3


def test_empty_fitting_window_raises():
    fitter = _scenario_fitter()

    with pytest.raises(BadDataError):
        fitter.fit(xmin=10.0, xmax=20.0)


def test_non_finite_model_does_not_converge():
    def broken(x, a):
        return np.full_like(x, np.nan) * a

    fitter = Fitter(broken).set_data(XDATA, YDATA, EYDATA)

    with pytest.warns(ConvergenceWarning):
        fitter.fit()

    assert fitter.state is FitState.FAILED
    with pytest.raises(NoResultsError):
        fitter.read("a")


def test_failed_refit_drops_earlier_results():
    x = np.linspace(0.0, 5.0, 30)
    y = models.exponential_decay(x, 3.0, 0.7, 0.5)
    fitter = Fitter(models.exponential_decay).set_data(x, y, 0.05).fit()
    assert fitter.state is FitState.CONVERGED

    with pytest.warns(ConvergenceWarning):
        fitter.fit(solver_options={"max_nfev": 1})

    assert fitter.state is FitState.FAILED
    with pytest.raises(NoResultsError):
        fitter.read("rate")

    fitter.set(solver_options={}).fit()
    assert fitter.state is FitState.CONVERGED
    assert fitter.read("rate") == pytest.approx(0.7, abs=1e-5)


def test_curve_fit_solver_agrees():
    ls = _scenario_fitter().fit()
    cf = _scenario_fitter().fit(solver="scipy.curve_fit")

    assert cf.results.solver == "scipy.curve_fit"
    assert np.allclose(cf.results.params, ls.results.params, rtol=1e-5)
    assert np.allclose(cf.parameter_errors(), ls.parameter_errors(), rtol=1e-3)
    assert np.allclose(cf.studentized_residuals(), ls.studentized_residuals(), atol=1e-5)


def test_ignore_outliers_with_explicit_params():
    x = np.arange(10.0)
    y = f(x, 2.0, 1.0)
    y[5] += 5.0
    fitter = Fitter(f).set_data(x, y, 0.1)

    fitter.ignore_outliers(3.0, params=[2.0, 1.0])

    assert fitter.active_mask().tolist() == [i != 5 for i in range(10)]
    fitter.fit()
    assert fitter.read("a") == pytest.approx(2.0, abs=1e-6)
    assert fitter.read("b") == pytest.approx(1.0, abs=1e-6)


def test_ignore_outliers_shrinks_active_mask():
    rng = np.random.default_rng(3)
    x = np.linspace(0.0, 10.0, 40)
    y = f(x, 1.2, -0.5) + rng.normal(0.0, 0.2, size=x.size)
    y[[4, 17, 30]] += 3.0
    fitter = Fitter(f).set_data(x, y, 0.2).fit()
    before = fitter.active_mask()

    fitter.ignore_outliers(2.0)
    after = fitter.active_mask()

    assert np.all(after <= before)
    assert after.sum() < before.sum()
    assert fitter.state is FitState.DATA_SET

    fitter.fit().ignore_outliers(2.0)
    assert np.all(fitter.active_mask() <= after)


def test_ignore_outliers_requires_results_or_params():
    with pytest.raises(NoResultsError):
        _scenario_fitter().ignore_outliers(2.0)


def test_explicit_params_statistics():
    fitter = _scenario_fitter()
    params = [1.5, -1.0]
    predicted = f(XDATA, *params)
    expected = (YDATA - predicted) / EYDATA

    assert np.allclose(fitter.studentized_residuals(params), expected)
    assert fitter.reduced_chi_squared(params) == pytest.approx(
        np.sum(expected**2) / (4 - 2)
    )
    assert np.allclose(fitter.apply_model(XDATA, params), predicted)


def test_explicit_params_respect_mask():
    fitter = _scenario_fitter().apply_mask([True, False, True, True])

    resid = fitter.studentized_residuals([1.0, 0.0])

    assert resid.shape == (3,)
    assert fitter.reduced_chi_squared([1.0, 0.0]) == pytest.approx(np.sum(resid**2))


def test_apply_model_rejects_wrong_length():
    with pytest.raises(ValueError):
        _scenario_fitter().apply_model(XDATA, [1.0, 2.0, 3.0])


def test_reduced_chi_squared_without_dof_warns():
    fitter = Fitter(f).set_data([1.0, 2.0], [1.0, 3.0], 0.1).fit()

    with pytest.warns(UserWarning, match="degrees of freedom"):
        assert fitter.reduced_chi_squared() == float("inf")


def test_correlated_values_follow_covariance():
    fitter = _scenario_fitter().fit()

    values = fitter.correlated_values()
    cov = fitter.parameter_covariance()

    assert set(values) == {"a", "b"}
    assert values["a"].nominal_value == pytest.approx(fitter.read("a"))
    assert values["a"].std_dev == pytest.approx(np.sqrt(cov[0, 0]))
    assert np.allclose(uncertainties.covariance_matrix([values["a"], values["b"]]), cov)


def test_summary_reports_results():
    fitter = _scenario_fitter()

    assert "Fit results not yet present." in str(fitter)

    text = fitter.fit().summary()
    assert "Best-fit parameters" in text
    assert "±" in text
    assert "xscale" in text


def test_summary_without_dof_does_not_warn():
    fitter = Fitter(f).set_data([1.0, 2.0], [1.0, 3.0], 0.1).fit()

    with warnings.catch_warnings():
        warnings.simplefilter("error")
        text = str(fitter)

    assert "Best-fit parameters (reduced chi2 = nan)" in text


def test_fluent_chaining_returns_fitter():
    fitter = Fitter(f)

    assert fitter.set_data(XDATA, YDATA, EYDATA) is fitter
    assert fitter.set(xlabel="x") is fitter
    assert fitter.set_guess(a=1.0) is fitter
    assert fitter.fit() is fitter
    assert fitter.ignore_outliers(100.0) is fitter
