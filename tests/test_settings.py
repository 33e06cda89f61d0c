import pytest

from easyphys import Fitter, FitState, Settings


def line(x, a, b):
    return a * x + b


def test_defaults():
    s = Settings()

    assert s.error_range == 0.68
    assert s.autoplot is False
    assert s.xscale == "linear"
    assert s.yscale == "linear"
    assert s.xmin is None and s.xmax is None
    assert s.solver == "scipy.least_squares"


def test_style_defaults_are_not_shared():
    a = Settings()
    b = Settings()
    a.style_data["color"] = "g"

    assert b.style_data["color"] == "b"


def test_update_reports_changed_names():
    s = Settings()

    changed = s.update(xmin=1.0, xscale="linear", xlabel="t")

    assert set(changed) == {"xmin", "xlabel"}
    assert s.xmin == 1.0
    assert s["xlabel"] == "t"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"error_range": 1.5},
        {"error_range": 0.0},
        {"xscale": "sqrt"},
        {"xmin": 3.0, "xmax": 1.0},
        {"fpoints": 1},
        {"solver": "nelder-mead"},
    ],
)
def test_invalid_values_raise_and_leave_settings_unchanged(kwargs):
    s = Settings()
    before = s.as_dict()

    with pytest.raises(ValueError):
        s.update(**kwargs)

    assert s.as_dict() == before


def test_unknown_setting_raises():
    with pytest.raises(KeyError):
        Settings().update(colour="red")
    with pytest.raises(KeyError):
        Settings()["colour"]


def test_fitter_constructor_seeds_settings():
    fitter = Fitter(line, xlabel="time", a=2.0)

    assert fitter["xlabel"] == "time"
    assert fitter.guesses.tolist() == [2.0, 1.0]


def test_dispatch_tries_settings_then_parameters():
    fitter = Fitter(line)

    fitter["xscale"] = "log"
    fitter["a"] = 3.0

    assert fitter["xscale"] == "log"
    assert fitter.parameters["a"].value == 3.0


def test_dispatch_unknown_key_raises():
    fitter = Fitter(line)

    with pytest.raises(KeyError, match="Unknown key"):
        fitter["c"]
    with pytest.raises(KeyError, match="Unknown key"):
        fitter.set(c=1.0)


def test_parameter_named_like_setting_warns():
    def model(x, xmin, b):
        return xmin * x + b

    with pytest.warns(UserWarning, match="share names with settings"):
        fitter = Fitter(model)

    fitter["xmin"] = 2.0
    assert fitter.settings.xmin == 2.0
    assert fitter.parameters["xmin"].value == 1.0


def test_solver_options_are_read_only_copies():
    opts = {"max_nfev": 50}
    s = Settings(solver_options=opts)
    opts["max_nfev"] = 1

    assert s.solver_options["max_nfev"] == 50
    with pytest.raises(TypeError):
        s.solver_options["max_nfev"] = 1


def test_in_place_solver_option_edit_cannot_bypass_invalidation():
    fitter = Fitter(line).set_data([1.0, 2.0, 3.0], [1.0, 3.0, 5.0], 0.1).fit()

    with pytest.raises(TypeError):
        fitter.settings.solver_options["max_nfev"] = 1

    fitter.set(solver_options={"max_nfev": 1})
    assert fitter.state is FitState.DATA_SET
