import numpy as np
import pytest

import sensible_cogmodels.model as model_mod
from sensible_cogmodels import ConfigurationError, FitFailureError, InvalidInputError, threshold_c, threshold_d
from sensible_cogmodels.backends import BackendResult


def test_continuous_fit_recovers_threshold(noisy_distances) -> None:
    M = threshold_c("y ~ a", noisy_distances, options={"solver_options": {"cov_method": "numdiff"}})
    res = M.fitted

    assert res.success
    assert res.optimized
    assert res.backend == "scipy.minimize"
    assert res.fit_measure == "mse"
    assert res["nu"].value == pytest.approx(4.0, abs=0.2)

    # Covariance of a location parameter under least squares: s^2 / n.
    assert res["nu"].stderr == pytest.approx(0.5 / np.sqrt(200), rel=0.3)
    assert res["nu"].u.std_dev == pytest.approx(res["nu"].stderr)


def test_goodness_of_fit_matches_fit_loss(noisy_distances) -> None:
    M = threshold_c("y ~ a", noisy_distances)
    assert M.mean_squared_error() == pytest.approx(M.fitted.loss, rel=1e-9)
    assert M.sum_squared_error() == pytest.approx(M.fitted.loss * M.nobs(), rel=1e-9)

    S = threshold_c("y ~ a", noisy_distances, options={"fit_measure": "sse"})
    assert S.sum_squared_error() == pytest.approx(S.fitted.loss, rel=1e-9)
    assert S.fitted["nu"].value == pytest.approx(M.fitted["nu"].value, abs=1e-3)


def test_discrete_softmax_fit(noisy_choices) -> None:
    M = threshold_d("y ~ a", noisy_choices)
    res = M.fitted

    assert res.success
    assert res.fit_measure == "loglikelihood"
    assert res["nu"].value == pytest.approx(5.0, abs=0.75)
    assert res["tau"].value == pytest.approx(1.0, abs=0.6)
    assert res.cov is not None
    assert res.cov.shape == (2, 2)

    assert M.loglikelihood() == pytest.approx(-res.loss, rel=1e-9)
    assert M.npar() == 2
    assert M.nobs() == 300
    assert M.aic() == pytest.approx(4.0 - 2.0 * M.loglikelihood())
    assert M.bic() == pytest.approx(np.log(300) * 2 - 2.0 * M.loglikelihood())


def test_fixed_parameter_survives_refits(noisy_choices) -> None:
    M = threshold_d("y ~ a", noisy_choices, fix={"nu": 5})
    assert M.npar() == 1
    for _ in range(2):
        res = M.fit()
        assert res["nu"].value == 5.0
        assert res["nu"].fixed
        assert res["nu"].stderr is None
        assert not res["tau"].fixed
        assert res["tau"].stderr is not None


def test_fix_passed_to_fit_applies_to_that_call(noisy_choices) -> None:
    M = threshold_d("y ~ a", noisy_choices, options={"fit": False})
    assert M.fitted is None

    res = M.fit(fix={"nu": 3.0})
    assert res["nu"].value == 3.0
    assert M.parspace.free_names() == ["nu", "tau"]

    res = M.fit(fix="start")
    assert res.as_dict() == M.parspace.values()


def test_argmax_log_likelihood_on_separable_data(steps) -> None:
    M = threshold_d("y ~ a", steps, fix={"nu": 5.5}, choicerule="argmax")
    assert M.loglikelihood() == pytest.approx(0.0, abs=1e-6)
    assert M.npar() == 0
    assert M.aic() == pytest.approx(0.0, abs=1e-5)


def test_discount_excludes_leading_observations(noisy_distances) -> None:
    M = threshold_c("y ~ a", noisy_distances, discount=20)
    assert M.nobs() == 180
    assert M.fitted.nobs == 180

    x = noisy_distances["a"][20:]
    y = noisy_distances["y"][20:]
    nu = M.fitted["nu"].value
    assert M.mean_squared_error() == pytest.approx(np.mean((x - nu - y) ** 2))
    # Predictions still cover every observation.
    assert M.predict().shape == (200,)


@pytest.mark.parametrize("discount", [-1, 1.5, True, 200, 500])
def test_invalid_discount(noisy_distances, discount) -> None:
    with pytest.raises(InvalidInputError, match="discount"):
        threshold_c("y ~ a", noisy_distances, discount=discount)


def test_options_validation(steps) -> None:
    with pytest.raises(ConfigurationError, match="Unknown option"):
        threshold_c("y ~ a", steps, options={"sovler": "scipy.minimize"})
    with pytest.raises(ConfigurationError, match="options must be"):
        threshold_c("y ~ a", steps, options=["fit"])
    with pytest.raises(ConfigurationError, match="fit_measure"):
        threshold_c("y ~ a", steps, options={"fit_measure": "r2"})
    with pytest.raises(ConfigurationError, match="Unknown solver"):
        threshold_c("y ~ a", steps, options={"solver": "solnp"})


def test_bound_and_start_overrides(steps) -> None:
    with pytest.warns(UserWarning, match="Clipped"):
        M = threshold_c("y ~ a", steps, options={"lb": {"nu": 6.0}, "fit": False})
    assert M.parspace["nu"].bounds == (6.0, 10.0)
    assert M.parspace["nu"].start == 6.0

    M = threshold_d("y ~ a", steps, options={"start": {"tau": 2.0}, "ub": {"tau": 5.0}, "fit": False})
    assert M.parspace["tau"].start == 2.0
    assert M.parspace["tau"].upper == 5.0

    with pytest.raises(InvalidInputError):
        threshold_c("y ~ a", steps, options={"start": {"nu": 0.0}})


def test_differential_evolution_backend(noisy_distances) -> None:
    M = threshold_c(
        "y ~ a",
        noisy_distances,
        options={"solver": "scipy.differential_evolution", "solver_options": {"seed": 0}},
    )
    res = M.fitted
    assert res.success
    assert res.backend == "scipy.differential_evolution"
    assert res["nu"].value == pytest.approx(4.0, abs=0.2)
    assert res["nu"].stderr is not None


class _FailingBackend:
    name = "failing"

    def fit_one(self, *, objective, free_names, fixed_map, p0, bounds, options):
        return BackendResult(
            theta=np.asarray(p0, dtype=float),
            success=False,
            message="maximum number of iterations reached",
            stats={"backend": self.name, "fun": 1.5, "nit": 7, "nfev": 20},
        )


def test_fit_failure_keeps_previous_fit(noisy_distances, monkeypatch) -> None:
    M = threshold_c("y ~ a", noisy_distances)
    before = M.fitted

    monkeypatch.setattr(model_mod, "get_backend", lambda name: _FailingBackend())
    with pytest.raises(FitFailureError) as info:
        M.fit()

    err = info.value
    assert err.backend == "failing"
    assert err.nit == 7
    assert err.loss == pytest.approx(1.5)
    assert "maximum number of iterations" in str(err)
    assert M.fitted is before


def test_fit_failure_at_construction(noisy_distances, monkeypatch) -> None:
    monkeypatch.setattr(model_mod, "get_backend", lambda name: _FailingBackend())
    with pytest.raises(FitFailureError):
        threshold_c("y ~ a", noisy_distances)


def test_npar_follows_fix_of_last_fit(noisy_choices) -> None:
    M = threshold_d("y ~ a", noisy_choices)
    assert M.npar() == 2

    res = M.fit(fix={"nu": 5.0})
    assert [n for n, p in res.params.items() if not p.fixed] == ["tau"]
    assert M.npar() == 1
    assert M.aic() == pytest.approx(2.0 - 2.0 * M.loglikelihood())
    assert M.bic() == pytest.approx(np.log(300) - 2.0 * M.loglikelihood())

    M.fit()
    assert M.npar() == 2


def test_differential_evolution_is_serial_only(noisy_distances) -> None:
    with pytest.raises(ConfigurationError, match="workers=1"):
        threshold_c(
            "y ~ a",
            noisy_distances,
            options={"solver": "scipy.differential_evolution", "solver_options": {"workers": 2}},
        )
