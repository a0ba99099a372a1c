from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Union

import numpy as np

from . import inference
from .backends import get_backend
from .choicerules import ChoiceRule, get_choicerule
from .data import Dataset, as_input, prepare_dataset
from .errors import ConfigurationError, FitFailureError, InvalidInputError, UnsupportedTypeError
from .formula import Formula
from .params import ParameterSpace, ParamsView
from .results import FitResult

logger = logging.getLogger(__name__)

MODES = ("continuous", "discrete")


# ---- mode: decided once at construction ------------------------------------


@dataclass(frozen=True)
class Continuous:
    name: ClassVar[str] = "continuous"


@dataclass(frozen=True)
class Discrete:
    choicerule: ChoiceRule
    name: ClassVar[str] = "discrete"


Mode = Union[Continuous, Discrete]


def make_mode(mode: Any, choicerule: Any = None) -> Mode:
    """Resolve a mode string + choice rule into a Continuous/Discrete variant.

    A choice rule without a mode implies "discrete"; a choice rule in
    continuous mode is rejected rather than silently ignored.
    """
    if isinstance(mode, (Continuous, Discrete)):
        return mode
    if mode is None:
        if choicerule is None:
            raise ConfigurationError(
                "mode is ambiguous: pass mode='continuous' or mode='discrete' "
                "(with a choicerule)."
            )
        mode = "discrete"
    if not isinstance(mode, str) or mode.lower() not in MODES:
        raise ConfigurationError(f"Unsupported mode {mode!r}. Available: {MODES}")

    if mode.lower() == "continuous":
        if choicerule is not None:
            raise ConfigurationError(
                f"A choicerule ({choicerule!r}) was given in continuous mode; "
                "use mode='discrete' or drop the choicerule."
            )
        return Continuous()

    if choicerule is None:
        raise ConfigurationError("mode='discrete' requires a choicerule, e.g. 'softmax'.")
    return Discrete(get_choicerule(choicerule))


# ---- configuration ----------------------------------------------------------


@dataclass(frozen=True)
class ModelOptions:
    """Fitting options.

    solver:         optimizer backend name ("scipy.minimize", "scipy.differential_evolution")
    solver_options: dict forwarded to the backend (e.g. {"method": "SLSQP"})
    fit_measure:    "mse", "sse" or "loglikelihood"; None picks "mse" for
                    continuous and "loglikelihood" for discrete models
    lb, ub, start:  per-parameter overrides of the model's parameter space
    fit:            fit automatically at the end of construction
    """

    solver: str = "scipy.minimize"
    solver_options: Mapping[str, Any] = field(default_factory=dict)
    fit_measure: Optional[str] = None
    lb: Mapping[str, float] = field(default_factory=dict)
    ub: Mapping[str, float] = field(default_factory=dict)
    start: Mapping[str, float] = field(default_factory=dict)
    fit: bool = True

    @staticmethod
    def from_value(value: Any, **defaults: Any) -> "ModelOptions":
        """Build options from None, a dict or ModelOptions.

        ``defaults`` are model-level defaults; caller-supplied keys win.
        """
        if isinstance(value, ModelOptions):
            return value
        if value is None:
            value = {}
        if not isinstance(value, Mapping):
            raise ConfigurationError(f"options must be a dict or ModelOptions, got {value!r}.")
        known = {f.name for f in fields(ModelOptions)}
        unknown = sorted(set(value) - known)
        if unknown:
            raise ConfigurationError(f"Unknown option(s) {unknown}. Known: {sorted(known)}")
        return ModelOptions(**{**defaults, **dict(value)})


@dataclass(frozen=True)
class ModelConfig:
    """Everything a model is constructed from."""

    formula: Any
    data: Any
    fix: Any = None
    choicerule: Any = None
    mode: Any = None
    discount: int = 0
    options: Any = None


# ---- base model -------------------------------------------------------------


class ParametricModel(ABC):
    """Formula + data + parameter space + optional choice rule.

    Subclasses implement ``make_parspace`` and ``make_prediction`` and may
    extend ``check_input`` (always calling the base version).
    """

    title: ClassVar[str] = "Model"
    prediction_types: ClassVar[Tuple[str, ...]] = ("response",)
    default_options: ClassVar[Mapping[str, Any]] = {}

    def __init__(self, config: ModelConfig):
        self.config = config
        self.options = ModelOptions.from_value(config.options, **self.default_options)
        self.formula = Formula.parse(config.formula)
        self.discount = config.discount
        self._dataset = prepare_dataset(self.formula, config.data)
        self.mode = make_mode(config.mode, config.choicerule)
        self._fitted: Optional[FitResult] = None

        space = self.make_parspace(self._dataset)
        if isinstance(self.mode, Discrete):
            space = space + self.mode.choicerule.parspace()
        space = space.update(lower=self.options.lb, upper=self.options.ub, start=self.options.start)
        self.parspace = _apply_fix(space, config.fix)

        self.check_input()

        if self.options.fit and self._dataset.response is not None:
            self.fit()

    # ---- specialization hooks ----
    @abstractmethod
    def make_parspace(self, dataset: Dataset) -> ParameterSpace:
        """Return the model's own parameters (choice-rule parameters are added by the base)."""

    @abstractmethod
    def make_prediction(self, type: str, input: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        """Return the continuous model output for ``input`` (n, k)."""

    def check_input(self) -> None:
        """Structural checks; run once at the end of construction."""
        if not isinstance(self.mode, (Continuous, Discrete)):
            raise ConfigurationError(f"Unsupported mode {self.mode!r}.")
        if isinstance(self.mode, Discrete) and self.mode.choicerule is None:
            raise ConfigurationError("Discrete mode requires a choicerule.")

        if self._dataset.nobs == 0:
            raise InvalidInputError("data has no rows.")

        d = self.discount
        if isinstance(d, bool) or not isinstance(d, (int, np.integer)) or d < 0:
            raise InvalidInputError(f"discount must be a non-negative integer, got {d!r}.")
        if d >= self._dataset.nobs:
            raise InvalidInputError(
                f"discount ({d}) must be smaller than the number of observations "
                f"({self._dataset.nobs})."
            )

        inference.get_fit_measure(self.fit_measure, discrete=self.discrete)

        y = self._dataset.response
        if y is not None and self.discrete and self.fit_measure == "loglikelihood":
            if np.any((y < 0.0) | (y > 1.0)):
                raise InvalidInputError(
                    f"Discrete responses in {self._dataset.response_name!r} must lie in [0, 1]."
                )

    # ---- properties ----
    @property
    def discrete(self) -> bool:
        return isinstance(self.mode, Discrete)

    @property
    def fit_measure(self) -> str:
        if self.options.fit_measure is not None:
            return str(self.options.fit_measure).lower()
        return "loglikelihood" if self.discrete else "mse"

    @property
    def fitted(self) -> Optional[FitResult]:
        """Result of the last successful fit, or None."""
        return self._fitted

    @property
    def parameters(self) -> ParamsView:
        if self._fitted is not None:
            return self._fitted.params
        return ParamsView.build(self.parspace.values(), self.parspace)

    def get_parameters(self) -> Dict[str, float]:
        """Current parameter values: fitted if a fit has run, else start/fixed."""
        if self._fitted is not None:
            return self._fitted.as_dict()
        return self.parspace.values()

    # ---- prediction ----
    def predict(self, type: str = "response", newdata: Any = None) -> np.ndarray:
        """Predict for the training data (newdata=None), a table or raw predictor values.

        Continuous mode returns the model output; discrete mode returns the
        choice rule's probability of response 1.
        """
        self._check_type(type)
        if newdata is None:
            x = self._dataset.input
        else:
            x = as_input(newdata, self.formula, self._dataset.input.shape[1])
        return self._respond(type, x, self.get_parameters())

    def _check_type(self, type: str) -> None:
        if type not in self.prediction_types:
            raise UnsupportedTypeError(
                f"Unsupported prediction type {type!r}. Available: {self.prediction_types}"
            )

    def _respond(self, type: str, x: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        out = np.asarray(self.make_prediction(type, x, params), dtype=float)
        mode = self.mode
        if isinstance(mode, Continuous):
            return out
        if isinstance(mode, Discrete):
            rule_pars = {n: float(params[n]) for n in mode.choicerule.parspace().names}
            return np.asarray(mode.choicerule.apply(out, **rule_pars), dtype=float)
        raise ConfigurationError(f"Unsupported mode {mode!r}.")

    # ---- fitting ----
    def fit(self, fix: Any = None) -> FitResult:
        """Fit free parameters to the training data and return the FitResult.

        ``fix`` optionally holds extra parameters for this call only. If no
        parameter is left free the solver is not run. On non-convergence a
        FitFailureError is raised and the previous fit is kept.
        """
        space = self.parspace if fix is None else _apply_fix(self.parspace, fix)
        train = self._training_data()
        loss_fn = inference.get_fit_measure(self.fit_measure, discrete=self.discrete)

        def objective(par: Mapping[str, float]) -> float:
            pred = self._respond("response", train.input, par)
            return loss_fn(pred, train.response)

        free_names = space.free_names()
        fixed_map = space.fixed_map()

        if not free_names:
            values = space.values()
            result = FitResult(
                params=ParamsView.build(values, space),
                success=True,
                message="all parameters fixed; solver not run",
                loss=float(objective(values)),
                fit_measure=self.fit_measure,
                nobs=train.nobs,
                stats={"nit": 0, "nfev": 0},
            )
            logger.debug("%s: all parameters fixed, skipping solver", self.title)
            self._fitted = result
            return result

        backend = get_backend(self.options.solver)
        p0 = np.asarray([space[n].start for n in free_names], dtype=float)
        bounds = space.bounds_for(free_names)
        logger.debug(
            "%s: fitting %s with %s (%s, nobs=%d)",
            self.title, free_names, backend.name, self.fit_measure, train.nobs,
        )
        r = backend.fit_one(
            objective=objective,
            free_names=free_names,
            fixed_map=fixed_map,
            p0=p0,
            bounds=bounds,
            options=dict(self.options.solver_options),
        )

        theta = np.asarray(r.theta, dtype=float)
        values = dict(fixed_map)
        values.update({n: float(theta[j]) for j, n in enumerate(free_names)})
        stats = dict(r.stats or {})
        loss = float(stats["fun"]) if stats.get("fun") is not None else float(objective(values))

        if not r.success:
            raise FitFailureError(
                f"{self.title} fit did not converge: {r.message}",
                loss=loss,
                nit=stats.get("nit"),
                backend=backend.name,
                theta=theta,
            )

        cov = self._covariance(r.hess_inv, loss, train.nobs, len(free_names))
        result = FitResult(
            params=ParamsView.build(values, space, free_names=free_names, cov=cov),
            cov=cov,
            success=True,
            message=str(r.message),
            backend=backend.name,
            loss=loss,
            fit_measure=self.fit_measure,
            nobs=train.nobs,
            stats=stats,
        )
        logger.debug(
            "%s: fit finished, loss=%.6g nit=%s params=%s",
            self.title, loss, stats.get("nit"), result.as_dict(),
        )
        self._fitted = result
        return result

    def _covariance(self, hess_inv: Optional[np.ndarray], loss: float, n: int, p: int) -> Optional[np.ndarray]:
        """Convert the inverse Hessian of the loss into a parameter covariance."""
        if hess_inv is None:
            return None
        hess_inv = np.asarray(hess_inv, dtype=float)
        if self.fit_measure == "loglikelihood":
            return hess_inv
        dof = n - p
        if dof <= 0:
            return None
        # Least squares: loss = SSE (or SSE/n), H = 2 J^T J (or 2/n J^T J).
        sse = loss * n if self.fit_measure == "mse" else loss
        s_sq = sse / dof
        scale = 2.0 * s_sq / n if self.fit_measure == "mse" else 2.0 * s_sq
        return hess_inv * scale

    def _training_data(self) -> Dataset:
        if self._dataset.response is None:
            raise InvalidInputError(
                f"formula {self.formula.text!r} has no response variable; nothing to fit."
            )
        return self._dataset.discounted(self.discount)

    # ---- goodness of fit on the (discounted) training data ----
    def _train_pred(self) -> Tuple[np.ndarray, np.ndarray]:
        train = self._training_data()
        pred = self._respond("response", train.input, self.get_parameters())
        return pred, train.response

    def mean_squared_error(self) -> float:
        return inference.mean_squared_error(*self._train_pred())

    def sum_squared_error(self) -> float:
        return inference.sum_squared_error(*self._train_pred())

    def loglikelihood(self) -> float:
        nll = inference.get_fit_measure("loglikelihood", discrete=self.discrete)
        return -float(nll(*self._train_pred()))

    def npar(self) -> int:
        """Number of free parameters in the last fit (or in the parameter space before one)."""
        if self._fitted is not None:
            return sum(1 for p in self._fitted.params.values() if not p.fixed)
        return len(self.parspace.free_names())

    def nobs(self) -> int:
        return self._training_data().nobs

    def aic(self) -> float:
        return 2.0 * self.npar() - 2.0 * self.loglikelihood()

    def bic(self) -> float:
        return float(np.log(self.nobs())) * self.npar() - 2.0 * self.loglikelihood()

    def __repr__(self) -> str:
        rule = ""
        if isinstance(self.mode, Discrete):
            rule = f", choicerule={getattr(self.mode.choicerule, 'name', self.mode.choicerule)!r}"
        return (
            f"{type(self).__name__}({self.formula.text!r}, mode={self.mode.name!r}{rule}, "
            f"parameters={self.get_parameters()})"
        )


def _apply_fix(space: ParameterSpace, fix: Any) -> ParameterSpace:
    """Apply a fix specification: None, "start" or a name -> value mapping."""
    if fix is None:
        return space
    if isinstance(fix, str):
        if fix == "start":
            return space.fix_start()
        raise ConfigurationError(f"Unknown fix specification {fix!r}; use 'start' or a dict.")
    if isinstance(fix, Mapping):
        return space.fix(fix)
    raise ConfigurationError(f"fix must be None, 'start' or a dict, got {fix!r}.")
