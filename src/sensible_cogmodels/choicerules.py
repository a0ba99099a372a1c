"""Choice rules: map a real-valued distance/utility to P(response = 1).

Each rule carries its own parameter space; free choice-rule parameters are
fit together with the model's parameters.
"""
from __future__ import annotations

from typing import Any, Dict, Protocol, Union

import numpy as np
from scipy.special import expit

from .errors import ConfigurationError
from .params import ParameterSpace, make_parspace


class ChoiceRule(Protocol):
    name: str

    def parspace(self) -> ParameterSpace: ...

    def apply(self, x: np.ndarray, **pars: float) -> np.ndarray: ...


class Softmax:
    """Two-option softmax against a zero-utility alternative.

    p = 1 / (1 + exp(-x / tau)); small tau approaches a hard step at 0.
    """

    name = "softmax"

    def parspace(self) -> ParameterSpace:
        return make_parspace(tau=(0.0001, 10.0, 0.5))

    def apply(self, x: np.ndarray, *, tau: float, **_: float) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        return expit(x / float(tau))


class Epsilon:
    """Epsilon-greedy: the step choice with probability 1 - eps, else random."""

    name = "epsilon"

    def parspace(self) -> ParameterSpace:
        return make_parspace(eps=(0.0, 1.0, 0.2))

    def apply(self, x: np.ndarray, *, eps: float, **_: float) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        eps = float(eps)
        return (1.0 - eps) * (x >= 0.0) + 0.5 * eps


class Argmax:
    """Deterministic: 1 where x >= 0, else 0."""

    name = "argmax"

    def parspace(self) -> ParameterSpace:
        return ParameterSpace()

    def apply(self, x: np.ndarray, **_: float) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        return (x >= 0.0).astype(float)


_CHOICERULES: Dict[str, ChoiceRule] = {
    "softmax": Softmax(),
    "epsilon": Epsilon(),
    "argmax": Argmax(),
}

AVAILABLE_CHOICERULES = tuple(_CHOICERULES.keys())


def get_choicerule(rule: Union[str, Any]) -> ChoiceRule:
    """Return a choice rule by name, or pass a rule object through."""
    if isinstance(rule, str):
        try:
            return _CHOICERULES[rule.lower()]
        except KeyError as e:
            raise ConfigurationError(
                f"Unknown choice rule {rule!r}. Available: {AVAILABLE_CHOICERULES}"
            ) from e
    if callable(getattr(rule, "apply", None)) and callable(getattr(rule, "parspace", None)):
        return rule
    raise ConfigurationError(
        f"choicerule must be a name or an object with apply()/parspace(), got {rule!r}."
    )
