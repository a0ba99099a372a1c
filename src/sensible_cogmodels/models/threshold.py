from __future__ import annotations

from typing import Any, Mapping

import numpy as np

from ..data import Dataset
from ..errors import InvalidInputError, UnsupportedTypeError
from ..model import ModelConfig, ParametricModel
from ..params import ParameterSpace, parspace_from_range


class ThresholdModel(ParametricModel):
    """Threshold model with the threshold ``nu`` as free parameter.

    Given ``y ~ a`` the model output is the distance ``a - nu``. In discrete
    mode the distance goes through the choice rule, so with a deterministic
    rule it predicts y = 1 for a >= nu and y = 0 for a < nu.

    Parameters in the model
    -----------------------
    nu : the threshold, bounded by the observed range of ``a`` and started
         at its midpoint
    plus the choice rule's parameters in discrete mode (e.g. softmax ``tau``).
    """

    title = "Threshold"
    default_options = {"solver": "scipy.minimize"}

    def __init__(
        self,
        formula: Any,
        data: Any,
        fix: Any = None,
        choicerule: Any = None,
        mode: Any = None,
        discount: int = 0,
        options: Any = None,
    ):
        super().__init__(
            ModelConfig(
                formula=formula,
                data=data,
                fix=fix,
                choicerule=choicerule,
                mode=mode,
                discount=discount,
                options=options,
            )
        )

    def make_parspace(self, dataset: Dataset) -> ParameterSpace:
        return parspace_from_range("nu", dataset.input)

    def make_prediction(self, type: str, input: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
        if type != "response":
            raise UnsupportedTypeError(f"Unsupported prediction type {type!r}; use 'response'.")
        x = np.asarray(input, dtype=float)
        if x.ndim == 2:
            x = x[:, 0]
        return x - float(params["nu"])

    def check_input(self) -> None:
        names = self._dataset.input_names
        if len(names) != 1 or self._dataset.input.shape[1] != 1:
            raise InvalidInputError(
                f"Threshold models take exactly one numeric predictor, got {names}."
            )
        super().check_input()


def threshold(
    formula: Any,
    data: Any,
    fix: Any = None,
    choicerule: Any = None,
    mode: Any = None,
    discount: int = 0,
    options: Any = None,
) -> ThresholdModel:
    """Threshold model; ``mode`` must be given unless a choicerule implies "discrete".

        threshold("y ~ a", D, fix="start", choicerule="softmax")  # fits nothing
        threshold("y ~ a", D, fix={"nu": 2}, choicerule="softmax")  # fits tau
        threshold("y ~ a", D, choicerule="softmax")  # fits nu and tau
    """
    return ThresholdModel(formula, data, fix, choicerule, mode, discount, options)


def threshold_c(
    formula: Any,
    data: Any,
    fix: Any = None,
    choicerule: Any = None,
    discount: int = 0,
    options: Any = None,
) -> ThresholdModel:
    """Threshold model of continuous responses (distance to the threshold).

    Continuous models take no choice rule; passing one raises ConfigurationError.
    """
    return ThresholdModel(formula, data, fix, choicerule, "continuous", discount, options)


def threshold_d(
    formula: Any,
    data: Any,
    fix: Any = None,
    choicerule: Any = "softmax",
    discount: int = 0,
    options: Any = None,
) -> ThresholdModel:
    """Threshold model of binary choices (distance passed through ``choicerule``)."""
    return ThresholdModel(formula, data, fix, choicerule, "discrete", discount, options)
