from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Tuple

import numpy as np

from .errors import InvalidInputError
from .formula import Formula


@dataclass(frozen=True)
class Dataset:
    input: np.ndarray  # (n, k)
    response: Optional[np.ndarray]  # (n,) or None for prediction-only models
    input_names: Tuple[str, ...]
    response_name: Optional[str] = None

    @property
    def nobs(self) -> int:
        return int(self.input.shape[0])

    def discounted(self, n: int) -> "Dataset":
        """Drop the first ``n`` observations."""
        n = int(n)
        if n == 0:
            return self
        return replace(
            self,
            input=self.input[n:],
            response=None if self.response is None else self.response[n:],
        )


def prepare_dataset(formula: Formula, data: Any) -> Dataset:
    """Extract aligned predictor/response arrays from a data table."""
    x = formula.get_input(data)
    if x.ndim != 2:
        raise InvalidInputError(f"Predictor matrix must be 2D, got shape {x.shape}.")
    if not np.all(np.isfinite(x)):
        raise InvalidInputError(
            f"Predictor variables {formula.input_names} contain non-finite values."
        )

    y = formula.get_response(data)
    if y is not None:
        if y.shape[0] != x.shape[0]:
            raise InvalidInputError(
                f"Response has {y.shape[0]} rows but predictors have {x.shape[0]}."
            )
        if not np.all(np.isfinite(y)):
            raise InvalidInputError(
                f"Response {formula.response_names} contains non-finite values."
            )

    return Dataset(
        input=x,
        response=y,
        input_names=formula.input_names,
        response_name=formula.response_names[0] if formula.has_response else None,
    )


def as_input(newdata: Any, formula: Formula, n_inputs: int) -> np.ndarray:
    """Coerce prediction input to a (n, k) float array.

    Tables go through the formula; anything else is taken as raw predictor
    values aligned with the model's input columns.
    """
    if _is_table(newdata):
        x = formula.get_input(newdata)
    else:
        try:
            x = np.asarray(newdata, dtype=float)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Prediction input is not numeric: {exc}") from exc
        if x.ndim == 0:
            x = x.reshape(1, 1)
        elif x.ndim == 1:
            x = x.reshape(-1, 1) if n_inputs == 1 else x.reshape(1, -1)
        if x.ndim != 2 or x.shape[1] != n_inputs:
            raise InvalidInputError(
                f"Prediction input must have {n_inputs} column(s), got shape {x.shape}."
            )
    if not np.all(np.isfinite(x)):
        raise InvalidInputError("Prediction input contains non-finite values.")
    return x


def _is_table(data: Any) -> bool:
    if isinstance(data, Mapping) or hasattr(data, "columns"):
        return True
    return isinstance(data, np.ndarray) and data.dtype.names is not None
