"""Formula handling: ``response ~ predictors`` over a data table.

Parsing and column extraction are done by patsy. No intercept column is ever
added; models see exactly the variables named in the formula.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

import numpy as np
import patsy

from .errors import ConfigurationError, InvalidInputError

__all__ = ["Formula"]


@dataclass(frozen=True)
class Formula:
    text: str
    response_terms: Tuple[Any, ...]
    input_terms: Tuple[Any, ...]

    @staticmethod
    def parse(formula: Any) -> "Formula":
        """Parse a formula string (or pass through an existing Formula)."""
        if isinstance(formula, Formula):
            return formula
        if not isinstance(formula, str) or "~" not in formula:
            raise ConfigurationError(
                f"formula must be a string like 'y ~ a', got {formula!r}."
            )
        try:
            desc = patsy.ModelDesc.from_formula(formula)
        except patsy.PatsyError as exc:
            raise ConfigurationError(f"Cannot parse formula {formula!r}: {exc}") from exc

        rhs = tuple(t for t in desc.rhs_termlist if t != patsy.INTERCEPT)
        lhs = tuple(t for t in desc.lhs_termlist if t != patsy.INTERCEPT)
        if not rhs:
            raise ConfigurationError(
                f"formula {formula!r} has no predictor on the right-hand side."
            )
        return Formula(text=formula, response_terms=lhs, input_terms=rhs)

    @property
    def has_response(self) -> bool:
        return bool(self.response_terms)

    @property
    def input_names(self) -> Tuple[str, ...]:
        return tuple(t.name() for t in self.input_terms)

    @property
    def response_names(self) -> Tuple[str, ...]:
        return tuple(t.name() for t in self.response_terms)

    def get_input(self, data: Any) -> np.ndarray:
        """Return the right-hand-side columns as a float array (n, k)."""
        return _evaluate(self.input_terms, data, what="predictor")

    def get_response(self, data: Any) -> Optional[np.ndarray]:
        """Return the left-hand-side column as a float array (n,), or None."""
        if not self.has_response:
            return None
        y = _evaluate(self.response_terms, data, what="response")
        if y.shape[1] != 1:
            raise InvalidInputError(
                f"Response of {self.text!r} must be a single numeric column, "
                f"got {y.shape[1]} columns."
            )
        return y[:, 0]


def _evaluate(terms: Tuple[Any, ...], data: Any, *, what: str) -> np.ndarray:
    # Only the data table and numpy are visible to formula code; never the
    # caller's frame.
    env = patsy.EvalEnvironment([{"np": np}])
    try:
        mat = patsy.dmatrix(
            patsy.ModelDesc([], list(terms)),
            _bools_as_float(data),
            eval_env=env,
            NA_action="raise",
            return_type="matrix",
        )
    except patsy.PatsyError as exc:
        raise InvalidInputError(f"Cannot extract {what} variables: {exc}") from exc
    return np.asarray(mat, dtype=float)


def _bools_as_float(data: Any) -> Any:
    """Return ``data`` with boolean columns cast to 0.0/1.0.

    patsy codes booleans as categorical, which would split a binary choice
    column into two dummy columns.
    """
    if isinstance(data, np.ndarray) and data.dtype.names is not None:
        names = data.dtype.names
    elif hasattr(data, "columns"):
        names = tuple(data.columns)
    elif isinstance(data, Mapping):
        names = tuple(data.keys())
    else:
        return data

    out = {}
    for name in names:
        col = data[name]
        arr = np.asarray(col)
        out[name] = arr.astype(float) if arr.dtype == np.bool_ else col
    return out
