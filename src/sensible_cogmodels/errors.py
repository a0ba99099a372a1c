from __future__ import annotations

from typing import Any, Optional

import numpy as np

__all__ = [
    "CogModelError",
    "InvalidInputError",
    "ConfigurationError",
    "UnsupportedTypeError",
    "FitFailureError",
]


class CogModelError(Exception):
    """Base class for all errors raised by sensible_cogmodels."""


class InvalidInputError(CogModelError, ValueError):
    """Malformed or missing data, formula variables or parameter values."""


class ConfigurationError(CogModelError, ValueError):
    """Inconsistent model configuration (mode, choice rule, solver, options)."""


class UnsupportedTypeError(CogModelError, ValueError):
    """Unsupported prediction type."""


class FitFailureError(CogModelError, RuntimeError):
    """The optimizer did not converge.

    Carries the diagnostics of the failed run so callers can decide what to
    do; the model keeps its previous fitted state.
    """

    def __init__(
        self,
        message: str,
        *,
        loss: Optional[float] = None,
        nit: Optional[int] = None,
        backend: str = "",
        theta: Optional[Any] = None,
    ):
        self.message = str(message)
        self.loss = loss
        self.nit = nit
        self.backend = backend
        self.theta = None if theta is None else np.asarray(theta, dtype=float)
        super().__init__(self._format())

    def _format(self) -> str:
        parts = [self.message]
        if self.backend:
            parts.append(f"backend={self.backend!r}")
        if self.loss is not None:
            parts.append(f"loss={self.loss:.6g}")
        if self.nit is not None:
            parts.append(f"nit={self.nit}")
        return "; ".join(parts)
