from __future__ import annotations

from typing import Any, Optional

import numpy as np
from scipy.optimize import minimize

from .common import Bounds, BackendResult, CovarianceOptions, Objective, inverse_hessian, scipy_result, vector_objective


class ScipyMinimizeBackend:
    """Local bounded optimisation with scipy.optimize.minimize.

    Options: ``method`` (default L-BFGS-B), ``options`` and ``tol`` passed to
    scipy, plus ``cov_method`` ("auto" takes the solver's inverse Hessian when
    it has one, "numdiff" always differentiates numerically, "none" skips the
    covariance), ``cov_step`` and ``cov_jitter``.
    """

    name = "scipy.minimize"

    def fit_one(
        self,
        *,
        objective: Objective,
        free_names: list[str],
        fixed_map: dict[str, float],
        p0: np.ndarray,
        bounds: Bounds,
        options: dict[str, Any],
    ) -> BackendResult:
        f = vector_objective(objective, free_names, fixed_map)
        lo, hi = bounds
        method = str(options.get("method", "L-BFGS-B"))
        extra = {"tol": float(options["tol"])} if "tol" in options else {}

        res = minimize(
            f,
            np.asarray(p0, dtype=float),
            method=method,
            bounds=list(zip(map(float, lo), map(float, hi))),
            options=dict(options.get("options") or {}),
            **extra,
        )

        cov = CovarianceOptions.from_options(options, "auto")
        hess_inv = _dense(getattr(res, "hess_inv", None)) if cov.method == "auto" else None
        if hess_inv is None and cov.enabled:
            hess_inv = inverse_hessian(f, res.x, bounds, cov)
        return scipy_result(self.name, res, hess_inv, method=method)


def _dense(h: Any) -> Optional[np.ndarray]:
    # L-BFGS-B returns a LinearOperator, BFGS a dense array.
    if h is None:
        return None
    out = np.asarray(h.todense() if hasattr(h, "todense") else h, dtype=float)
    if out.ndim != 2 or not np.all(np.isfinite(out)):
        return None
    return out
