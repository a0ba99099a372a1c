from __future__ import annotations

from typing import Any

import numpy as np
from scipy.optimize import differential_evolution

from ..errors import ConfigurationError
from .common import Bounds, BackendResult, CovarianceOptions, Objective, inverse_hessian, scipy_result, vector_objective

_DEFAULTS = {"maxiter": 100, "popsize": 15, "tol": 0.01, "strategy": "best1bin"}
_PASSTHROUGH = (
    "maxiter", "popsize", "tol", "strategy", "mutation", "recombination",
    "seed", "polish", "init", "atol", "updating",
)


class ScipyDifferentialEvolutionBackend:
    """Global optimisation with scipy.optimize.differential_evolution.

    Every free parameter needs a finite, non-degenerate range. The start
    values seed the population through ``x0``. Covariance comes from a
    numerical Hessian at the optimum (``cov_method="none"`` disables it).
    Population members are evaluated serially; ``workers`` other than 1 is
    rejected since the objective is a closure and cannot be pickled.
    """

    name = "scipy.differential_evolution"

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
        lo, hi = (np.ravel(np.asarray(b, dtype=float)) for b in bounds)
        if lo.size != len(free_names) or hi.size != len(free_names):
            raise ConfigurationError(
                f"Expected bounds for {len(free_names)} free parameter(s), got {lo.size}/{hi.size}."
            )
        bad = [n for n, a, b in zip(free_names, lo, hi) if not (np.isfinite(a) and np.isfinite(b) and a < b)]
        if bad:
            raise ConfigurationError(
                f"scipy.differential_evolution needs finite bounds with lower < upper; not so for {bad}."
            )

        if options.get("workers", 1) != 1:
            raise ConfigurationError(
                f"scipy.differential_evolution runs with workers=1 only, got {options['workers']!r}."
            )
        kwargs = {k: options.get(k, _DEFAULTS.get(k)) for k in _PASSTHROUGH if k in options or k in _DEFAULTS}
        f = vector_objective(objective, free_names, fixed_map)
        res = differential_evolution(
            f,
            list(zip(lo, hi)),
            x0=np.asarray(p0, dtype=float),
            **kwargs,
        )

        cov = CovarianceOptions.from_options(options, "numdiff")
        hess_inv = inverse_hessian(f, res.x, (lo, hi), cov) if cov.enabled else None
        return scipy_result(self.name, res, hess_inv)
