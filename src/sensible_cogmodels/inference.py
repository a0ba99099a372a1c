from __future__ import annotations

from typing import Callable, Optional

import numpy as np
from scipy.special import gammaln

from .errors import ConfigurationError

Loss = Callable[[np.ndarray, np.ndarray], float]

FIT_MEASURES = ("mse", "sse", "loglikelihood")

_EPS = 1e-12


def sum_squared_error(pred: np.ndarray, obs: np.ndarray) -> float:
    pred = np.asarray(pred, dtype=float)
    obs = np.asarray(obs, dtype=float)
    return float(np.sum((pred - obs) ** 2))


def mean_squared_error(pred: np.ndarray, obs: np.ndarray) -> float:
    obs = np.asarray(obs, dtype=float)
    if obs.size == 0:
        return float("nan")
    return sum_squared_error(pred, obs) / float(obs.size)


def neg_loglike_binomial(p: np.ndarray, n: np.ndarray, k: np.ndarray) -> float:
    """Negative log-likelihood for Binomial(n, p) with stability clamping."""
    p = np.asarray(p, dtype=float)
    n = np.asarray(n, dtype=float)
    k = np.asarray(k, dtype=float)

    p = np.clip(p, _EPS, 1.0 - _EPS)

    logC = gammaln(n + 1.0) - gammaln(k + 1.0) - gammaln((n - k) + 1.0)
    ll = logC + k * np.log(p) + (n - k) * np.log(1.0 - p)
    return float(-np.sum(ll))


def neg_loglike_bernoulli(p: np.ndarray, y: np.ndarray) -> float:
    """Negative log-likelihood of 0/1 responses given P(y=1)."""
    y = np.asarray(y, dtype=float)
    return neg_loglike_binomial(p, np.ones_like(y), y)


def neg_loglike_normal(pred: np.ndarray, obs: np.ndarray, sigma: Optional[float] = None) -> float:
    """Gaussian negative log-likelihood.

    With sigma=None the maximum-likelihood sigma sqrt(SSE/N) is plugged in
    (profile likelihood), floored at a tiny positive value.
    """
    pred = np.asarray(pred, dtype=float)
    obs = np.asarray(obs, dtype=float)
    n = float(obs.size)
    sse = float(np.sum((pred - obs) ** 2))
    if sigma is None:
        sigma = max(np.sqrt(sse / n), 1e-8) if n > 0 else 1.0
    sigma = float(sigma)
    return float(0.5 * sse / sigma**2 + n * np.log(sigma) + 0.5 * n * np.log(2.0 * np.pi))


def get_fit_measure(name: str, *, discrete: bool) -> Loss:
    """Return the loss minimized for a fit measure.

    "loglikelihood" means the negative log-likelihood: Bernoulli on P(y=1)
    in discrete mode, Gaussian (profiled sigma) in continuous mode.
    """
    key = str(name).lower()
    if key == "mse":
        return mean_squared_error
    if key == "sse":
        return sum_squared_error
    if key == "loglikelihood":
        return neg_loglike_bernoulli if discrete else neg_loglike_normal
    raise ConfigurationError(
        f"Unknown fit_measure {name!r}. Available: {FIT_MEASURES}"
    )
