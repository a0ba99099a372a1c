from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Sequence, Tuple

import numpy as np

Objective = Callable[[Mapping[str, float]], float]
Bounds = Tuple[np.ndarray, np.ndarray]


@dataclass(frozen=True)
class BackendResult:
    """What a backend hands back to the model after one optimisation."""

    theta: np.ndarray  # optimum over the free parameters, (P,)
    hess_inv: Optional[np.ndarray] = None  # inverse Hessian of the loss at theta
    success: bool = True
    message: str = ""
    stats: Dict[str, Any] = field(default_factory=dict)  # backend, fun, nit, nfev


class Backend(Protocol):
    name: str

    def fit_one(
        self,
        *,
        objective: Objective,
        free_names: list[str],
        fixed_map: dict[str, float],
        p0: np.ndarray,
        bounds: Bounds,
        options: dict[str, Any],
    ) -> BackendResult: ...


def vector_objective(
    objective: Objective, free_names: Sequence[str], fixed_map: Mapping[str, float]
) -> Callable[[np.ndarray], float]:
    """Wrap a loss over named parameters as a loss over the free vector.

    Non-finite losses are reported as +inf so optimizers step away from them.
    """
    names = tuple(free_names)
    base = dict(fixed_map)

    def f(theta: np.ndarray) -> float:
        par = dict(base)
        par.update(zip(names, (float(t) for t in np.ravel(theta))))
        loss = float(objective(par))
        return loss if np.isfinite(loss) else np.inf

    return f


@dataclass(frozen=True)
class CovarianceOptions:
    method: str = "auto"
    step: float = 1e-4
    jitter: float = 1e-8

    @staticmethod
    def from_options(options: Mapping[str, Any], default_method: str) -> "CovarianceOptions":
        step = options.get("cov_step")
        return CovarianceOptions(
            method=str(options.get("cov_method", default_method)).lower(),
            step=1e-4 if step is None else float(step),
            jitter=float(options.get("cov_jitter", 1e-8)),
        )

    @property
    def enabled(self) -> bool:
        return self.method not in ("none", "off", "false")


def numdiff_hessian(
    func: Callable[[np.ndarray], float],
    x0: np.ndarray,
    bounds: Bounds,
    step: float = 1e-4,
) -> Optional[np.ndarray]:
    """Central-difference Hessian whose stencil stays inside ``bounds``.

    None if any parameter sits on a bound or the result is not finite.
    """
    x0 = np.asarray(x0, dtype=float)
    lo, hi = (np.asarray(b, dtype=float) for b in bounds)
    h = step * (1.0 + np.abs(x0))
    room = np.minimum(x0 - lo, hi - x0)  # inf for unbounded sides
    h = np.minimum(h, 0.25 * room)
    if np.any(~(h > 0.0)):
        return None

    def at(*moves: Tuple[int, float]) -> float:
        x = x0.copy()
        for i, sign in moves:
            x[i] += sign * h[i]
        return float(func(x))

    # Four-point stencil; on the diagonal it reduces to a 2h second difference.
    p = x0.size
    hess = np.empty((p, p), dtype=float)
    for i, j in zip(*np.triu_indices(p)):
        d = (at((i, 1), (j, 1)) - at((i, 1), (j, -1)) - at((i, -1), (j, 1)) + at((i, -1), (j, -1)))
        hess[i, j] = hess[j, i] = d / (4.0 * h[i] * h[j])
    return hess if np.all(np.isfinite(hess)) else None


def inverse_hessian(
    func: Callable[[np.ndarray], float],
    theta: np.ndarray,
    bounds: Bounds,
    cov: CovarianceOptions,
) -> Optional[np.ndarray]:
    hess = numdiff_hessian(func, theta, bounds, cov.step)
    if hess is None:
        return None
    hess = hess + cov.jitter * np.eye(hess.shape[0])
    try:
        inv = np.linalg.pinv(hess)
    except np.linalg.LinAlgError:
        return None
    return inv if np.all(np.isfinite(inv)) else None


def scipy_result(name: str, res: Any, hess_inv: Optional[np.ndarray], **extra: Any) -> BackendResult:
    """Normalise a scipy OptimizeResult."""
    stats = {
        "backend": name,
        "fun": float(res.fun),
        "nit": int(getattr(res, "nit", 0) or 0),
        "nfev": int(getattr(res, "nfev", 0) or 0),
    }
    stats.update(extra)
    return BackendResult(
        theta=np.asarray(res.x, dtype=float),
        hess_inv=hess_inv,
        success=bool(res.success),
        message=str(res.message),
        stats=stats,
    )
