from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from .params import ParamsView


@dataclass(frozen=True)
class FitResult:
    """Outcome of one fit. Replaced as a whole on every re-fit."""

    params: ParamsView
    cov: Optional[np.ndarray] = None  # free-parameter covariance (P,P)
    success: bool = True
    message: str = ""
    backend: str = ""
    loss: float = float("nan")
    fit_measure: str = ""
    nobs: int = 0
    stats: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key):
        return self.params[key]

    @property
    def optimized(self) -> bool:
        """False when every parameter was held fixed and no solver ran."""
        return bool(self.backend)

    def as_dict(self) -> Dict[str, float]:
        return self.params.as_dict()

    def summary(self, digits: int = 4) -> str:
        """Return a human-readable summary string for the fit."""
        backend = self.backend or "none (all parameters fixed)"
        lines = [f"FitResult(backend={backend!r}, nobs={self.nobs})"]
        lines.append(f"  {self.fit_measure + ' loss':>16s}: {self.loss:.{digits}g}")
        for name, pv in self.params.items():
            tag = " (fixed)" if pv.fixed else ""
            if pv.stderr is None:
                lines.append(f"  {name:>16s}: {pv.value:.{digits}g}{tag}")
            else:
                lines.append(
                    f"  {name:>16s}: {pv.value:.{digits}g} ± {pv.stderr:.{digits}g}{tag}"
                )
        return "\n".join(lines)
