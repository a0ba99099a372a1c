"""Optimizer backends, looked up by solver name."""

from __future__ import annotations

from typing import Dict

from ..errors import ConfigurationError
from .common import Backend, BackendResult
from .scipy_differential_evolution import ScipyDifferentialEvolutionBackend
from .scipy_minimize import ScipyMinimizeBackend

_BACKENDS: Dict[str, Backend] = {
    b.name: b for b in (ScipyMinimizeBackend(), ScipyDifferentialEvolutionBackend())
}

AVAILABLE_BACKENDS = tuple(_BACKENDS)


def get_backend(name: str) -> Backend:
    """Return the backend registered as ``name`` (case-insensitive)."""
    backend = _BACKENDS.get(str(name).lower())
    if backend is None:
        raise ConfigurationError(f"Unknown solver {name!r}. Available: {AVAILABLE_BACKENDS}")
    return backend


__all__ = ["AVAILABLE_BACKENDS", "Backend", "BackendResult", "get_backend"]
