from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Tuple
from warnings import warn

import numpy as np
import uncertainties

from .errors import ConfigurationError, InvalidInputError

__all__ = [
    "ParameterSpec",
    "ParameterSpace",
    "ParamView",
    "ParamsView",
    "make_parspace",
    "parspace_from_range",
]


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    lower: float
    upper: float
    start: float
    # None means free; otherwise the parameter is held at this value.
    fixed_value: Optional[float] = None

    def __post_init__(self):
        for attr in ("lower", "upper", "start"):
            v = float(getattr(self, attr))
            if not math.isfinite(v):
                raise InvalidInputError(
                    f"Parameter {self.name!r}: {attr} must be finite, got {v!r}."
                )
            object.__setattr__(self, attr, v)
        if self.lower > self.upper:
            raise InvalidInputError(
                f"Parameter {self.name!r}: lower ({self.lower:g}) > upper ({self.upper:g})."
            )
        if not (self.lower <= self.start <= self.upper):
            raise InvalidInputError(
                f"Parameter {self.name!r}: start {self.start:g} outside "
                f"[{self.lower:g}, {self.upper:g}]."
            )
        if self.fixed_value is not None:
            fv = float(self.fixed_value)
            if not math.isfinite(fv):
                raise InvalidInputError(
                    f"Parameter {self.name!r}: fixed value must be finite, got {fv!r}."
                )
            if not (self.lower <= fv <= self.upper):
                raise InvalidInputError(
                    f"Parameter {self.name!r}: fixed value {fv:g} outside "
                    f"[{self.lower:g}, {self.upper:g}]."
                )
            object.__setattr__(self, "fixed_value", fv)

    @property
    def fixed(self) -> bool:
        return self.fixed_value is not None

    @property
    def is_point(self) -> bool:
        return self.lower == self.upper

    @property
    def value(self) -> float:
        """Fixed value if set, else the start value."""
        return self.start if self.fixed_value is None else self.fixed_value

    @property
    def bounds(self) -> Tuple[float, float]:
        return (self.lower, self.upper)


class ParameterSpace:
    """Ordered, immutable collection of ParameterSpec keyed by name.

    All "mutators" return a new space; the only changes allowed after a model
    has built its space are fixed/free toggles and bound/start overrides.
    """

    def __init__(self, specs: Sequence[ParameterSpec] = ()):
        specs = tuple(specs)
        names = [s.name for s in specs]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ConfigurationError(f"Duplicate parameter names: {dupes}")
        self._specs: Tuple[ParameterSpec, ...] = specs
        self._index: Dict[str, ParameterSpec] = {s.name: s for s in specs}

    # ---- mapping-ish access ----
    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self._specs)

    def __getitem__(self, name: str) -> ParameterSpec:
        try:
            return self._index[name]
        except KeyError:
            raise KeyError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __iter__(self) -> Iterator[ParameterSpec]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParameterSpace):
            return NotImplemented
        return self._specs == other._specs

    def __add__(self, other: "ParameterSpace") -> "ParameterSpace":
        return ParameterSpace(self._specs + tuple(other))

    def __repr__(self) -> str:
        rows = []
        for s in self._specs:
            fx = "" if s.fixed_value is None else f", fixed={s.fixed_value:g}"
            rows.append(f"{s.name}=[{s.lower:g}, {s.upper:g}] start={s.start:g}{fx}")
        return "ParameterSpace(" + "; ".join(rows) + ")"

    # ---- views used by fitting ----
    def start_values(self) -> Dict[str, float]:
        return {s.name: s.start for s in self._specs}

    def values(self) -> Dict[str, float]:
        """name -> fixed value if fixed, else start value."""
        return {s.name: s.value for s in self._specs}

    def free_names(self) -> list[str]:
        """Names the optimizer may move (not fixed, not a point range)."""
        return [s.name for s in self._specs if not s.fixed and not s.is_point]

    def fixed_map(self) -> Dict[str, float]:
        """name -> value for everything the optimizer must not move."""
        free = set(self.free_names())
        return {s.name: s.value for s in self._specs if s.name not in free}

    def bounds_for(self, names: Sequence[str]) -> Tuple[np.ndarray, np.ndarray]:
        lo = np.array([self[n].lower for n in names], dtype=float)
        hi = np.array([self[n].upper for n in names], dtype=float)
        return lo, hi

    # ---- builders (pure; return new space) ----
    def fix(self, fixed: Mapping[str, float]) -> "ParameterSpace":
        """Return a new space with parameters held at the given values."""
        unknown = [k for k in fixed if k not in self._index]
        if unknown:
            raise InvalidInputError(
                f"Cannot fix unknown parameter(s) {unknown}. Known: {self.names}"
            )
        out = []
        for s in self._specs:
            if s.name in fixed:
                v = fixed[s.name]
                if v is None or not _is_number(v):
                    raise InvalidInputError(
                        f"Fixed value for {s.name!r} must be a number, got {v!r}."
                    )
                out.append(replace(s, fixed_value=float(v)))
            else:
                out.append(s)
        return ParameterSpace(out)

    def fix_start(self) -> "ParameterSpace":
        """Return a new space with every parameter held at its start value."""
        return ParameterSpace([replace(s, fixed_value=s.start) for s in self._specs])

    def free(self, *names: str) -> "ParameterSpace":
        """Return a new space with the named parameters released."""
        unknown = [n for n in names if n not in self._index]
        if unknown:
            raise InvalidInputError(f"Unknown parameter(s) {unknown}.")
        return ParameterSpace(
            [replace(s, fixed_value=None) if s.name in names else s for s in self._specs]
        )

    def update(
        self,
        *,
        lower: Optional[Mapping[str, float]] = None,
        upper: Optional[Mapping[str, float]] = None,
        start: Optional[Mapping[str, float]] = None,
    ) -> "ParameterSpace":
        """Return a new space with bound/start overrides applied.

        Start values that fall outside the new bounds (and were not
        overridden themselves) are clipped into range with a warning.
        """
        lower = dict(lower or {})
        upper = dict(upper or {})
        start = dict(start or {})
        for what, m in (("lb", lower), ("ub", upper), ("start", start)):
            unknown = [k for k in m if k not in self._index]
            if unknown:
                raise InvalidInputError(f"Unknown parameter(s) in {what}: {unknown}")

        out = []
        clipped = []
        for s in self._specs:
            lo = float(lower.get(s.name, s.lower))
            hi = float(upper.get(s.name, s.upper))
            st = float(start.get(s.name, s.start))
            if s.name not in start and lo <= hi:
                st0 = st
                st = min(max(st, lo), hi)
                if st != st0:
                    clipped.append(s.name)
            out.append(ParameterSpec(s.name, lo, hi, st, s.fixed_value))
        if clipped:
            warn("Clipped start values into bounds for: " + ", ".join(clipped), UserWarning)
        return ParameterSpace(out)


def make_parspace(**specs: Sequence[Any]) -> ParameterSpace:
    """Build a ParameterSpace from ``name=(lower, upper[, start[, fixed]])``.

    A missing start defaults to the midpoint of the range; a fixed entry of
    None or NaN leaves the parameter free.

        make_parspace(nu=(1, 10), tau=(0.0001, 10, 0.5))
    """
    out = []
    for name, spec in specs.items():
        spec = tuple(spec)
        if len(spec) not in (2, 3, 4):
            raise InvalidInputError(
                f"Parameter {name!r} expects (lower, upper[, start[, fixed]]), got {spec!r}."
            )
        lo, hi = float(spec[0]), float(spec[1])
        start = 0.5 * (lo + hi)
        if len(spec) >= 3 and spec[2] is not None and not _is_nan(spec[2]):
            start = float(spec[2])
        fixed = None
        if len(spec) == 4 and spec[3] is not None and not _is_nan(spec[3]):
            fixed = float(spec[3])
        out.append(ParameterSpec(name=name, lower=lo, upper=hi, start=start, fixed_value=fixed))
    return ParameterSpace(out)


def parspace_from_range(name: str, values: Any) -> ParameterSpace:
    """One-parameter space spanning the observed range of ``values``.

    lower = min, upper = max, start = midpoint. A constant input gives a
    point range, which the optimizer treats as fixed.
    """
    arr = np.asarray(values, dtype=float).reshape(-1)
    if arr.size == 0:
        raise InvalidInputError(f"Cannot derive range for {name!r} from empty input.")
    if not np.all(np.isfinite(arr)):
        raise InvalidInputError(
            f"Cannot derive range for {name!r}: input contains non-finite values."
        )
    lo = float(np.min(arr))
    hi = float(np.max(arr))
    if lo == hi:
        warn(
            f"Input for {name!r} is constant ({lo:g}); parameter range is a single point.",
            UserWarning,
        )
    return make_parspace(**{name: (lo, hi, 0.5 * (lo + hi))})


def _is_number(v: Any) -> bool:
    if isinstance(v, bool):
        return False
    return isinstance(v, (int, float, np.number))


def _is_nan(v: Any) -> bool:
    return _is_number(v) and math.isnan(float(v))


# ---------------------------------------------------------------------------
# Read-only views over fitted parameters


@dataclass
class _UncContext:
    """Shared covariance for correlated ``.u`` access across ParamViews."""

    values: Mapping[str, float]
    cov: Optional[np.ndarray]
    free_names: Tuple[str, ...]
    _cache: Optional[Dict[str, Any]] = field(default=None, init=False, repr=False)

    def u_for(self, name: str) -> Optional[Any]:
        if name not in self.free_names or self.cov is None:
            return None
        if self._cache is None:
            cov = np.asarray(self.cov, dtype=float)
            if cov.shape != (len(self.free_names), len(self.free_names)):
                return None
            vals = [float(self.values[n]) for n in self.free_names]
            try:
                corr = uncertainties.correlated_values(vals, cov)
            except Exception:
                return None
            self._cache = dict(zip(self.free_names, corr))
        return self._cache.get(name)


@dataclass(frozen=True)
class ParamView:
    """A single fitted parameter."""

    name: str
    value: float
    stderr: Optional[float] = None
    fixed: bool = False
    bounds: Optional[Tuple[float, float]] = None
    _context: Optional[_UncContext] = field(default=None, repr=False, compare=False)

    @property
    def u(self):
        """Return an uncertainties ufloat if stderr is available."""
        if self.stderr is None:
            raise ValueError(f"No stderr available for parameter {self.name!r}.")
        if not math.isfinite(float(self.stderr)):
            raise ValueError(f"stderr for {self.name!r} is not finite.")
        if self._context is not None:
            correlated = self._context.u_for(self.name)
            if correlated is not None:
                return correlated
        return uncertainties.ufloat(float(self.value), float(self.stderr))

    def __float__(self) -> float:
        return float(self.value)


class ParamsView(Mapping[str, ParamView]):
    """Mapping name -> ParamView, also indexable by position."""

    def __init__(self, items: Mapping[str, ParamView], *, _context: Optional[_UncContext] = None):
        self._items = dict(items)
        self._names = tuple(self._items.keys())
        self._context = _context

    def __getitem__(self, key):  # type: ignore[override]
        if isinstance(key, str):
            return self._items[key]
        if isinstance(key, int):
            return self._items[self._names[key]]
        raise KeyError(key)

    def __iter__(self):
        return iter(self._items)

    def __len__(self):
        return len(self._items)

    def as_dict(self) -> Dict[str, float]:
        """Return name->value."""
        return {k: float(v.value) for k, v in self._items.items()}

    @staticmethod
    def build(
        values: Mapping[str, float],
        parspace: ParameterSpace,
        *,
        free_names: Sequence[str] = (),
        cov: Optional[np.ndarray] = None,
    ) -> "ParamsView":
        """Assemble views for every parameter in ``parspace``."""
        free_names = tuple(free_names)
        stderrs: Dict[str, Optional[float]] = {n: None for n in parspace.names}
        if cov is not None:
            perr = np.sqrt(np.clip(np.diag(np.asarray(cov, dtype=float)), 0.0, np.inf))
            for j, n in enumerate(free_names):
                stderrs[n] = float(perr[j])
        ctx = _UncContext(values=dict(values), cov=cov, free_names=free_names)
        items = {}
        for spec in parspace:
            items[spec.name] = ParamView(
                name=spec.name,
                value=float(values[spec.name]),
                stderr=stderrs[spec.name],
                fixed=spec.name not in free_names,
                bounds=spec.bounds,
                _context=ctx,
            )
        return ParamsView(items, _context=ctx)
