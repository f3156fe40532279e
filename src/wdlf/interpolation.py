"""Monotonic interpolation primitives shared by the tabulated models.

This module provides:
- MonotonicTrack: 1-D piecewise-linear relation with two-point extrapolation
- SortedTable: flat sorted association with floor/ceiling/bracket lookups
- linear_blend: two-point line formula used across model grids
- scalar_or_array: return a float for scalar input, an array otherwise

Every model grid (lifetime, IFMR, cooling) is built from these pieces, so the
extrapolation rule is identical everywhere: outside the tabulated range the
line through the two nearest points is extended.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import numpy as np

from wdlf.errors import EmptyModelGridError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

T = TypeVar("T")


def scalar_or_array(values: Any, template: Any) -> Any:
    """Return ``values`` as a float when ``template`` is scalar, else as an array."""
    if np.ndim(template) == 0:
        return float(np.asarray(values, dtype=np.float64).reshape(()))
    return np.asarray(values, dtype=np.float64)


def linear_blend(
    x: ArrayLike,
    x0: ArrayLike,
    y0: ArrayLike,
    x1: ArrayLike,
    y1: ArrayLike,
) -> NDArray[np.float64]:
    """Evaluate the line through (x0, y0) and (x1, y1) at x.

    Where ``x0 == x1`` the result is ``y0``.
    """
    x = np.asarray(x, dtype=np.float64)
    x0 = np.asarray(x0, dtype=np.float64)
    x1 = np.asarray(x1, dtype=np.float64)
    y0 = np.asarray(y0, dtype=np.float64)
    y1 = np.asarray(y1, dtype=np.float64)
    span = x1 - x0
    safe_span = np.where(span == 0.0, 1.0, span)
    frac = np.where(span == 0.0, 0.0, (x - x0) / safe_span)
    return y0 + (y1 - y0) * frac


def _piecewise_linear(
    xp: NDArray[np.float64],
    fp: NDArray[np.float64],
    x: ArrayLike,
) -> NDArray[np.float64]:
    x = np.asarray(x, dtype=np.float64)
    idx = np.clip(np.searchsorted(xp, x, side="right") - 1, 0, xp.size - 2)
    return linear_blend(x, xp[idx], fp[idx], xp[idx + 1], fp[idx + 1])


@dataclass(frozen=True, eq=False)
class MonotonicTrack:
    """Strictly monotonic tabulated relation y(x).

    Attributes:
        x: Independent variable, strictly increasing.
        y: Dependent variable, strictly increasing or strictly decreasing.
    """

    x: NDArray[np.float64]
    y: NDArray[np.float64]

    def __post_init__(self) -> None:
        x = np.asarray(self.x, dtype=np.float64)
        y = np.asarray(self.y, dtype=np.float64)
        if x.ndim != 1 or x.shape != y.shape:
            raise ValueError(f"x and y must be 1-D with equal length, got {x.shape} and {y.shape}")
        if x.size < 2:
            raise EmptyModelGridError(f"A track needs at least two points, got {x.size}")
        if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
            raise ValueError("Track points must be finite")
        if np.any(np.diff(x) <= 0.0):
            raise ValueError("Track x values must be strictly increasing")
        dy = np.diff(y)
        if not (np.all(dy > 0.0) or np.all(dy < 0.0)):
            raise ValueError("Track y values must be strictly monotonic")
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)

    @classmethod
    def from_points(cls, points: Iterable[tuple[float, float]]) -> MonotonicTrack:
        """Build a track from unordered (x, y) pairs."""
        ordered = sorted((float(px), float(py)) for px, py in points)
        if not ordered:
            raise EmptyModelGridError("A track needs at least two points, got 0")
        xs, ys = zip(*ordered)
        return cls(np.array(xs), np.array(ys))

    @property
    def increasing(self) -> bool:
        return bool(self.y[-1] > self.y[0])

    @property
    def domain(self) -> tuple[float, float]:
        return float(self.x[0]), float(self.x[-1])

    @property
    def value_range(self) -> tuple[float, float]:
        return float(self.y.min()), float(self.y.max())

    def interpolate(self, x: ArrayLike) -> Any:
        """Return y(x), extrapolating linearly beyond the tabulated range."""
        return scalar_or_array(_piecewise_linear(self.x, self.y, x), x)

    def derivative(self, x: ArrayLike) -> Any:
        """Return dy/dx of the segment used to evaluate y(x)."""
        xa = np.asarray(x, dtype=np.float64)
        idx = np.clip(np.searchsorted(self.x, xa, side="right") - 1, 0, self.x.size - 2)
        slope = (self.y[idx + 1] - self.y[idx]) / (self.x[idx + 1] - self.x[idx])
        return scalar_or_array(slope, x)

    def inverse(self, y: ArrayLike) -> Any:
        """Return x(y), extrapolating linearly beyond the tabulated range."""
        if self.increasing:
            values = _piecewise_linear(self.y, self.x, y)
        else:
            values = _piecewise_linear(self.y[::-1], self.x[::-1], y)
        return scalar_or_array(values, y)

    def contains(self, x: ArrayLike) -> Any:
        """True where x lies inside the tabulated domain (inclusive)."""
        xa = np.asarray(x, dtype=np.float64)
        inside = (xa >= self.x[0]) & (xa <= self.x[-1])
        return bool(inside) if np.ndim(x) == 0 else inside

    def contains_value(self, y: ArrayLike) -> Any:
        """True where y lies inside the tabulated value range (inclusive)."""
        lo, hi = self.value_range
        ya = np.asarray(y, dtype=np.float64)
        inside = (ya >= lo) & (ya <= hi)
        return bool(inside) if np.ndim(y) == 0 else inside


class SortedTable(Generic[T]):
    """Values keyed by a continuous parameter, held as flat sorted arrays.

    Lookups follow floor/ceiling semantics. ``bracket`` returns the pair of
    entries to interpolate between: the floor and ceiling entries inside the
    range, the same entry twice on an exact match, and the two edge entries
    when the key lies outside the range.
    """

    __slots__ = ("_keys", "_values")

    def __init__(self, entries: Mapping[float, T] | Iterable[tuple[float, T]]) -> None:
        items = entries.items() if isinstance(entries, Mapping) else entries
        ordered = sorted(((float(k), v) for k, v in items), key=lambda kv: kv[0])
        if not ordered:
            raise EmptyModelGridError("A sorted table needs at least one entry")
        keys = [k for k, _ in ordered]
        if len(set(keys)) != len(keys):
            raise ValueError("Sorted table keys must be unique")
        self._keys: tuple[float, ...] = tuple(keys)
        self._values: tuple[T, ...] = tuple(v for _, v in ordered)

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[tuple[float, T]]:
        return iter(zip(self._keys, self._values))

    def __getitem__(self, index: int) -> tuple[float, T]:
        return self._keys[index], self._values[index]

    @property
    def keys(self) -> NDArray[np.float64]:
        return np.array(self._keys, dtype=np.float64)

    @property
    def values(self) -> tuple[T, ...]:
        return self._values

    @property
    def first_key(self) -> float:
        return self._keys[0]

    @property
    def last_key(self) -> float:
        return self._keys[-1]

    def contains(self, key: float) -> bool:
        return self._keys[0] <= key <= self._keys[-1]

    def floor_index(self, key: float) -> int | None:
        idx = bisect_right(self._keys, key) - 1
        return idx if idx >= 0 else None

    def ceiling_index(self, key: float) -> int | None:
        idx = bisect_left(self._keys, key)
        return idx if idx < len(self._keys) else None

    def bracket(self, key: float) -> tuple[int, int]:
        """Return (lower, upper) indices of the entries to interpolate between."""
        n = len(self._keys)
        if n == 1:
            return 0, 0
        if key < self._keys[0]:
            return 0, 1
        if key > self._keys[-1]:
            return n - 2, n - 1
        lo = self.floor_index(key)
        hi = self.ceiling_index(key)
        assert lo is not None and hi is not None
        return lo, hi

    def bracket_array(
        self, keys: ArrayLike
    ) -> tuple[NDArray[np.intp], NDArray[np.intp], NDArray[np.float64]]:
        """Vectorised ``bracket`` returning (lower, upper, fraction).

        The interpolated value is ``(1 - fraction) * v[lower] + fraction * v[upper]``;
        the fraction falls outside [0, 1] when extrapolating.
        """
        x = np.atleast_1d(np.asarray(keys, dtype=np.float64))
        table = np.asarray(self._keys, dtype=np.float64)
        n = table.size
        if n == 1:
            zeros = np.zeros(x.shape, dtype=np.intp)
            return zeros, zeros.copy(), np.zeros(x.shape, dtype=np.float64)
        pos = np.searchsorted(table, x, side="left")
        exact = (pos < n) & (table[np.minimum(pos, n - 1)] == x)
        hi = np.clip(pos, 1, n - 1)
        lo = hi - 1
        frac = (x - table[lo]) / (table[hi] - table[lo])
        lo = np.where(exact, pos, lo)
        hi = np.where(exact, pos, hi)
        frac = np.where(exact, 0.0, frac)
        return lo, hi, frac


__all__ = [
    "MonotonicTrack",
    "SortedTable",
    "linear_blend",
    "scalar_or_array",
]
