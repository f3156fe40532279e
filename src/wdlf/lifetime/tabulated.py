"""Pre-WD lifetimes interpolated from tabulated stellar-evolution tracks.

Tracks are keyed by metallicity Z, then helium content Y. Each track is a
monotonic mass -> lifetime relation. A query interpolates every bracketing
track at the requested mass, then blends across Y within each Z, then across Z.
Bracketing uses the floor/ceiling entries, the two edge entries when the key
lies outside the table, and the single entry when only one exists.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

import numpy as np

from wdlf.errors import EmptyModelGridError
from wdlf.interpolation import MonotonicTrack, SortedTable, scalar_or_array
from wdlf.lifetime.base import PreWdLifetime

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

TrackFn = Callable[[MonotonicTrack, "NDArray[np.float64]"], "NDArray[np.float64]"]


class TabulatedPreWdLifetime(PreWdLifetime):
    """Lifetime model backed by a Z -> Y -> track table.

    Args:
        tracks: Nested mapping ``{Z: {Y: MonotonicTrack(mass -> lifetime)}}``.
        name: Label used in descriptions and persisted headers.
    """

    def __init__(
        self,
        tracks: Mapping[float, Mapping[float, MonotonicTrack]],
        name: str = "tabulated",
    ) -> None:
        if not tracks:
            raise EmptyModelGridError("Lifetime table has no metallicity entries")
        self._table: SortedTable[SortedTable[MonotonicTrack]] = SortedTable(
            {float(z): SortedTable(by_y) for z, by_y in tracks.items()}
        )
        self.name = name

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[tuple[float, float, float, float]],
        name: str = "tabulated",
    ) -> TabulatedPreWdLifetime:
        """Build from (Z, Y, mass, lifetime) rows."""
        grouped: dict[float, dict[float, list[tuple[float, float]]]] = {}
        for z, y, mass, life in rows:
            grouped.setdefault(float(z), {}).setdefault(float(y), []).append(
                (float(mass), float(life))
            )
        return cls(
            {
                z: {y: MonotonicTrack.from_points(points) for y, points in by_y.items()}
                for z, by_y in grouped.items()
            },
            name=name,
        )

    @property
    def metallicities(self) -> NDArray[np.float64]:
        return self._table.keys

    def _evaluate(self, z: ArrayLike, y: ArrayLike, x: ArrayLike, fn: TrackFn) -> NDArray[np.float64]:
        zz, yy, xx = (np.atleast_1d(a).astype(np.float64) for a in np.broadcast_arrays(z, y, x))
        cols = np.arange(xx.size)
        zlo, zhi, zf = self._table.bracket_array(zz)
        per_z = np.empty((len(self._table), xx.size))
        for iz, (_, by_y) in enumerate(self._table):
            ylo, yhi, yf = by_y.bracket_array(yy)
            per_y = np.stack([fn(track, xx) for _, track in by_y])
            per_z[iz] = (1.0 - yf) * per_y[ylo, cols] + yf * per_y[yhi, cols]
        return (1.0 - zf) * per_z[zlo, cols] + zf * per_z[zhi, cols]

    def lifetime(self, z: ArrayLike, y: ArrayLike, mass: ArrayLike) -> Any:
        values = self._evaluate(z, y, mass, lambda t, m: np.asarray(t.interpolate(m)))
        out = values.reshape(np.broadcast(z, y, mass).shape)
        return scalar_or_array(out, out)

    def lifetime_derivative(self, z: ArrayLike, y: ArrayLike, mass: ArrayLike) -> Any:
        """d(lifetime)/d(mass) blended the same way as the lifetime."""
        values = self._evaluate(z, y, mass, lambda t, m: np.asarray(t.derivative(m)))
        out = values.reshape(np.broadcast(z, y, mass).shape)
        return scalar_or_array(out, out)

    def mass_from_lifetime(self, z: ArrayLike, y: ArrayLike, lifetime: ArrayLike) -> Any:
        """Invert the blended relation.

        Each track is inverted and the inverses blended; a single Newton step
        on the blended forward relation then removes most of the blending error.
        """
        shape = np.broadcast(z, y, lifetime).shape
        target = np.broadcast_to(np.asarray(lifetime, dtype=np.float64), shape).ravel()
        guess = self._evaluate(z, y, lifetime, lambda t, life: np.asarray(t.inverse(life)))
        zb = np.broadcast_to(np.asarray(z, dtype=np.float64), shape).ravel()
        yb = np.broadcast_to(np.asarray(y, dtype=np.float64), shape).ravel()
        value = self._evaluate(zb, yb, guess, lambda t, m: np.asarray(t.interpolate(m)))
        slope = self._evaluate(zb, yb, guess, lambda t, m: np.asarray(t.derivative(m)))
        safe = np.where(slope != 0.0, slope, 1.0)
        mass = np.where(slope != 0.0, guess - (value - target) / safe, guess)
        out = mass.reshape(shape)
        return scalar_or_array(out, out)

    def is_extrapolated(self, z: ArrayLike, y: ArrayLike, mass: ArrayLike) -> Any:
        zz, yy, mm = (np.atleast_1d(a).astype(np.float64) for a in np.broadcast_arrays(z, y, mass))
        cols = np.arange(mm.size)
        flags = (zz < self._table.first_key) | (zz > self._table.last_key)
        zlo, zhi, _ = self._table.bracket_array(zz)
        per_z = np.zeros((len(self._table), mm.size), dtype=bool)
        for iz, (_, by_y) in enumerate(self._table):
            ylo, yhi, _ = by_y.bracket_array(yy)
            outside = np.stack([~np.asarray(track.contains(mm)) for _, track in by_y])
            y_out = (yy < by_y.first_key) | (yy > by_y.last_key)
            per_z[iz] = y_out | outside[ylo, cols] | outside[yhi, cols]
        flags |= per_z[zlo, cols] | per_z[zhi, cols]
        if np.ndim(mass) == 0 and np.ndim(z) == 0 and np.ndim(y) == 0:
            return bool(flags[0])
        return flags.reshape(np.broadcast(z, y, mass).shape)


__all__ = ["TabulatedPreWdLifetime"]
