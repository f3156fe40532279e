"""White dwarf cooling-model grid for one filter and atmosphere type.

The grid holds one monotonic cooling track (cooling time -> absolute
magnitude) per tabulated white dwarf mass, sorted by mass. A query at an
exact tabulated mass uses that track directly. Between tracks, each bounding
track is evaluated independently and the two results are blended linearly in
mass. Outside the mass range the two edge tracks are extrapolated across mass
with the same two-point formula, and the query is flagged as extrapolated.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

import numpy as np

from wdlf.errors import EmptyModelGridError
from wdlf.interpolation import MonotonicTrack, SortedTable, scalar_or_array

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


class AtmosphereType(str, Enum):
    H = "H"
    HE = "He"


class WdCoolingModelGrid:
    """Immutable set of cooling tracks keyed by white dwarf mass.

    Args:
        tracks: ``{mass: MonotonicTrack(cooling_time -> magnitude)}``.
        filter_name: Passband label of the magnitudes.
        atmosphere: Atmosphere type of every track in the grid.

    Raises:
        EmptyModelGridError: If no tracks are given.
    """

    def __init__(
        self,
        tracks: Mapping[float, MonotonicTrack],
        filter_name: str,
        atmosphere: AtmosphereType,
    ) -> None:
        if not tracks:
            raise EmptyModelGridError(
                f"Cooling grid for {filter_name}/{atmosphere.value} has no tracks"
            )
        self._tracks: SortedTable[MonotonicTrack] = SortedTable(tracks)
        self.filter_name = filter_name
        self.atmosphere = AtmosphereType(atmosphere)

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[tuple[float, float, float]],
        filter_name: str,
        atmosphere: AtmosphereType,
    ) -> WdCoolingModelGrid:
        """Build from (mass, cooling_time, magnitude) rows."""
        grouped: dict[float, list[tuple[float, float]]] = {}
        for mass, time, mag in rows:
            grouped.setdefault(float(mass), []).append((float(time), float(mag)))
        tracks = {mass: MonotonicTrack.from_points(points) for mass, points in grouped.items()}
        return cls(tracks, filter_name, atmosphere)

    @property
    def masses(self) -> NDArray[np.float64]:
        return self._tracks.keys

    def track(self, mass: float) -> MonotonicTrack:
        """Track tabulated at exactly ``mass``."""
        for key, track in self._tracks:
            if key == mass:
                return track
        raise KeyError(f"No cooling track at mass {mass}")

    def _blend(
        self,
        x: ArrayLike,
        mass: ArrayLike,
        fn: Callable[[MonotonicTrack, NDArray[np.float64]], Any],
    ) -> NDArray[np.float64]:
        xx, mm = (np.atleast_1d(a).astype(np.float64) for a in np.broadcast_arrays(x, mass))
        lo, hi, frac = self._tracks.bracket_array(mm)
        cols = np.arange(xx.size)
        needed = np.unique(np.concatenate([lo, hi]))
        per_track = np.empty((len(self._tracks), xx.size))
        for i in needed:
            per_track[i] = np.asarray(fn(self._tracks.values[i], xx))
        return (1.0 - frac) * per_track[lo, cols] + frac * per_track[hi, cols]

    def magnitude(self, cooling_time: ArrayLike, mass: ArrayLike) -> Any:
        """Absolute magnitude at (cooling time [yr], WD mass [M_sun])."""
        shape = np.broadcast(cooling_time, mass).shape
        out = self._blend(cooling_time, mass, lambda t, x: t.interpolate(x)).reshape(shape)
        return scalar_or_array(out, out)

    def cooling_time(self, magnitude: ArrayLike, mass: ArrayLike) -> Any:
        """Cooling time [yr] at which a WD of ``mass`` reaches ``magnitude``."""
        shape = np.broadcast(magnitude, mass).shape
        out = self._blend(magnitude, mass, lambda t, x: t.inverse(x)).reshape(shape)
        return scalar_or_array(out, out)

    def is_extrapolated(self, cooling_time: ArrayLike, mass: ArrayLike) -> Any:
        """True if the mass is off-grid or a bounding track lacks the time."""
        shape = np.broadcast(cooling_time, mass).shape
        tt, mm = (np.atleast_1d(a).astype(np.float64) for a in np.broadcast_arrays(cooling_time, mass))
        outside = (mm < self._tracks.first_key) | (mm > self._tracks.last_key)
        lo, hi, _ = self._tracks.bracket_array(mm)
        cols = np.arange(tt.size)
        missing = np.stack([~np.asarray(track.contains(tt)) for _, track in self._tracks])
        flags = (outside | missing[lo, cols] | missing[hi, cols]).reshape(shape)
        return bool(flags) if flags.ndim == 0 else flags

    def describe(self) -> str:
        return (
            f"{self.filter_name}/{self.atmosphere.value}: {len(self._tracks)} tracks, "
            f"masses [{self._tracks.first_key}, {self._tracks.last_key}]"
        )


__all__ = ["AtmosphereType", "WdCoolingModelGrid"]
