"""Base class for initial-final mass relations."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import numpy as np

from wdlf.interpolation import scalar_or_array

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

BREAKDOWN_SEARCH_RANGE = (0.25, 7.0)
BREAKDOWN_TOLERANCE = 1e-14


class InitialFinalMassRelation(ABC):
    """Monotonic map from progenitor mass to white dwarf mass [M_sun].

    Inputs outside the calibrated range are extrapolated from the nearest
    segment without error; ``is_extrapolated`` reports when that happens.
    """

    name: str = "ifmr"
    calibrated_range: tuple[float, float] = (0.0, math.inf)

    @abstractmethod
    def _final(self, initial_mass: NDArray[np.float64]) -> NDArray[np.float64]: ...

    @abstractmethod
    def _initial(self, final_mass: NDArray[np.float64]) -> NDArray[np.float64]: ...

    def final_mass(self, initial_mass: ArrayLike) -> Any:
        return scalar_or_array(self._final(np.asarray(initial_mass, dtype=np.float64)), initial_mass)

    def initial_mass(self, final_mass: ArrayLike) -> Any:
        return scalar_or_array(self._initial(np.asarray(final_mass, dtype=np.float64)), final_mass)

    def is_extrapolated(self, initial_mass: ArrayLike) -> Any:
        m = np.asarray(initial_mass, dtype=np.float64)
        lo, hi = self.calibrated_range
        flags = (m < lo) | (m > hi)
        return bool(flags) if flags.ndim == 0 else flags

    def breakdown_initial_mass(self) -> float:
        """Fixed point of the relation, found by bisection of f(m) - m."""
        return bisect_fixed_point(lambda m: float(self._final(np.asarray(m))))

    def describe(self) -> str:
        return self.name


def bisect_fixed_point(
    fn,
    lower: float = BREAKDOWN_SEARCH_RANGE[0],
    upper: float = BREAKDOWN_SEARCH_RANGE[1],
    tolerance: float = BREAKDOWN_TOLERANCE,
) -> float:
    """Solve fn(m) == m on [lower, upper] by bisection.

    Raises:
        ValueError: If fn(m) - m does not change sign over the range.
    """
    g_lo = fn(lower) - lower
    g_hi = fn(upper) - upper
    if g_lo * g_hi > 0.0:
        raise ValueError(f"No fixed point in [{lower}, {upper}]")
    lo, hi = lower, upper
    for _ in range(200):
        mid = 0.5 * (lo + hi)
        g_mid = fn(mid) - mid
        if (g_mid > 0.0) == (g_lo > 0.0):
            lo, g_lo = mid, g_mid
        else:
            hi = mid
        if hi - lo < tolerance:
            break
    return 0.5 * (lo + hi)


__all__ = [
    "BREAKDOWN_SEARCH_RANGE",
    "BREAKDOWN_TOLERANCE",
    "InitialFinalMassRelation",
    "bisect_fixed_point",
]
