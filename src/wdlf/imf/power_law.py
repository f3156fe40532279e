"""Single and broken power-law initial mass functions."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray

from wdlf.errors import ModelDomainError
from wdlf.imf.base import DEFAULT_MASS_LOWER, DEFAULT_MASS_UPPER, InitialMassFunction


def _segment_integral(exponent: float, m1: NDArray[np.float64] | float, m2: NDArray[np.float64] | float):
    """Integral of m**exponent between m1 and m2."""
    if exponent == -1.0:
        return np.log(np.asarray(m2) / np.asarray(m1))
    e1 = exponent + 1.0
    return (np.power(m2, e1) - np.power(m1, e1)) / e1


def _segment_inverse(exponent: float, m1: float, area: NDArray[np.float64]) -> NDArray[np.float64]:
    """Mass m such that the integral of m**exponent over [m1, m] equals area."""
    if exponent == -1.0:
        return m1 * np.exp(area)
    e1 = exponent + 1.0
    return np.power(area * e1 + m1**e1, 1.0 / e1)


class PowerLawImf(InitialMassFunction):
    """dN/dM = A M**exponent on [M_lower, M_upper].

    Example:
        >>> imf = PowerLawImf(-2.35, mass_lower=0.1, mass_upper=50.0)
        >>> round(imf.cumulative_integral(50.0), 6)
        1.0
    """

    name = "power_law"

    def __init__(
        self,
        exponent: float = -2.3,
        mass_lower: float = DEFAULT_MASS_LOWER,
        mass_upper: float = DEFAULT_MASS_UPPER,
    ) -> None:
        super().__init__(mass_lower, mass_upper)
        if not math.isfinite(exponent):
            raise ModelDomainError(f"IMF exponent must be finite, got {exponent}")
        self.exponent = float(exponent)
        self.normalisation = 1.0 / float(
            _segment_integral(self.exponent, self.mass_lower, self.mass_upper)
        )

    def _density(self, mass: NDArray[np.float64]) -> NDArray[np.float64]:
        return self.normalisation * np.power(mass, self.exponent)

    def _cumulative(self, mass: NDArray[np.float64]) -> NDArray[np.float64]:
        return self.normalisation * _segment_integral(self.exponent, self.mass_lower, mass)

    def _inverse_cumulative(self, u: NDArray[np.float64]) -> NDArray[np.float64]:
        return _segment_inverse(self.exponent, self.mass_lower, u / self.normalisation)

    def describe(self) -> str:
        return f"power law, exponent {self.exponent}, [{self.mass_lower}, {self.mass_upper}] M_sun"


class BrokenPowerLawImf(InitialMassFunction):
    """Continuous multi-segment power law.

    Args:
        breaks: Interior break masses, strictly increasing.
        exponents: One exponent per segment (``len(breaks) + 1`` values).
        mass_lower: Lower mass limit.
        mass_upper: Upper mass limit.

    Segments lying entirely outside [mass_lower, mass_upper] carry no weight;
    the density is continuous across every break.
    """

    name = "broken_power_law"

    def __init__(
        self,
        breaks: Sequence[float],
        exponents: Sequence[float],
        mass_lower: float = DEFAULT_MASS_LOWER,
        mass_upper: float = DEFAULT_MASS_UPPER,
    ) -> None:
        super().__init__(mass_lower, mass_upper)
        if len(exponents) != len(breaks) + 1:
            raise ModelDomainError(
                f"Need {len(breaks) + 1} exponents for {len(breaks)} breaks, got {len(exponents)}"
            )
        if any(b2 <= b1 for b1, b2 in zip(breaks, breaks[1:])):
            raise ModelDomainError("IMF break masses must be strictly increasing")
        self.breaks = tuple(float(b) for b in breaks)
        self.exponents = tuple(float(e) for e in exponents)

        # Continuity coefficients relative to the first segment.
        coeffs = [1.0]
        for i, b in enumerate(self.breaks):
            coeffs.append(coeffs[-1] * b ** (self.exponents[i] - self.exponents[i + 1]))

        edges = [self.mass_lower]
        edges += [b for b in self.breaks if self.mass_lower < b < self.mass_upper]
        edges.append(self.mass_upper)
        self._edges = np.array(edges)
        seg_index = [self._segment_of(0.5 * (lo + hi)) for lo, hi in zip(edges, edges[1:])]
        self._seg_exponents = np.array([self.exponents[i] for i in seg_index])
        self._seg_coeffs = np.array([coeffs[i] for i in seg_index])
        areas = np.array(
            [
                c * float(_segment_integral(e, lo, hi))
                for c, e, lo, hi in zip(self._seg_coeffs, self._seg_exponents, edges, edges[1:])
            ]
        )
        total = areas.sum()
        self._seg_coeffs = self._seg_coeffs / total
        self._cum_edges = np.concatenate([[0.0], np.cumsum(areas / total)])

    def _segment_of(self, mass: float) -> int:
        return int(np.searchsorted(np.array(self.breaks), mass, side="right"))

    def _locate(self, mass: NDArray[np.float64]) -> NDArray[np.intp]:
        idx = np.searchsorted(self._edges, mass, side="right") - 1
        return np.clip(idx, 0, self._seg_exponents.size - 1)

    def _density(self, mass: NDArray[np.float64]) -> NDArray[np.float64]:
        idx = self._locate(mass)
        return self._seg_coeffs[idx] * np.power(mass, self._seg_exponents[idx])

    def _cumulative(self, mass: NDArray[np.float64]) -> NDArray[np.float64]:
        idx = np.atleast_1d(self._locate(mass))
        m = np.atleast_1d(mass)
        out = np.empty(m.shape, dtype=np.float64)
        for i in np.unique(idx):
            sel = idx == i
            out[sel] = self._cum_edges[i] + self._seg_coeffs[i] * _segment_integral(
                self._seg_exponents[i], self._edges[i], m[sel]
            )
        return out.reshape(np.shape(mass))

    def _inverse_cumulative(self, u: NDArray[np.float64]) -> NDArray[np.float64]:
        uu = np.atleast_1d(u)
        idx = np.clip(
            np.searchsorted(self._cum_edges, uu, side="right") - 1, 0, self._seg_exponents.size - 1
        )
        out = np.empty(uu.shape, dtype=np.float64)
        for i in np.unique(idx):
            sel = idx == i
            area = (uu[sel] - self._cum_edges[i]) / self._seg_coeffs[i]
            out[sel] = _segment_inverse(self._seg_exponents[i], self._edges[i], area)
        return out.reshape(np.shape(u))

    def describe(self) -> str:
        return (
            f"broken power law, breaks {list(self.breaks)}, exponents {list(self.exponents)}, "
            f"[{self.mass_lower}, {self.mass_upper}] M_sun"
        )


__all__ = ["BrokenPowerLawImf", "PowerLawImf"]
