"""Base class for initial mass functions."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import numpy as np

from wdlf.errors import ModelDomainError
from wdlf.interpolation import scalar_or_array

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

DEFAULT_MASS_LOWER = 0.6
DEFAULT_MASS_UPPER = 7.0


class InitialMassFunction(ABC):
    """Normalised probability density over progenitor mass on [M_lower, M_upper].

    Subclasses implement the normalised density, its cumulative integral and
    the inverse of that integral; this class adds domain checking and sampling.
    Instances are read-only after construction and safe to share across threads.
    """

    name: str = "imf"

    def __init__(self, mass_lower: float, mass_upper: float) -> None:
        if not (math.isfinite(mass_lower) and math.isfinite(mass_upper)):
            raise ModelDomainError("IMF mass limits must be finite")
        if not 0.0 < mass_lower < mass_upper:
            raise ModelDomainError(
                f"IMF mass limits must satisfy 0 < M_lower < M_upper, got [{mass_lower}, {mass_upper}]"
            )
        self.mass_lower = float(mass_lower)
        self.mass_upper = float(mass_upper)

    def _check_domain(self, mass: NDArray[np.float64]) -> None:
        if np.any((mass < self.mass_lower) | (mass > self.mass_upper)) or np.any(np.isnan(mass)):
            bad = mass[(mass < self.mass_lower) | (mass > self.mass_upper) | np.isnan(mass)]
            raise ModelDomainError(
                f"{self.name} IMF is defined on [{self.mass_lower}, {self.mass_upper}] M_sun, "
                f"got {bad.flat[0]}"
            )

    @abstractmethod
    def _density(self, mass: NDArray[np.float64]) -> NDArray[np.float64]: ...

    @abstractmethod
    def _cumulative(self, mass: NDArray[np.float64]) -> NDArray[np.float64]: ...

    @abstractmethod
    def _inverse_cumulative(self, u: NDArray[np.float64]) -> NDArray[np.float64]: ...

    def density(self, mass: ArrayLike) -> Any:
        """Probability density at ``mass`` [per M_sun].

        Raises:
            ModelDomainError: If any mass lies outside [M_lower, M_upper].
        """
        m = np.asarray(mass, dtype=np.float64)
        self._check_domain(m)
        return scalar_or_array(self._density(m), mass)

    def cumulative_integral(self, mass: ArrayLike) -> Any:
        """Integral of the density over [M_lower, mass].

        Raises:
            ModelDomainError: If any mass lies outside [M_lower, M_upper].
        """
        m = np.asarray(mass, dtype=np.float64)
        self._check_domain(m)
        return scalar_or_array(self._cumulative(m), mass)

    def integrate(self, mass_1: float, mass_2: float) -> float:
        """Probability mass between two masses, clipped to the IMF range."""
        lo = min(max(min(mass_1, mass_2), self.mass_lower), self.mass_upper)
        hi = min(max(max(mass_1, mass_2), self.mass_lower), self.mass_upper)
        return float(self._cumulative(np.asarray(hi)) - self._cumulative(np.asarray(lo)))

    def draw_mass(self, rng: np.random.Generator, size: int | None = None) -> Any:
        """Sample progenitor mass(es) by inverse-CDF sampling.

        Args:
            rng: Random generator owning the stream; no other state is used.
            size: Number of draws, or None for a single float.
        """
        u = rng.random(size)
        masses = np.clip(self._inverse_cumulative(np.asarray(u)), self.mass_lower, self.mass_upper)
        return scalar_or_array(masses, u)

    def describe(self) -> str:
        return f"{self.name} [{self.mass_lower}, {self.mass_upper}] M_sun"


__all__ = [
    "DEFAULT_MASS_LOWER",
    "DEFAULT_MASS_UPPER",
    "InitialMassFunction",
]
