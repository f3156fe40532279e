"""Base class for pre-white-dwarf lifetime models."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from numpy.typing import ArrayLike


class PreWdLifetime(ABC):
    """Total time from formation to white dwarf birth as a function of (Z, Y, mass).

    All methods broadcast their arguments; lifetimes are in years and masses
    in solar masses. Extrapolation is never an error: callers check
    ``is_extrapolated`` when they care.
    """

    name: str = "lifetime"

    @abstractmethod
    def lifetime(self, z: ArrayLike, y: ArrayLike, mass: ArrayLike) -> Any:
        """Pre-WD lifetime [yr]."""

    @abstractmethod
    def mass_from_lifetime(self, z: ArrayLike, y: ArrayLike, lifetime: ArrayLike) -> Any:
        """Progenitor mass [M_sun] whose pre-WD lifetime equals ``lifetime``."""

    @abstractmethod
    def is_extrapolated(self, z: ArrayLike, y: ArrayLike, mass: ArrayLike) -> Any:
        """True where the query lies outside the model's native coverage."""

    def describe(self) -> str:
        return self.name


def turnoff_mass(model: PreWdLifetime, z: float, y: float, age: float) -> float:
    """Progenitor mass whose pre-WD lifetime equals ``age`` [yr]."""
    if not math.isfinite(age) or age <= 0.0:
        raise ValueError(f"age must be positive and finite, got {age}")
    return float(model.mass_from_lifetime(z, y, age))


__all__ = ["PreWdLifetime", "turnoff_mass"]
