"""Base class for star formation histories.

Times are lookback times in years; rates are in stars per year (or any
consistent number-density unit per year).
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import numpy as np

from wdlf.errors import ModelDomainError
from wdlf.interpolation import scalar_or_array

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


class StarFormationHistory(ABC):
    """Star formation rate as a function of lookback time on [t_min, t_max]."""

    name: str = "sfr"

    def __init__(self, t_min: float, t_max: float) -> None:
        if not (math.isfinite(t_min) and math.isfinite(t_max)):
            raise ModelDomainError(f"SFR time limits must be finite, got [{t_min}, {t_max}]")
        if t_min < 0.0:
            raise ModelDomainError(f"SFR lookback times must be non-negative, got t_min={t_min}")
        if not t_min < t_max:
            raise ModelDomainError(f"SFR requires t_min < t_max, got [{t_min}, {t_max}]")
        self.t_min = float(t_min)
        self.t_max = float(t_max)

    @abstractmethod
    def _rate(self, t: NDArray[np.float64]) -> NDArray[np.float64]:
        """Rate for times inside [t_min, t_max]."""

    @abstractmethod
    def _inverse_cumulative(self, u: NDArray[np.float64]) -> NDArray[np.float64]:
        """Time at which the normalised cumulative formation reaches u."""

    @abstractmethod
    def integrate(self) -> tuple[float, float]:
        """Return (total stars formed, uncertainty) over [t_min, t_max]."""

    @abstractmethod
    def max_rate(self) -> float: ...

    def rate(self, t: ArrayLike) -> Any:
        """Star formation rate at lookback time(s) t; zero outside [t_min, t_max]."""
        ta = np.asarray(t, dtype=np.float64)
        inside = (ta >= self.t_min) & (ta <= self.t_max)
        values = np.where(inside, self._rate(np.clip(ta, self.t_min, self.t_max)), 0.0)
        return scalar_or_array(values, t)

    def draw_formation_time(self, rng: np.random.Generator, size: int | None = None) -> Any:
        """Sample lookback formation time(s) with probability proportional to the rate.

        Raises:
            ModelDomainError: If the history forms no stars at all.
        """
        total, _ = self.integrate()
        if not total > 0.0:
            raise ModelDomainError(f"Cannot draw formation times from {self.describe()}: integral is {total}")
        u = rng.random(size)
        times = np.clip(self._inverse_cumulative(np.asarray(u)), self.t_min, self.t_max)
        return scalar_or_array(times, u)

    def to_table(self, n_steps: int = 100) -> list[tuple[float, float, float]]:
        """Step representation as (time, rate, rate_error) rows at bin centres."""
        edges = np.linspace(self.t_min, self.t_max, n_steps + 1)
        centres = 0.5 * (edges[:-1] + edges[1:])
        rates = np.asarray(self.rate(centres))
        return [(float(t), float(r), 0.0) for t, r in zip(centres, rates)]

    def describe(self) -> str:
        return f"{self.name} over [{self.t_min:.4g}, {self.t_max:.4g}] yr"


__all__ = ["StarFormationHistory"]
