"""Closed-form star formation histories."""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

from wdlf.errors import ModelDomainError
from wdlf.sfr.base import StarFormationHistory


class ConstantSfr(StarFormationHistory):
    """Constant rate on [t_min, t_max]."""

    name = "constant"

    def __init__(self, rate: float, t_min: float = 0.0, t_max: float = 1.0e10) -> None:
        super().__init__(t_min, t_max)
        if not (math.isfinite(rate) and rate >= 0.0):
            raise ModelDomainError(f"Constant SFR rate must be finite and non-negative, got {rate}")
        self.rate_value = float(rate)

    def _rate(self, t: NDArray[np.float64]) -> NDArray[np.float64]:
        return np.full(t.shape, self.rate_value)

    def _inverse_cumulative(self, u: NDArray[np.float64]) -> NDArray[np.float64]:
        return self.t_min + u * (self.t_max - self.t_min)

    def integrate(self) -> tuple[float, float]:
        return (self.t_max - self.t_min) * self.rate_value, 0.0

    def max_rate(self) -> float:
        return self.rate_value

    def describe(self) -> str:
        return f"constant {self.rate_value:.4g} /yr over [{self.t_min:.4g}, {self.t_max:.4g}] yr"


class ExponentialDecaySfr(StarFormationHistory):
    """rate(t) = r0 * exp((t - t_max) / timescale), with timescale < 0.

    The rate equals ``initial_rate`` at the oldest lookback time t_max and
    grows exponentially towards the present.
    """

    name = "exponential_decay"

    def __init__(
        self,
        initial_rate: float,
        timescale: float,
        t_min: float = 0.0,
        t_max: float = 1.0e10,
    ) -> None:
        super().__init__(t_min, t_max)
        if not (math.isfinite(timescale) and timescale < 0.0):
            raise ModelDomainError(f"Exponential SFR timescale must be negative, got {timescale}")
        if not (math.isfinite(initial_rate) and initial_rate >= 0.0):
            raise ModelDomainError(
                f"Exponential SFR initial rate must be non-negative, got {initial_rate}"
            )
        self.initial_rate = float(initial_rate)
        self.timescale = float(timescale)

    def _rate(self, t: NDArray[np.float64]) -> NDArray[np.float64]:
        return self.initial_rate * np.exp((t - self.t_max) / self.timescale)

    def _inverse_cumulative(self, u: NDArray[np.float64]) -> NDArray[np.float64]:
        lam = self.timescale
        total, _ = self.integrate()
        floor = math.exp((self.t_min - self.t_max) / lam)
        return self.t_max + lam * np.log(u * total / (lam * self.initial_rate) + floor)

    def integrate(self) -> tuple[float, float]:
        lam = self.timescale
        total = lam * self.initial_rate * (1.0 - math.exp((self.t_min - self.t_max) / lam))
        return total, 0.0

    def max_rate(self) -> float:
        return float(self._rate(np.asarray(self.t_min)))

    def describe(self) -> str:
        return (
            f"exponential, r0={self.initial_rate:.4g} /yr, timescale={self.timescale:.4g} yr, "
            f"[{self.t_min:.4g}, {self.t_max:.4g}] yr"
        )


class SingleBurstSfr(ConstantSfr):
    """Constant rate for ``duration`` years ending at lookback time ``onset``."""

    name = "single_burst"

    def __init__(self, onset: float, duration: float, rate: float) -> None:
        if not duration > 0.0:
            raise ModelDomainError(f"Burst duration must be positive, got {duration}")
        if onset - duration < 0.0:
            raise ModelDomainError(
                f"Burst onset {onset} minus duration {duration} must be non-negative"
            )
        super().__init__(rate, t_min=onset - duration, t_max=onset)
        self.onset = float(onset)
        self.duration = float(duration)


__all__ = ["ConstantSfr", "ExponentialDecaySfr", "SingleBurstSfr"]
