"""Chabrier (2003) single-star IMF: lognormal below 1 M_sun, power law above."""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray
from scipy.stats import norm

from wdlf.imf.base import DEFAULT_MASS_LOWER, DEFAULT_MASS_UPPER, InitialMassFunction

# Per-dex lognormal parameters.
LOGNORMAL_AMPLITUDE = 0.158
LOGNORMAL_MEAN = math.log10(0.079)
LOGNORMAL_SIGMA = 0.69
TRANSITION_MASS = 1.0
POWER_LAW_EXPONENT = -2.3


class Chabrier03Imf(InitialMassFunction):
    """Lognormal+power-law composite IMF.

    Constants derived at construction: the power-law coefficient that makes
    the density continuous at the transition mass, the lognormal cumulative
    probability at M_lower, and the total integral used for normalisation.
    """

    name = "chabrier03"

    def __init__(
        self,
        mass_lower: float = DEFAULT_MASS_LOWER,
        mass_upper: float = DEFAULT_MASS_UPPER,
    ) -> None:
        super().__init__(mass_lower, mass_upper)
        self._lognormal = norm(loc=LOGNORMAL_MEAN, scale=LOGNORMAL_SIGMA)
        # Integral over log10(m) of the per-dex lognormal is a * Phi.
        self._a = LOGNORMAL_AMPLITUDE * LOGNORMAL_SIGMA * math.sqrt(2.0 * math.pi)
        continuity = LOGNORMAL_AMPLITUDE * math.exp(
            -((math.log10(TRANSITION_MASS) - LOGNORMAL_MEAN) ** 2) / (2.0 * LOGNORMAL_SIGMA**2)
        )
        # dN/dm = continuity / (ln10 * m_t) * (m/m_t)**e above the transition.
        self._power_coeff = continuity / (math.log(10.0) * TRANSITION_MASS)
        self._cum_prob_low = float(self._lognormal.cdf(math.log10(self.mass_lower)))
        self._lognormal_total = self._raw_cumulative_scalar(min(TRANSITION_MASS, self.mass_upper))
        self._norm = 1.0 / self._raw_cumulative_scalar(self.mass_upper)

    def _raw_lognormal(self, mass: NDArray[np.float64]) -> NDArray[np.float64]:
        lo = max(self.mass_lower, 0.0)
        m = np.clip(mass, lo, TRANSITION_MASS)
        return self._a * (self._lognormal.cdf(np.log10(m)) - self._cum_prob_low)

    def _raw_power(self, mass: NDArray[np.float64]) -> NDArray[np.float64]:
        start = max(self.mass_lower, TRANSITION_MASS)
        m = np.maximum(mass, start)
        e1 = POWER_LAW_EXPONENT + 1.0
        return (
            self._power_coeff
            * TRANSITION_MASS ** (-POWER_LAW_EXPONENT)
            * (np.power(m, e1) - start**e1)
            / e1
        )

    def _raw_cumulative(self, mass: NDArray[np.float64]) -> NDArray[np.float64]:
        low = self._raw_lognormal(mass) if self.mass_lower < TRANSITION_MASS else 0.0
        return low + self._raw_power(mass)

    def _raw_cumulative_scalar(self, mass: float) -> float:
        return float(self._raw_cumulative(np.asarray(mass, dtype=np.float64)))

    def _density(self, mass: NDArray[np.float64]) -> NDArray[np.float64]:
        safe = np.maximum(mass, 1e-300)
        low = (
            LOGNORMAL_AMPLITUDE
            * np.exp(-((np.log10(safe) - LOGNORMAL_MEAN) ** 2) / (2.0 * LOGNORMAL_SIGMA**2))
            / (math.log(10.0) * safe)
        )
        high = self._power_coeff * np.power(safe / TRANSITION_MASS, POWER_LAW_EXPONENT)
        return self._norm * np.where(mass <= TRANSITION_MASS, low, high)

    def _cumulative(self, mass: NDArray[np.float64]) -> NDArray[np.float64]:
        return self._norm * self._raw_cumulative(mass)

    def _inverse_cumulative(self, u: NDArray[np.float64]) -> NDArray[np.float64]:
        target = np.asarray(u, dtype=np.float64) / self._norm
        in_lognormal = (target <= self._lognormal_total) & (self.mass_lower < TRANSITION_MASS)

        q = np.clip(self._cum_prob_low + target / self._a, 0.0, 1.0)
        low_mass = np.power(10.0, self._lognormal.ppf(q))

        start = max(self.mass_lower, TRANSITION_MASS)
        remainder = target - (self._lognormal_total if self.mass_lower < TRANSITION_MASS else 0.0)
        e1 = POWER_LAW_EXPONENT + 1.0
        scale = self._power_coeff * TRANSITION_MASS ** (-POWER_LAW_EXPONENT)
        base = np.maximum(remainder * e1 / scale + start**e1, 1e-300)
        high_mass = np.power(base, 1.0 / e1)
        return np.where(in_lognormal, low_mass, high_mass)


__all__ = ["Chabrier03Imf"]
