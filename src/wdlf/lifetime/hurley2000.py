"""Analytic main-sequence lifetimes from Hurley, Pols & Tout (2000).

The lifetime is the larger of the hook time and the fraction ``x`` of the
time to the base of the giant branch, with coefficients given as cubic
polynomials in zeta = log10(Z / 0.02). Helium content is not a parameter of
the fit and is ignored.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np

from wdlf.interpolation import scalar_or_array
from wdlf.lifetime.base import PreWdLifetime

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

MYR = 1.0e6
MASS_MIN = 0.1
MASS_MAX = 100.0
Z_MIN = 1.0e-4
Z_MAX = 0.03

# Bisection bracket and tolerance for the inverse relation.
INVERSE_MASS_LOWER = 0.7
INVERSE_MASS_UPPER = 50.0
INVERSE_TOLERANCE_MYR = 1.0e-6
INVERSE_MAX_ITERATIONS = 100


def _poly(zeta: NDArray[np.float64], c0: float, c1: float, c2: float, c3: float) -> NDArray[np.float64]:
    return c0 + zeta * (c1 + zeta * (c2 + zeta * c3))


def _coefficients(zeta: NDArray[np.float64]) -> list[NDArray[np.float64]]:
    return [
        _poly(zeta, 1.593890e3, 2.053038e3, 1.231226e3, 2.327785e2),
        _poly(zeta, 2.706708e3, 1.483131e3, 5.772723e2, 7.411230e1),
        _poly(zeta, 1.466143e2, -1.048442e2, -6.795374e1, -1.391127e1),
        _poly(zeta, 4.141960e-2, 4.564888e-2, 2.958542e-2, 5.571483e-3),
        np.full(zeta.shape, 3.426349e-1),
        _poly(zeta, 1.949814e1, 1.758178, -6.008212, -4.470533),
        np.full(zeta.shape, 4.903830),
        _poly(zeta, 5.212154e-2, 3.166411e-2, -2.750074e-3, -2.271549e-3),
        _poly(zeta, 1.312179, -3.294936e-1, 9.231860e-2, 2.610989e-2),
        np.full(zeta.shape, 8.073972e-1),
    ]


def main_sequence_lifetime_myr(z: ArrayLike, mass: ArrayLike) -> NDArray[np.float64]:
    """Main-sequence lifetime [Myr] for metallicity z and mass [M_sun]."""
    zz, m = np.broadcast_arrays(np.asarray(z, dtype=np.float64), np.asarray(mass, dtype=np.float64))
    zeta = np.log10(zz / 0.02)
    a = _coefficients(zeta)
    t_bgb = (a[0] + a[1] * m**4 + a[2] * m**5.5 + m**7) / (a[3] * m**2 + a[4] * m**7)
    x = np.maximum(0.95, np.minimum(0.95 - 0.03 * (zeta + 0.30103), 0.99))
    mu = np.maximum(0.5, 1.0 - 0.01 * np.maximum(a[5] / m ** a[6], a[7] + a[8] / m ** a[9]))
    return np.maximum(mu * t_bgb, x * t_bgb)


class Hurley2000Lifetime(PreWdLifetime):
    """Analytic lifetimes, valid for 0.1-100 M_sun and 1e-4 <= Z <= 0.03."""

    name = "hurley2000"

    def lifetime(self, z: ArrayLike, y: ArrayLike, mass: ArrayLike) -> Any:
        del y
        out = main_sequence_lifetime_myr(z, mass) * MYR
        return scalar_or_array(out, out)

    def mass_from_lifetime(self, z: ArrayLike, y: ArrayLike, lifetime: ArrayLike) -> Any:
        """Vectorised bisection over [0.7, 50] M_sun.

        Lifetimes longer than that of a 0.7 M_sun star (or shorter than that
        of a 50 M_sun star) converge onto the bracket edge.
        """
        del y
        zz, target = np.broadcast_arrays(
            np.asarray(z, dtype=np.float64), np.asarray(lifetime, dtype=np.float64) / MYR
        )
        lo = np.full(target.shape, INVERSE_MASS_LOWER)
        hi = np.full(target.shape, INVERSE_MASS_UPPER)
        mid = 0.5 * (lo + hi)
        for _ in range(INVERSE_MAX_ITERATIONS):
            mid = 0.5 * (lo + hi)
            t_mid = main_sequence_lifetime_myr(zz, mid)
            # Lifetime falls with mass: too long means the mass is too low.
            too_long = t_mid > target
            lo = np.where(too_long, mid, lo)
            hi = np.where(too_long, hi, mid)
            if np.all(np.abs(t_mid - target) < INVERSE_TOLERANCE_MYR):
                break
        return scalar_or_array(mid, mid)

    def lifetime_derivative(self, z: ArrayLike, y: ArrayLike, mass: ArrayLike, dm: float = 0.001) -> Any:
        """Central finite difference d(lifetime)/d(mass) [yr per M_sun]."""
        m = np.asarray(mass, dtype=np.float64)
        upper = np.asarray(self.lifetime(z, y, m + dm))
        lower = np.asarray(self.lifetime(z, y, m - dm))
        out = (upper - lower) / (2.0 * dm)
        return scalar_or_array(out, out)

    def is_extrapolated(self, z: ArrayLike, y: ArrayLike, mass: ArrayLike) -> Any:
        del y
        zz, m = np.broadcast_arrays(np.asarray(z, dtype=np.float64), np.asarray(mass, dtype=np.float64))
        flags = (m < MASS_MIN) | (m > MASS_MAX) | (zz < Z_MIN) | (zz > Z_MAX)
        return bool(flags) if flags.ndim == 0 else flags


__all__ = [
    "Hurley2000Lifetime",
    "main_sequence_lifetime_myr",
]
