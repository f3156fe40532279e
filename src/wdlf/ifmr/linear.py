"""Linear and piecewise-linear initial-final mass relations."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from wdlf.errors import ModelDomainError
from wdlf.ifmr.base import InitialFinalMassRelation


class LinearIfmr(InitialFinalMassRelation):
    """m_f = a * m_i + b."""

    def __init__(
        self,
        a: float,
        b: float,
        name: str = "linear",
        calibrated_range: tuple[float, float] = (0.0, math.inf),
    ) -> None:
        if not a > 0.0:
            raise ModelDomainError(f"Linear IFMR slope must be positive, got {a}")
        self.a = float(a)
        self.b = float(b)
        self.name = name
        self.calibrated_range = calibrated_range

    def _final(self, initial_mass: NDArray[np.float64]) -> NDArray[np.float64]:
        return self.a * initial_mass + self.b

    def _initial(self, final_mass: NDArray[np.float64]) -> NDArray[np.float64]:
        return (final_mass - self.b) / self.a

    def breakdown_initial_mass(self) -> float:
        return self.b / (1.0 - self.a)

    def describe(self) -> str:
        return f"{self.name} (m_f = {self.a} m_i + {self.b})"


@dataclass(frozen=True, slots=True)
class IfmrSegment:
    """m_f = a * m_i + b for initial masses up to ``upper_initial_mass``."""

    upper_initial_mass: float
    a: float
    b: float

    @property
    def fixed_point(self) -> float:
        return self.b / (1.0 - self.a)


class PiecewiseLinearIfmr(InitialFinalMassRelation):
    """Contiguous linear segments selected by initial- or final-mass threshold.

    Args:
        segments: Segments ordered by ``upper_initial_mass``. The first segment
            also covers masses below ``lower_initial_mass`` and the last one
            masses above its upper limit (nearest-segment extrapolation).
        lower_initial_mass: Lower end of the calibrated range.
        final_mass_cap: Optional maximum remnant mass. The forward relation is
            clamped to it, and inverse queries above it are clamped first.
        name: Model tag.
    """

    def __init__(
        self,
        segments: Sequence[IfmrSegment],
        lower_initial_mass: float = 0.0,
        final_mass_cap: float | None = None,
        name: str = "piecewise",
    ) -> None:
        if not segments:
            raise ModelDomainError("Piecewise IFMR needs at least one segment")
        uppers = [s.upper_initial_mass for s in segments]
        if any(u2 <= u1 for u1, u2 in zip(uppers, uppers[1:])):
            raise ModelDomainError("IFMR segment limits must be strictly increasing")
        if any(s.a <= 0.0 for s in segments):
            raise ModelDomainError("IFMR segment slopes must be positive")
        self.segments = tuple(segments)
        self.final_mass_cap = final_mass_cap
        self.name = name
        self.calibrated_range = (float(lower_initial_mass), float(uppers[-1]))
        self._a = np.array([s.a for s in segments])
        self._b = np.array([s.b for s in segments])
        self._initial_thresholds = np.array(uppers[:-1])
        self._final_thresholds = np.array(
            [s.a * s.upper_initial_mass + s.b for s in segments[:-1]]
        )

    def _final(self, initial_mass: NDArray[np.float64]) -> NDArray[np.float64]:
        idx = np.searchsorted(self._initial_thresholds, initial_mass, side="left")
        mf = self._a[idx] * initial_mass + self._b[idx]
        if self.final_mass_cap is not None:
            mf = np.minimum(mf, self.final_mass_cap)
        return mf

    def _initial(self, final_mass: NDArray[np.float64]) -> NDArray[np.float64]:
        mf = final_mass
        if self.final_mass_cap is not None:
            mf = np.minimum(mf, self.final_mass_cap)
        idx = np.searchsorted(self._final_thresholds, mf, side="left")
        return (mf - self._b[idx]) / self._a[idx]

    def breakdown_initial_mass(self) -> float:
        lower = -math.inf
        for i, segment in enumerate(self.segments):
            upper = math.inf if i == len(self.segments) - 1 else segment.upper_initial_mass
            if segment.a != 1.0 and lower < segment.fixed_point <= upper:
                return segment.fixed_point
            lower = segment.upper_initial_mass
        return super().breakdown_initial_mass()


__all__ = ["IfmrSegment", "LinearIfmr", "PiecewiseLinearIfmr"]
