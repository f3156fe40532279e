"""Tabulated initial-final mass relations."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from wdlf.ifmr.base import InitialFinalMassRelation
from wdlf.interpolation import MonotonicTrack

if TYPE_CHECKING:
    from numpy.typing import ArrayLike


class TabulatedIfmr(InitialFinalMassRelation):
    """Monotonic linear interpolation through (m_i, m_f) points.

    Outside the table the end segments are extended linearly.
    """

    def __init__(self, initial_masses: ArrayLike, final_masses: ArrayLike, name: str = "tabulated") -> None:
        self.track = MonotonicTrack(np.asarray(initial_masses), np.asarray(final_masses))
        if not self.track.increasing:
            raise ValueError("Tabulated IFMR final masses must increase with initial mass")
        self.name = name
        self.calibrated_range = self.track.domain

    def _final(self, initial_mass: NDArray[np.float64]) -> NDArray[np.float64]:
        return np.asarray(self.track.interpolate(initial_mass))

    def _initial(self, final_mass: NDArray[np.float64]) -> NDArray[np.float64]:
        return np.asarray(self.track.inverse(final_mass))


__all__ = ["TabulatedIfmr"]
