"""Analytic cooling grids following Mestel's cooling law.

Mestel's law gives L / L_sun = m ((t + t0) / tau)^(-7/5) for a white dwarf of
mass m [M_sun] at cooling time t [yr]. The offset t0 keeps the magnitude
finite at t = 0. These grids stand in for tabulated evolutionary models in
tests and quick-look runs.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from wdlf.cooling.grid import AtmosphereType, WdCoolingModelGrid
from wdlf.cooling.model_set import WdCoolingModelSet
from wdlf.interpolation import MonotonicTrack

M_BOL_SUN = 4.74
BOLOMETRIC_FILTER = "M_bol"
MESTEL_TIMESCALE_YR = {AtmosphereType.H: 8.8e6, AtmosphereType.HE: 7.4e6}
MESTEL_TIME_OFFSET_YR = 1.0e6
DEFAULT_MASSES = (0.5, 0.6, 0.7, 0.8, 0.9, 1.0, 1.2)


def default_cooling_times(t_max: float = 1.5e10, n_points: int = 80) -> np.ndarray:
    return np.concatenate([[0.0], np.logspace(4.0, np.log10(t_max), n_points - 1)])


def mestel_magnitude(
    cooling_time: np.ndarray | float,
    mass: np.ndarray | float,
    timescale: float = MESTEL_TIMESCALE_YR[AtmosphereType.H],
    time_offset: float = MESTEL_TIME_OFFSET_YR,
) -> np.ndarray:
    """Bolometric absolute magnitude from Mestel's law."""
    t = np.asarray(cooling_time, dtype=np.float64)
    m = np.asarray(mass, dtype=np.float64)
    log_l = np.log10(m) - 1.4 * np.log10((t + time_offset) / timescale)
    return M_BOL_SUN - 2.5 * log_l


def mestel_cooling_grid(
    atmosphere: AtmosphereType = AtmosphereType.H,
    masses: Sequence[float] = DEFAULT_MASSES,
    cooling_times: Sequence[float] | np.ndarray | None = None,
) -> WdCoolingModelGrid:
    """One bolometric grid with a track per mass."""
    times = default_cooling_times() if cooling_times is None else np.asarray(cooling_times, dtype=np.float64)
    timescale = MESTEL_TIMESCALE_YR[AtmosphereType(atmosphere)]
    tracks = {
        float(m): MonotonicTrack(times, mestel_magnitude(times, m, timescale=timescale))
        for m in masses
    }
    return WdCoolingModelGrid(tracks, BOLOMETRIC_FILTER, AtmosphereType(atmosphere))


def mestel_cooling_set(
    masses: Sequence[float] = DEFAULT_MASSES,
    cooling_times: Sequence[float] | np.ndarray | None = None,
) -> WdCoolingModelSet:
    """H and He bolometric grids."""
    return WdCoolingModelSet(
        "mestel",
        [
            mestel_cooling_grid(AtmosphereType.H, masses, cooling_times),
            mestel_cooling_grid(AtmosphereType.HE, masses, cooling_times),
        ],
    )


__all__ = [
    "BOLOMETRIC_FILTER",
    "DEFAULT_MASSES",
    "MESTEL_TIMESCALE_YR",
    "M_BOL_SUN",
    "default_cooling_times",
    "mestel_cooling_grid",
    "mestel_cooling_set",
    "mestel_magnitude",
]
