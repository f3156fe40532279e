"""Tabulated lifetime grids sampled from the analytic fits.

The published stellar-evolution grids (Padova, PARSEC, LPCODE) are large
track collections that are loaded from files with
``wdlf.io.read_lifetime_table``. The grid built here lays the Hurley et al.
(2000) lifetimes on the same metallicity ladder as the Padova (Bertelli et al.
2008) tracks, restricted to the fits' validity range, so the tabulated code
path can run without external data. The fits ignore helium, so every Y entry
of a metallicity carries the same track.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from wdlf.interpolation import MonotonicTrack
from wdlf.lifetime.hurley2000 import MYR, main_sequence_lifetime_myr
from wdlf.lifetime.tabulated import TabulatedPreWdLifetime

PADOVA_METALLICITIES = (0.0001, 0.0004, 0.001, 0.002, 0.004, 0.008, 0.017, 0.03)
PADOVA_HELIUM = (0.23, 0.26, 0.30, 0.34, 0.40)
GRID_MASS_MIN = 0.5
GRID_MASS_MAX = 10.0
GRID_N_MASSES = 60


def hurley2000_grid(
    metallicities: Sequence[float] = PADOVA_METALLICITIES,
    helium: Sequence[float] = PADOVA_HELIUM,
    masses: Sequence[float] | None = None,
) -> TabulatedPreWdLifetime:
    """Tabulate the Hurley et al. (2000) lifetimes on a (Z, Y, mass) grid.

    Args:
        metallicities: Z values of the grid.
        helium: Y values attached to every metallicity.
        masses: Progenitor masses [M_sun]; defaults to a logarithmic grid
            over [0.5, 10].
    """
    m = (
        np.geomspace(GRID_MASS_MIN, GRID_MASS_MAX, GRID_N_MASSES)
        if masses is None
        else np.asarray(masses, dtype=np.float64)
    )
    tracks = {}
    for z in metallicities:
        track = MonotonicTrack(m, main_sequence_lifetime_myr(np.full(m.shape, z), m) * MYR)
        tracks[float(z)] = {float(y): track for y in helium}
    return TabulatedPreWdLifetime(tracks, name="hurley2000_grid")


__all__ = [
    "GRID_MASS_MAX",
    "GRID_MASS_MIN",
    "GRID_N_MASSES",
    "PADOVA_HELIUM",
    "PADOVA_METALLICITIES",
    "hurley2000_grid",
]
