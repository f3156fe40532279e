"""Star formation histories over lookback time."""

from __future__ import annotations

from wdlf.sfr.base import StarFormationHistory
from wdlf.sfr.fractal import fractal_sfr
from wdlf.sfr.parametric import ConstantSfr, ExponentialDecaySfr, SingleBurstSfr
from wdlf.sfr.tabulated import TabulatedSfr, tabulated_from_rows

__all__ = [
    "ConstantSfr",
    "ExponentialDecaySfr",
    "SingleBurstSfr",
    "StarFormationHistory",
    "TabulatedSfr",
    "fractal_sfr",
    "tabulated_from_rows",
]
