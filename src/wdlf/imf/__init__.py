"""Initial mass functions: density, cumulative integral and sampling."""

from __future__ import annotations

from wdlf.imf.base import DEFAULT_MASS_LOWER, DEFAULT_MASS_UPPER, InitialMassFunction
from wdlf.imf.chabrier import Chabrier03Imf
from wdlf.imf.power_law import BrokenPowerLawImf, PowerLawImf
from wdlf.imf.registry import IMF_REGISTRY, available_imfs, get_imf

__all__ = [
    "BrokenPowerLawImf",
    "Chabrier03Imf",
    "DEFAULT_MASS_LOWER",
    "DEFAULT_MASS_UPPER",
    "IMF_REGISTRY",
    "InitialMassFunction",
    "PowerLawImf",
    "available_imfs",
    "get_imf",
]
