"""Pre-white-dwarf lifetime models."""

from __future__ import annotations

from wdlf.lifetime.base import PreWdLifetime, turnoff_mass
from wdlf.lifetime.grids import PADOVA_HELIUM, PADOVA_METALLICITIES, hurley2000_grid
from wdlf.lifetime.hurley2000 import Hurley2000Lifetime, main_sequence_lifetime_myr
from wdlf.lifetime.registry import (
    LIFETIME_REGISTRY,
    available_lifetime_models,
    get_lifetime_model,
)
from wdlf.lifetime.tabulated import TabulatedPreWdLifetime

__all__ = [
    "Hurley2000Lifetime",
    "LIFETIME_REGISTRY",
    "PADOVA_HELIUM",
    "PADOVA_METALLICITIES",
    "PreWdLifetime",
    "TabulatedPreWdLifetime",
    "available_lifetime_models",
    "get_lifetime_model",
    "hurley2000_grid",
    "main_sequence_lifetime_myr",
    "turnoff_mass",
]
