"""White dwarf cooling-model grids and sets."""

from __future__ import annotations

from wdlf.cooling.grid import AtmosphereType, WdCoolingModelGrid
from wdlf.cooling.model_set import WdCoolingModelSet
from wdlf.cooling.registry import (
    COOLING_REGISTRY,
    available_cooling_models,
    get_cooling_model_set,
)
from wdlf.cooling.synthetic import (
    BOLOMETRIC_FILTER,
    mestel_cooling_grid,
    mestel_cooling_set,
    mestel_magnitude,
)

__all__ = [
    "AtmosphereType",
    "BOLOMETRIC_FILTER",
    "COOLING_REGISTRY",
    "WdCoolingModelGrid",
    "WdCoolingModelSet",
    "available_cooling_models",
    "get_cooling_model_set",
    "mestel_cooling_grid",
    "mestel_cooling_set",
    "mestel_magnitude",
]
