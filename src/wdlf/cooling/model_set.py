"""Cooling-model grids keyed by (filter, atmosphere type)."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from wdlf.cooling.grid import AtmosphereType, WdCoolingModelGrid
from wdlf.errors import EmptyModelGridError, UnavailableCoolingModelError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike


class WdCoolingModelSet:
    """A family of cooling grids from one set of evolutionary models.

    Example:
        >>> model_set = WdCoolingModelSet("demo", [grid_h_bol, grid_he_bol])
        >>> model_set.usable_filters()
        ['M_bol']
    """

    def __init__(self, name: str, grids: Iterable[WdCoolingModelGrid]) -> None:
        self.name = name
        self._grids: dict[tuple[str, AtmosphereType], WdCoolingModelGrid] = {}
        for grid in grids:
            key = (grid.filter_name, grid.atmosphere)
            if key in self._grids:
                raise ValueError(
                    f"Duplicate cooling grid for {grid.filter_name}/{grid.atmosphere.value}"
                )
            self._grids[key] = grid
        if not self._grids:
            raise EmptyModelGridError(f"Cooling model set '{name}' has no grids")

    @property
    def atmospheres(self) -> list[AtmosphereType]:
        return sorted({atm for _, atm in self._grids}, key=lambda a: a.value)

    def filters(self, atmosphere: AtmosphereType) -> list[str]:
        return sorted(f for f, atm in self._grids if atm == atmosphere)

    def usable_filters(self) -> list[str]:
        """Filters available for every loaded atmosphere type."""
        per_atmosphere = [set(self.filters(atm)) for atm in self.atmospheres]
        return sorted(set.intersection(*per_atmosphere))

    def grid(self, filter_name: str, atmosphere: AtmosphereType | str) -> WdCoolingModelGrid:
        """Grid for a (filter, atmosphere) pair.

        Raises:
            UnavailableCoolingModelError: If the pair was not loaded.
        """
        atm = AtmosphereType(atmosphere)
        try:
            return self._grids[(filter_name, atm)]
        except KeyError as exc:
            available = [f"{f}/{a.value}" for f, a in sorted(self._grids, key=lambda k: (k[0], k[1].value))]
            raise UnavailableCoolingModelError(filter_name, atm.value, available) from exc

    def magnitude(
        self,
        cooling_time: ArrayLike,
        mass: ArrayLike,
        atmosphere: AtmosphereType | str,
        filter_name: str,
    ) -> Any:
        return self.grid(filter_name, atmosphere).magnitude(cooling_time, mass)

    def cooling_time(
        self,
        magnitude: ArrayLike,
        mass: ArrayLike,
        atmosphere: AtmosphereType | str,
        filter_name: str,
    ) -> Any:
        return self.grid(filter_name, atmosphere).cooling_time(magnitude, mass)

    def is_extrapolated(
        self,
        cooling_time: ArrayLike,
        mass: ArrayLike,
        atmosphere: AtmosphereType | str,
        filter_name: str,
    ) -> Any:
        return self.grid(filter_name, atmosphere).is_extrapolated(cooling_time, mass)

    def describe(self) -> str:
        return f"{self.name} ({', '.join(g.describe() for g in self._grids.values())})"


__all__ = ["WdCoolingModelSet"]
