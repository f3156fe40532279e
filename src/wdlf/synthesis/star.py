"""Synthetic star records produced by the sampler."""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from wdlf.cooling.grid import AtmosphereType

if TYPE_CHECKING:
    from numpy.typing import NDArray


class StarFate(str, Enum):
    """Outcome of one Monte Carlo trial."""

    WHITE_DWARF = "white_dwarf"
    STILL_ON_MAIN_SEQUENCE = "still_on_main_sequence"
    BELOW_IFMR_BREAKDOWN = "below_ifmr_breakdown"
    NOT_SELECTED = "not_selected"


FATES: tuple[StarFate, ...] = tuple(StarFate)
FATE_CODE: dict[StarFate, int] = {fate: i for i, fate in enumerate(FATES)}


@dataclass(slots=True)
class Star:
    """One fully-resolved synthetic star.

    ``formation_time`` is a lookback time, so it is also the star's total age
    today. White dwarf quantities are None unless ``fate`` is WHITE_DWARF.
    """

    formation_time: float
    progenitor_mass: float
    metallicity: float
    helium: float
    pre_wd_lifetime: float
    fate: StarFate
    wd_mass: float | None = None
    cooling_time: float | None = None
    atmosphere: AtmosphereType | None = None
    magnitude: float | None = None
    extrapolated: bool = False
    number: float = 1.0
    sigma2_number: float = 1.0

    @property
    def total_age(self) -> float:
        return self.formation_time

    @property
    def is_white_dwarf(self) -> bool:
        return self.fate is StarFate.WHITE_DWARF

    def reweight(self, weight: float, sigma_weight: float = 0.0) -> None:
        """Scale the number this star represents, propagating the uncertainty."""
        self.sigma2_number = self.number**2 * sigma_weight**2 + weight**2 * self.sigma2_number
        self.number = weight * self.number


@dataclass(frozen=True, eq=False)
class StarBatch:
    """Column-oriented block of trials drawn together.

    Arrays share one length; white dwarf columns hold NaN for discarded trials.
    ``fate`` holds indices into ``FATES``.
    """

    formation_time: NDArray[np.float64]
    progenitor_mass: NDArray[np.float64]
    metallicity: NDArray[np.float64]
    helium: NDArray[np.float64]
    pre_wd_lifetime: NDArray[np.float64]
    fate: NDArray[np.int8]
    wd_mass: NDArray[np.float64]
    cooling_time: NDArray[np.float64]
    is_hydrogen: NDArray[np.bool_]
    magnitude: NDArray[np.float64]
    extrapolated: NDArray[np.bool_]
    number: NDArray[np.float64]
    sigma2_number: NDArray[np.float64]

    def __len__(self) -> int:
        return int(self.formation_time.size)

    @property
    def white_dwarfs(self) -> NDArray[np.bool_]:
        return self.fate == FATE_CODE[StarFate.WHITE_DWARF]

    def fate_counts(self) -> Counter[StarFate]:
        codes = np.bincount(self.fate, minlength=len(FATES))
        return Counter({fate: int(codes[i]) for i, fate in enumerate(FATES)})

    def star(self, index: int) -> Star:
        fate = FATES[int(self.fate[index])]
        is_wd = fate is StarFate.WHITE_DWARF

        def _opt(values: NDArray[np.float64]) -> float | None:
            value = float(values[index])
            return None if math.isnan(value) else value

        return Star(
            formation_time=float(self.formation_time[index]),
            progenitor_mass=float(self.progenitor_mass[index]),
            metallicity=float(self.metallicity[index]),
            helium=float(self.helium[index]),
            pre_wd_lifetime=float(self.pre_wd_lifetime[index]),
            fate=fate,
            wd_mass=_opt(self.wd_mass),
            cooling_time=_opt(self.cooling_time),
            atmosphere=(
                (AtmosphereType.H if self.is_hydrogen[index] else AtmosphereType.HE)
                if is_wd
                else None
            ),
            magnitude=_opt(self.magnitude),
            extrapolated=bool(self.extrapolated[index]),
            number=float(self.number[index]),
            sigma2_number=float(self.sigma2_number[index]),
        )

    def stars(self) -> list[Star]:
        return [self.star(i) for i in range(len(self))]


__all__ = ["FATES", "FATE_CODE", "Star", "StarBatch", "StarFate"]
