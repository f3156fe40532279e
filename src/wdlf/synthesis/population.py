"""Immutable bundle of the models that define a synthetic population."""

from __future__ import annotations

import dataclasses
import json
import math
from dataclasses import dataclass

from wdlf.cooling.grid import AtmosphereType
from wdlf.cooling.model_set import WdCoolingModelSet
from wdlf.cooling.synthetic import BOLOMETRIC_FILTER
from wdlf.errors import ConfigurationError
from wdlf.ifmr.base import InitialFinalMassRelation
from wdlf.imf.base import InitialMassFunction
from wdlf.lifetime.base import PreWdLifetime
from wdlf.sfr.base import StarFormationHistory
from wdlf.sfr.tabulated import TabulatedSfr

DEFAULT_METALLICITY = 0.003
DEFAULT_METALLICITY_SIGMA = 0.001
DEFAULT_HELIUM = 0.26
DEFAULT_HELIUM_SIGMA = 0.001
DEFAULT_H_FRACTION = 1.0
DEFAULT_MAGNITUDE_SIGMA = 0.1


@dataclass(frozen=True, eq=False)
class StellarPopulation:
    """Model components and per-star distributions for one synthesis run.

    Attributes:
        imf: Initial mass function.
        sfr: Star formation history over lookback time.
        ifmr: Initial-final mass relation.
        lifetime: Pre-WD lifetime model.
        cooling: Cooling-model set.
        filter_name: Passband of the synthetic magnitudes.
        h_fraction: Probability that a white dwarf has an H atmosphere.
        metallicity: Mean Z; each star draws Z ~ N(mean, sigma) until positive.
        metallicity_sigma: Standard deviation of Z.
        helium: Mean Y; drawn like Z.
        helium_sigma: Standard deviation of Y.
        magnitude_sigma: Gaussian measurement error added to each magnitude.

    Raises:
        ConfigurationError: On out-of-range fractions or dispersions.
        UnavailableCoolingModelError: If the filter is not loaded for an
            atmosphere type the population can produce.
    """

    imf: InitialMassFunction
    sfr: StarFormationHistory
    ifmr: InitialFinalMassRelation
    lifetime: PreWdLifetime
    cooling: WdCoolingModelSet
    filter_name: str = BOLOMETRIC_FILTER
    h_fraction: float = DEFAULT_H_FRACTION
    metallicity: float = DEFAULT_METALLICITY
    metallicity_sigma: float = DEFAULT_METALLICITY_SIGMA
    helium: float = DEFAULT_HELIUM
    helium_sigma: float = DEFAULT_HELIUM_SIGMA
    magnitude_sigma: float = DEFAULT_MAGNITUDE_SIGMA

    def __post_init__(self) -> None:
        if not 0.0 <= self.h_fraction <= 1.0:
            raise ConfigurationError(f"h_fraction must lie in [0, 1], got {self.h_fraction}")
        for label, value in (
            ("metallicity_sigma", self.metallicity_sigma),
            ("helium_sigma", self.helium_sigma),
            ("magnitude_sigma", self.magnitude_sigma),
        ):
            if not (math.isfinite(value) and value >= 0.0):
                raise ConfigurationError(f"{label} must be finite and non-negative, got {value}")
        if not self.metallicity > 0.0 or not self.helium > 0.0:
            raise ConfigurationError(
                f"Mean metallicity and helium must be positive, got Z={self.metallicity}, Y={self.helium}"
            )
        for atmosphere in self.atmospheres:
            self.cooling.grid(self.filter_name, atmosphere)

    @property
    def atmospheres(self) -> tuple[AtmosphereType, ...]:
        """Atmosphere types this population can produce."""
        out = []
        if self.h_fraction > 0.0:
            out.append(AtmosphereType.H)
        if self.h_fraction < 1.0:
            out.append(AtmosphereType.HE)
        return tuple(out)

    def with_sfr(self, sfr: StarFormationHistory) -> StellarPopulation:
        return dataclasses.replace(self, sfr=sfr)

    def describe(self) -> dict[str, str]:
        """Flat description of every input, for persisted headers.

        A tabulated SFR is also written out in full under ``sfr_table`` as a
        JSON list of (centre, width, rate, error) rows.
        """
        out = {
            "imf": self.imf.describe(),
            "sfr": self.sfr.describe(),
            "ifmr": self.ifmr.describe(),
            "lifetime_model": self.lifetime.describe(),
            "cooling_models": self.cooling.name,
            "filter": self.filter_name,
            "h_fraction": f"{self.h_fraction:g}",
            "metallicity": f"{self.metallicity:g} +/- {self.metallicity_sigma:g}",
            "helium": f"{self.helium:g} +/- {self.helium_sigma:g}",
            "magnitude_sigma": f"{self.magnitude_sigma:g}",
        }
        if isinstance(self.sfr, TabulatedSfr):
            out["sfr_table"] = json.dumps(self.sfr.rows())
        return out


__all__ = [
    "DEFAULT_HELIUM",
    "DEFAULT_HELIUM_SIGMA",
    "DEFAULT_H_FRACTION",
    "DEFAULT_MAGNITUDE_SIGMA",
    "DEFAULT_METALLICITY",
    "DEFAULT_METALLICITY_SIGMA",
    "StellarPopulation",
]
