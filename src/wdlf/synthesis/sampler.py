"""Single-star Monte Carlo draw through the full model chain.

Per trial: formation time from the SFR, progenitor mass from the IMF,
(Z, Y) from their distributions, pre-WD lifetime. Stars whose formation
time does not exceed their lifetime are still on the main sequence and are
discarded, as are progenitors below the IFMR breakdown mass. Survivors get a
white dwarf mass, cooling time, atmosphere type and (noisy) magnitude.
Cooling-model extrapolation is flagged but the star is kept.

Discards are the expected majority outcome and are recorded as fates, never
raised. Trials are drawn in column blocks, one random stream after another,
so a seed fixes the whole block.
"""

from __future__ import annotations

import logging

import numpy as np

from wdlf.cooling.grid import AtmosphereType
from wdlf.synthesis.population import StellarPopulation
from wdlf.synthesis.selection import SurveySelection
from wdlf.synthesis.star import FATE_CODE, Star, StarBatch, StarFate

logger = logging.getLogger(__name__)


class StarSampler:
    """Draws synthetic stars from a population with an injected generator.

    Args:
        population: Models and per-star distributions.
        rng: Random generator owned by this sampler.
        selection: Optional survey selection applied to white dwarfs.
    """

    def __init__(
        self,
        population: StellarPopulation,
        rng: np.random.Generator,
        selection: SurveySelection | None = None,
    ) -> None:
        self.population = population
        self.rng = rng
        self.selection = selection
        self.breakdown_mass = population.ifmr.breakdown_initial_mass()

    def _draw_positive(self, mean: float, sigma: float, size: int) -> np.ndarray:
        values = mean + self.rng.normal(0.0, 1.0, size) * sigma
        bad = values <= 0.0
        while np.any(bad):
            values[bad] = mean + self.rng.normal(0.0, 1.0, int(bad.sum())) * sigma
            bad = values <= 0.0
        return values

    def draw_batch(self, size: int) -> StarBatch:
        """Run ``size`` independent trials."""
        if size < 1:
            raise ValueError(f"size must be positive, got {size}")
        pop = self.population
        rng = self.rng

        t_form = np.asarray(pop.sfr.draw_formation_time(rng, size), dtype=np.float64)
        mass = np.asarray(pop.imf.draw_mass(rng, size), dtype=np.float64)
        z = self._draw_positive(pop.metallicity, pop.metallicity_sigma, size)
        y = self._draw_positive(pop.helium, pop.helium_sigma, size)
        atmosphere_u = rng.random(size)
        noise = rng.normal(0.0, 1.0, size) * pop.magnitude_sigma
        selection_u = rng.random(size) if self.selection is not None else None

        lifetime = np.asarray(pop.lifetime.lifetime(z, y, mass), dtype=np.float64)

        fate = np.full(size, FATE_CODE[StarFate.WHITE_DWARF], dtype=np.int8)
        died = t_form > lifetime
        fate[~died] = FATE_CODE[StarFate.STILL_ON_MAIN_SEQUENCE]
        above_breakdown = mass >= self.breakdown_mass
        fate[died & ~above_breakdown] = FATE_CODE[StarFate.BELOW_IFMR_BREAKDOWN]
        wd = died & above_breakdown

        wd_mass = np.full(size, np.nan)
        cooling_time = np.full(size, np.nan)
        magnitude = np.full(size, np.nan)
        extrapolated = np.zeros(size, dtype=bool)
        is_hydrogen = atmosphere_u < pop.h_fraction

        if np.any(wd):
            wd_mass[wd] = np.asarray(pop.ifmr.final_mass(mass[wd]))
            cooling_time[wd] = t_form[wd] - lifetime[wd]
            for atmosphere, mask in (
                (AtmosphereType.H, wd & is_hydrogen),
                (AtmosphereType.HE, wd & ~is_hydrogen),
            ):
                if not np.any(mask):
                    continue
                grid = pop.cooling.grid(pop.filter_name, atmosphere)
                magnitude[mask] = np.asarray(grid.magnitude(cooling_time[mask], wd_mass[mask])) + noise[mask]
                extrapolated[mask] = np.asarray(grid.is_extrapolated(cooling_time[mask], wd_mass[mask]))

        number = np.ones(size)
        sigma2_number = np.ones(size)
        if self.selection is not None and selection_u is not None:
            selected, weight = self.selection.apply(magnitude, wd, selection_u)
            fate[wd & ~selected] = FATE_CODE[StarFate.NOT_SELECTED]
            # reweight(w, 0) on number = sigma2 = 1
            number = weight
            sigma2_number = weight**2

        logger.debug(
            "Drew %d trials, %d white dwarfs",
            size,
            int(np.count_nonzero(fate == FATE_CODE[StarFate.WHITE_DWARF])),
        )
        return StarBatch(
            formation_time=t_form,
            progenitor_mass=mass,
            metallicity=z,
            helium=y,
            pre_wd_lifetime=lifetime,
            fate=fate,
            wd_mass=wd_mass,
            cooling_time=cooling_time,
            is_hydrogen=is_hydrogen,
            magnitude=magnitude,
            extrapolated=extrapolated,
            number=number,
            sigma2_number=sigma2_number,
        )

    def draw(self) -> Star:
        """Run one trial."""
        return self.draw_batch(1).star(0)


__all__ = ["StarSampler"]
