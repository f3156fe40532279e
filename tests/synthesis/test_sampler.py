"""Tests for the single-star Monte Carlo sampler."""

from __future__ import annotations

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from wdlf.errors import ConfigurationError
from wdlf.ifmr import LinearIfmr
from wdlf.imf import PowerLawImf
from wdlf.survey import SkyCell, SurveyVolume
from wdlf.synthesis import (
    Star,
    StarFate,
    StarSampler,
    StellarPopulation,
    SurveySelection,
    SurveyType,
)
from wdlf.synthesis.star import FATE_CODE


class TestStarSampler:
    def test_white_dwarf_fields(self, population: StellarPopulation) -> None:
        batch = StarSampler(population, np.random.default_rng(3)).draw_batch(20_000)
        wd = batch.white_dwarfs
        assert wd.sum() > 100
        assert np.all(np.isfinite(batch.magnitude[wd]))
        assert np.all(batch.formation_time[wd] > batch.pre_wd_lifetime[wd])
        assert_allclose(batch.cooling_time[wd], batch.formation_time[wd] - batch.pre_wd_lifetime[wd])
        assert_allclose(batch.wd_mass[wd], population.ifmr.final_mass(batch.progenitor_mass[wd]))
        assert np.all(batch.metallicity > 0.0)
        assert np.all(batch.helium > 0.0)

    def test_discarded_trials_have_no_white_dwarf_quantities(self, population: StellarPopulation) -> None:
        batch = StarSampler(population, np.random.default_rng(4)).draw_batch(5000)
        on_ms = batch.fate == FATE_CODE[StarFate.STILL_ON_MAIN_SEQUENCE]
        assert on_ms.sum() > 0
        assert np.all(batch.formation_time[on_ms] <= batch.pre_wd_lifetime[on_ms])
        assert np.all(np.isnan(batch.magnitude[on_ms]))
        assert np.all(np.isnan(batch.wd_mass[on_ms]))

    def test_fate_counts_cover_every_trial(self, population: StellarPopulation) -> None:
        batch = StarSampler(population, np.random.default_rng(5)).draw_batch(3000)
        counts = batch.fate_counts()
        assert sum(counts.values()) == 3000
        assert counts[StarFate.NOT_SELECTED] == 0

    def test_below_breakdown_fate(self, population: StellarPopulation) -> None:
        # Breakdown at 2 M_sun: dead progenitors between 1.5 and 2 M_sun are discarded.
        pop = StellarPopulation(
            imf=PowerLawImf(-2.35, 1.5, 3.0),
            sfr=population.sfr,
            ifmr=LinearIfmr(0.1, 1.8),
            lifetime=population.lifetime,
            cooling=population.cooling,
        )
        batch = StarSampler(pop, np.random.default_rng(6)).draw_batch(5000)
        below = batch.fate == FATE_CODE[StarFate.BELOW_IFMR_BREAKDOWN]
        assert below.sum() > 0
        assert np.all(batch.progenitor_mass[below] < 2.0)
        assert np.all(batch.progenitor_mass[batch.white_dwarfs] >= 2.0)
        # Final masses above the grid are extrapolated but kept.
        assert np.all(batch.extrapolated[batch.white_dwarfs])

    def test_same_seed_same_batch(self, population: StellarPopulation) -> None:
        a = StarSampler(population, np.random.default_rng(7)).draw_batch(1000)
        b = StarSampler(population, np.random.default_rng(7)).draw_batch(1000)
        assert_array_equal(a.fate, b.fate)
        assert_array_equal(a.magnitude, b.magnitude)

    def test_mixed_atmospheres(self, population: StellarPopulation) -> None:
        pop = StellarPopulation(
            imf=population.imf,
            sfr=population.sfr,
            ifmr=population.ifmr,
            lifetime=population.lifetime,
            cooling=population.cooling,
            h_fraction=0.5,
        )
        batch = StarSampler(pop, np.random.default_rng(8)).draw_batch(20_000)
        wd = batch.white_dwarfs
        fraction = batch.is_hydrogen[wd].mean()
        assert 0.4 < fraction < 0.6

    def test_draw_returns_star(self, population: StellarPopulation) -> None:
        star = StarSampler(population, np.random.default_rng(9)).draw()
        assert isinstance(star, Star)
        assert star.number == 1.0
        if star.is_white_dwarf:
            assert star.atmosphere is not None
            assert star.magnitude is not None
        else:
            assert star.magnitude is None

    def test_size_must_be_positive(self, population: StellarPopulation) -> None:
        with pytest.raises(ValueError, match="size"):
            StarSampler(population, np.random.default_rng(0)).draw_batch(0)


class TestMagnitudeLimitedSelection:
    @pytest.fixture
    def selection(self) -> SurveySelection:
        volume = SurveyVolume.build([SkyCell(4.0 * math.pi, 0.5 * math.pi)], 100.0, n_steps=500)
        # M = 12 white dwarfs are visible out to 50 pc.
        return SurveySelection(
            SurveyType.MAGNITUDE_LIMITED,
            volume=volume,
            apparent_limit=12.0 + 5.0 * math.log10(50.0) - 5.0,
        )

    def test_faint_stars_are_dropped_and_survivors_reweighted(
        self, population: StellarPopulation, selection: SurveySelection
    ) -> None:
        batch = StarSampler(population, np.random.default_rng(10), selection).draw_batch(20_000)
        not_selected = batch.fate == FATE_CODE[StarFate.NOT_SELECTED]
        wd = batch.white_dwarfs
        assert not_selected.sum() > 0
        assert wd.sum() > 0
        assert np.all(batch.number[wd] >= 1.0)
        assert_allclose(batch.sigma2_number[wd], batch.number[wd] ** 2)
        assert np.all(np.isfinite(batch.magnitude[not_selected]))

    def test_volume_limited_keeps_everything(self) -> None:
        selection = SurveySelection()
        mags = np.array([10.0, np.nan, 15.0])
        candidates = np.array([True, False, True])
        selected, weight = selection.apply(mags, candidates, np.zeros(3))
        assert list(selected) == [True, False, True]
        assert_allclose(weight, 1.0)

    def test_magnitude_limited_needs_volume(self) -> None:
        with pytest.raises(ConfigurationError):
            SurveySelection(SurveyType.MAGNITUDE_LIMITED)
