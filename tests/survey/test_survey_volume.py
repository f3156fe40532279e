"""Tests for survey volumes and selection geometry."""

from __future__ import annotations

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy.stats import uniform

from wdlf.errors import ModelDomainError
from wdlf.survey import (
    KM_S_PER_ARCSEC_YR_PC,
    ExponentialDisk,
    ProperMotionSelection,
    SkyCell,
    SurveyVolume,
    UniformDensity,
    cone_survey_volume,
    differential_volume,
)

FULL_SKY = SkyCell(4.0 * math.pi, 0.5 * math.pi)


class TestSurveyVolume:
    def test_full_sky_sphere(self) -> None:
        volume = SurveyVolume.build([FULL_SKY], 100.0, n_steps=1000)
        assert volume.total_volume == pytest.approx(4.0 / 3.0 * math.pi * 100.0**3)
        assert volume.max_distance == 100.0

    def test_cells_add_up(self) -> None:
        halves = [SkyCell(2.0 * math.pi, 0.3), SkyCell(2.0 * math.pi, -0.3)]
        split = SurveyVolume.build(halves, 50.0, n_steps=200, max_workers=2)
        whole = SurveyVolume.build([FULL_SKY], 50.0, n_steps=200)
        assert split.total_volume == pytest.approx(whole.total_volume)

    def test_volume_is_constant_beyond_edge(self) -> None:
        volume = SurveyVolume.build([FULL_SKY], 100.0, n_steps=100)
        assert volume.volume(500.0) == pytest.approx(volume.total_volume)
        assert volume.volume(0.0) == 0.0

    def test_detection_probability(self) -> None:
        volume = SurveyVolume.build([FULL_SKY], 100.0, n_steps=1000)
        absolute = 10.0
        apparent_limit = absolute + 5.0 * math.log10(50.0) - 5.0
        assert SurveyVolume.limiting_distance(absolute, apparent_limit) == pytest.approx(50.0)
        assert volume.detection_probability(absolute, apparent_limit) == pytest.approx(0.125)
        assert volume.detection_probability(0.0, apparent_limit) == pytest.approx(1.0)

    def test_disk_density_reduces_volume(self) -> None:
        cell = SkyCell(1.0, 0.5 * math.pi)
        flat = SurveyVolume.build([cell], 500.0, density=UniformDensity())
        disk = SurveyVolume.build([cell], 500.0, density=ExponentialDisk(250.0))
        assert disk.total_volume < flat.total_volume

    def test_disk_in_the_plane_is_uniform(self) -> None:
        edges = np.linspace(0.0, 100.0, 11)
        plane = SkyCell(1.0, 0.0)
        assert_allclose(
            differential_volume(plane, edges, ExponentialDisk(300.0)),
            differential_volume(plane, edges),
        )

    def test_invalid_inputs(self) -> None:
        with pytest.raises(ModelDomainError):
            SurveyVolume.build([], 100.0)
        with pytest.raises(ModelDomainError):
            SurveyVolume.build([FULL_SKY], -1.0)
        with pytest.raises(ModelDomainError):
            SurveyVolume([0.0, 1.0, 0.5], [1.0, 1.0])
        with pytest.raises(ModelDomainError):
            ExponentialDisk(0.0)


class TestProperMotionSelection:
    @pytest.fixture
    def selection(self) -> ProperMotionSelection:
        return ProperMotionSelection(0.0, 1.0, uniform(loc=0.0, scale=100.0))

    def test_upper_limit_cuts_fast_stars(self, selection: ProperMotionSelection) -> None:
        expected = KM_S_PER_ARCSEC_YR_PC * 10.0 / 100.0
        assert selection.discovery_fraction(10.0) == pytest.approx(expected)

    def test_far_stars_fully_discovered(self, selection: ProperMotionSelection) -> None:
        assert selection.discovery_fraction(1000.0) == pytest.approx(1.0)

    def test_lower_limit(self) -> None:
        selection = ProperMotionSelection(0.1, 10.0, uniform(loc=0.0, scale=100.0))
        # v_tan floor of 4.74 km/s at 10 pc.
        assert selection.discovery_fraction(10.0) == pytest.approx(1.0 - KM_S_PER_ARCSEC_YR_PC / 100.0)

    def test_tangential_velocity_cut(self) -> None:
        selection = ProperMotionSelection(0.0, 10.0, uniform(loc=0.0, scale=100.0), vtan_min=30.0)
        assert selection.discovery_fraction(np.array([100.0]))[0] == pytest.approx(0.7)

    def test_invalid_limits(self) -> None:
        with pytest.raises(ModelDomainError):
            ProperMotionSelection(1.0, 0.5, uniform())

    def test_reduces_generalised_volume(self, selection: ProperMotionSelection) -> None:
        plain = SurveyVolume.build([FULL_SKY], 100.0)
        selected = SurveyVolume.build([FULL_SKY], 100.0, selection=selection)
        assert selected.total_volume < plain.total_volume


class TestConeSurveyVolume:
    def test_narrow_cone_is_smaller(self) -> None:
        wide = cone_survey_volume(250.0, math.radians(60.0), n_radial=200)
        narrow = cone_survey_volume(250.0, math.radians(20.0), n_radial=200)
        assert 0.0 < narrow.total_volume < wide.total_volume

    def test_small_cone_matches_column_integral(self) -> None:
        # A thin pencil along the pole: omega * integral r^2 exp(-r/H) dr = omega * 2 H^3.
        opening = math.radians(2.0)
        volume = cone_survey_volume(100.0, opening, n_radial=3000, polar_step=math.radians(0.05))
        omega = 2.0 * math.pi * (1.0 - math.cos(opening))
        assert volume.total_volume == pytest.approx(omega * 2.0 * 100.0**3, rel=0.01)

    def test_cumulative_is_monotonic(self) -> None:
        volume = cone_survey_volume(250.0, math.radians(45.0), n_radial=100)
        assert np.all(np.diff(volume.cumulative) >= 0.0)

    def test_invalid_opening_angle(self) -> None:
        with pytest.raises(ModelDomainError):
            cone_survey_volume(250.0, 0.0)
