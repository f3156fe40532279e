"""Tests for initial-final mass relations."""

from __future__ import annotations

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from wdlf.errors import ConfigurationError, ModelDomainError
from wdlf.ifmr import (
    IfmrSegment,
    LinearIfmr,
    PiecewiseLinearIfmr,
    TabulatedIfmr,
    available_ifmrs,
    bisect_fixed_point,
    get_ifmr,
)

# Initial masses inside every segment of each registered relation.
ROUND_TRIP_MASSES = {
    "catalan2008": [1.5, 2.0, 4.0],
    "cummings2018": [1.5, 3.2, 5.0],
    "ferrario2005": [1.0, 3.0, 6.0],
    "kalirai2008": [1.0, 3.0, 6.0],
    "kalirai2009": [1.0, 3.0, 6.0],
    "renedo2010": [1.2, 2.6, 4.5],
}


@pytest.mark.parametrize("name", sorted(ROUND_TRIP_MASSES))
def test_round_trip(name: str) -> None:
    ifmr = get_ifmr(name)
    masses = np.array(ROUND_TRIP_MASSES[name])
    assert_allclose(ifmr.initial_mass(ifmr.final_mass(masses)), masses, rtol=1e-10)


@pytest.mark.parametrize("name", sorted(ROUND_TRIP_MASSES))
def test_breakdown_is_fixed_point(name: str) -> None:
    ifmr = get_ifmr(name)
    m = ifmr.breakdown_initial_mass()
    assert 0.25 < m < 1.0
    assert ifmr.final_mass(m) == pytest.approx(m, abs=1e-10)


@pytest.mark.parametrize("name", sorted(ROUND_TRIP_MASSES))
def test_final_mass_increases(name: str) -> None:
    ifmr = get_ifmr(name)
    final = ifmr.final_mass(np.linspace(0.8, 7.0, 50))
    assert np.all(np.diff(final) >= 0.0)


class TestLinearIfmr:
    def test_closed_form(self) -> None:
        ifmr = LinearIfmr(0.109, 0.428)
        assert ifmr.final_mass(2.0) == pytest.approx(0.646)
        assert ifmr.breakdown_initial_mass() == pytest.approx(0.428 / 0.891)

    def test_extrapolates_without_error(self) -> None:
        ifmr = LinearIfmr(0.1, 0.46, calibrated_range=(1.0, 6.0))
        assert ifmr.final_mass(10.0) == pytest.approx(1.46)
        assert ifmr.is_extrapolated(10.0)
        assert not ifmr.is_extrapolated(3.0)

    def test_rejects_non_positive_slope(self) -> None:
        with pytest.raises(ModelDomainError):
            LinearIfmr(0.0, 0.5)


class TestPiecewiseLinearIfmr:
    def test_segment_selection(self) -> None:
        ifmr = get_ifmr("cummings2018")
        assert ifmr.final_mass(2.0) == pytest.approx(0.08 * 2.0 + 0.489)
        assert ifmr.final_mass(3.0) == pytest.approx(0.187 * 3.0 + 0.184)
        assert ifmr.final_mass(6.0) == pytest.approx(0.107 * 6.0 + 0.471)

    def test_calibrated_range(self) -> None:
        ifmr = get_ifmr("cummings2018")
        assert ifmr.calibrated_range == (0.83, 7.2)
        assert ifmr.is_extrapolated(0.7)
        assert ifmr.is_extrapolated(8.0)

    def test_final_mass_cap(self) -> None:
        ifmr = get_ifmr("catalan2008")
        assert ifmr.final_mass(10.0) == pytest.approx(1.2)
        assert ifmr.initial_mass(1.3) == pytest.approx(ifmr.initial_mass(1.2))

    def test_breakdown_from_first_segment(self) -> None:
        ifmr = PiecewiseLinearIfmr([IfmrSegment(3.0, 0.1, 0.45), IfmrSegment(8.0, 0.15, 0.3)])
        assert ifmr.breakdown_initial_mass() == pytest.approx(0.5)

    def test_rejects_unsorted_segments(self) -> None:
        with pytest.raises(ModelDomainError):
            PiecewiseLinearIfmr([IfmrSegment(3.0, 0.1, 0.45), IfmrSegment(2.0, 0.15, 0.3)])


class TestTabulatedIfmr:
    def test_interpolation_and_extension(self) -> None:
        ifmr = TabulatedIfmr([1.0, 2.0, 4.0], [0.55, 0.6, 0.8])
        assert ifmr.final_mass(1.5) == pytest.approx(0.575)
        assert ifmr.final_mass(5.0) == pytest.approx(0.9)
        assert ifmr.is_extrapolated(5.0)
        assert ifmr.calibrated_range == (1.0, 4.0)

    def test_breakdown_by_bisection(self) -> None:
        ifmr = TabulatedIfmr([1.0, 2.0, 4.0], [0.55, 0.6, 0.8])
        expected = 0.5 / 0.95
        assert ifmr.breakdown_initial_mass() == pytest.approx(expected, abs=1e-10)

    def test_rejects_decreasing(self) -> None:
        with pytest.raises(ValueError, match="increase"):
            TabulatedIfmr([1.0, 2.0], [0.8, 0.6])


def test_bisect_fixed_point_without_root() -> None:
    with pytest.raises(ValueError, match="No fixed point"):
        bisect_fixed_point(lambda m: m + 1.0)


def test_bisect_fixed_point_accuracy() -> None:
    root = bisect_fixed_point(lambda m: math.sqrt(m))
    assert root == pytest.approx(1.0, abs=1e-12)


class TestIfmrRegistry:
    def test_available(self) -> None:
        assert available_ifmrs() == sorted(ROUND_TRIP_MASSES)

    def test_unknown_tag(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown IFMR"):
            get_ifmr("weidemann2000")
