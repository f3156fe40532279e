"""Tests for pre-white-dwarf lifetime models."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from numpy.testing import assert_allclose

from wdlf.errors import ConfigurationError
from wdlf.io import read_lifetime_table
from wdlf.lifetime import (
    PADOVA_METALLICITIES,
    Hurley2000Lifetime,
    TabulatedPreWdLifetime,
    available_lifetime_models,
    get_lifetime_model,
    hurley2000_grid,
    main_sequence_lifetime_myr,
    turnoff_mass,
)


class TestHurley2000Lifetime:
    @pytest.fixture
    def model(self) -> Hurley2000Lifetime:
        return Hurley2000Lifetime()

    def test_solar_mass_lifetime(self, model: Hurley2000Lifetime) -> None:
        assert 9.0e9 < model.lifetime(0.02, 0.28, 1.0) < 13.0e9

    def test_lifetime_falls_with_mass(self, model: Hurley2000Lifetime) -> None:
        masses = np.array([0.8, 1.0, 2.0, 4.0, 8.0, 20.0])
        lifetimes = model.lifetime(0.02, 0.28, masses)
        assert np.all(np.diff(lifetimes) < 0.0)

    def test_lower_metallicity_shortens_lifetime(self, model: Hurley2000Lifetime) -> None:
        assert model.lifetime(0.001, 0.25, 1.0) < model.lifetime(0.02, 0.28, 1.0)

    def test_years_and_myr_agree(self, model: Hurley2000Lifetime) -> None:
        assert model.lifetime(0.01, 0.27, 3.0) == pytest.approx(
            float(main_sequence_lifetime_myr(0.01, 3.0)) * 1.0e6
        )

    def test_helium_is_ignored(self, model: Hurley2000Lifetime) -> None:
        assert model.lifetime(0.01, 0.25, 2.0) == model.lifetime(0.01, 0.35, 2.0)

    @pytest.mark.parametrize("mass", [0.9, 1.3, 2.5, 6.0, 20.0])
    def test_inverse_round_trip(self, model: Hurley2000Lifetime, mass: float) -> None:
        life = model.lifetime(0.005, 0.26, mass)
        assert model.mass_from_lifetime(0.005, 0.26, life) == pytest.approx(mass, rel=1e-6)

    def test_vectorised_inverse(self, model: Hurley2000Lifetime) -> None:
        masses = np.array([1.0, 2.0, 3.0])
        z = np.array([0.001, 0.01, 0.02])
        lifetimes = model.lifetime(z, 0.26, masses)
        assert_allclose(model.mass_from_lifetime(z, 0.26, lifetimes), masses, rtol=1e-6)

    def test_derivative_is_negative(self, model: Hurley2000Lifetime) -> None:
        assert model.lifetime_derivative(0.02, 0.28, 2.0) < 0.0

    def test_extrapolation_flags(self, model: Hurley2000Lifetime) -> None:
        assert not model.is_extrapolated(0.02, 0.28, 1.0)
        assert model.is_extrapolated(0.02, 0.28, 150.0)
        assert model.is_extrapolated(1.0e-5, 0.25, 1.0)
        assert list(model.is_extrapolated(0.02, 0.28, np.array([0.05, 1.0]))) == [True, False]

    def test_turnoff_mass(self, model: Hurley2000Lifetime) -> None:
        age = model.lifetime(0.02, 0.28, 1.5)
        assert turnoff_mass(model, 0.02, 0.28, age) == pytest.approx(1.5, rel=1e-6)
        with pytest.raises(ValueError, match="age"):
            turnoff_mass(model, 0.02, 0.28, -1.0)


class TestTabulatedPreWdLifetime:
    @pytest.fixture
    def model(self) -> TabulatedPreWdLifetime:
        masses = [1.0, 2.0, 4.0]
        base = [1.0e10, 1.5e9, 2.0e8]
        rows = []
        for z, factor in ((0.001, 1.0), (0.02, 2.0)):
            for y in (0.25, 0.30):
                rows.extend((z, y, m, factor * life) for m, life in zip(masses, base))
        return TabulatedPreWdLifetime.from_rows(rows, name="toy")

    def test_exact_node(self, model: TabulatedPreWdLifetime) -> None:
        assert model.lifetime(0.02, 0.25, 2.0) == pytest.approx(3.0e9)

    def test_blends_between_metallicities(self, model: TabulatedPreWdLifetime) -> None:
        z_mid = 0.5 * (0.001 + 0.02)
        assert model.lifetime(z_mid, 0.27, 2.0) == pytest.approx(2.25e9)

    def test_inverse_at_node(self, model: TabulatedPreWdLifetime) -> None:
        assert model.mass_from_lifetime(0.001, 0.25, 1.5e9) == pytest.approx(2.0)

    def test_inverse_between_metallicities(self, model: TabulatedPreWdLifetime) -> None:
        z_mid = 0.5 * (0.001 + 0.02)
        life = model.lifetime(z_mid, 0.25, 1.5)
        assert model.mass_from_lifetime(z_mid, 0.25, life) == pytest.approx(1.5, rel=1e-9)

    def test_derivative(self, model: TabulatedPreWdLifetime) -> None:
        assert model.lifetime_derivative(0.001, 0.25, 1.5) == pytest.approx(-8.5e9)

    def test_extrapolation_flags(self, model: TabulatedPreWdLifetime) -> None:
        assert not model.is_extrapolated(0.01, 0.27, 3.0)
        assert model.is_extrapolated(0.01, 0.27, 5.0)
        assert model.is_extrapolated(0.05, 0.27, 3.0)
        assert model.is_extrapolated(0.01, 0.20, 3.0)

    def test_metadata(self, model: TabulatedPreWdLifetime) -> None:
        assert model.describe() == "toy"
        assert_allclose(model.metallicities, [0.001, 0.02])


def _helium_factor(y: float) -> float:
    # Helium-rich progenitors burn faster.
    return 1.0 - 1.5 * (y - 0.23)


class TestLifetimeGridFile:
    """A multi-metallicity, multi-helium grid in the layout of the published tracks."""

    Z_VALUES = (0.0004, 0.004, 0.017)
    Y_VALUES = (0.23, 0.30)
    MASSES = (0.8, 1.0, 1.5, 2.0, 3.0, 5.0, 7.0)

    @pytest.fixture
    def model(self, tmp_path: Path) -> TabulatedPreWdLifetime:
        lines = ["# Z  Y  M_init  t_preWD"]
        for z in self.Z_VALUES:
            for y in self.Y_VALUES:
                for m in self.MASSES:
                    life = float(main_sequence_lifetime_myr(z, m)) * 1.0e6 * _helium_factor(y)
                    lines.append(f"{z} {y} {m} {life!r}")
        path = tmp_path / "grid.txt"
        path.write_text("\n".join(lines) + "\n")
        return read_lifetime_table(path, name="padova-like")

    @staticmethod
    def _expected(z: float, y: float, m: float) -> float:
        return float(main_sequence_lifetime_myr(z, m)) * 1.0e6 * _helium_factor(y)

    def test_node_values(self, model: TabulatedPreWdLifetime) -> None:
        assert model.lifetime(0.004, 0.30, 2.0) == pytest.approx(self._expected(0.004, 0.30, 2.0), rel=1e-12)
        assert_allclose(model.metallicities, self.Z_VALUES)

    def test_blends_across_helium_then_metallicity(self, model: TabulatedPreWdLifetime) -> None:
        y_mid = 0.5 * (0.23 + 0.30)
        expected_y = 0.5 * (self._expected(0.004, 0.23, 2.0) + self._expected(0.004, 0.30, 2.0))
        assert model.lifetime(0.004, y_mid, 2.0) == pytest.approx(expected_y, rel=1e-12)
        z_mid = 0.5 * (0.004 + 0.017)
        expected_z = 0.5 * (self._expected(0.004, 0.23, 2.0) + self._expected(0.017, 0.23, 2.0))
        assert model.lifetime(z_mid, 0.23, 2.0) == pytest.approx(expected_z, rel=1e-12)

    def test_vectorised_over_stars(self, model: TabulatedPreWdLifetime) -> None:
        z = np.array([0.001, 0.004, 0.01])
        y = np.array([0.25, 0.26, 0.28])
        m = np.array([1.2, 2.0, 4.0])
        lifetimes = model.lifetime(z, y, m)
        assert lifetimes.shape == (3,)
        for i in range(3):
            assert lifetimes[i] == pytest.approx(model.lifetime(z[i], y[i], m[i]))

    def test_inverse_round_trip(self, model: TabulatedPreWdLifetime) -> None:
        z_mid, y_mid = 0.0105, 0.265
        life = model.lifetime(z_mid, y_mid, 2.5)
        assert model.mass_from_lifetime(z_mid, y_mid, life) == pytest.approx(2.5, rel=1e-4)

    def test_extrapolation_flags(self, model: TabulatedPreWdLifetime) -> None:
        assert not model.is_extrapolated(0.004, 0.26, 3.0)
        assert model.is_extrapolated(0.0001, 0.26, 3.0)
        assert model.is_extrapolated(0.004, 0.26, 8.0)
        assert model.is_extrapolated(0.004, 0.35, 3.0)


class TestHurley2000Grid:
    @pytest.fixture(scope="class")
    def grid(self) -> TabulatedPreWdLifetime:
        return hurley2000_grid()

    def test_metallicity_ladder(self, grid: TabulatedPreWdLifetime) -> None:
        assert_allclose(grid.metallicities, PADOVA_METALLICITIES)
        assert grid.describe() == "hurley2000_grid"

    def test_matches_fits_at_nodes(self) -> None:
        grid = hurley2000_grid(masses=[0.8, 1.0, 2.0, 4.0, 8.0])
        analytic = Hurley2000Lifetime()
        for z in (0.0004, 0.008):
            for y in (0.23, 0.28):
                assert grid.lifetime(z, y, 2.0) == pytest.approx(analytic.lifetime(z, y, 2.0), rel=1e-12)

    def test_close_to_fits_between_nodes(self, grid: TabulatedPreWdLifetime) -> None:
        analytic = Hurley2000Lifetime()
        for z, m in ((0.006, 1.7), (0.0015, 3.3), (0.012, 5.5)):
            assert grid.lifetime(z, 0.26, m) == pytest.approx(analytic.lifetime(z, 0.26, m), rel=0.03)

    def test_inverse_at_metallicity_node(self, grid: TabulatedPreWdLifetime) -> None:
        life = grid.lifetime(0.004, 0.26, 2.5)
        assert grid.mass_from_lifetime(0.004, 0.26, life) == pytest.approx(2.5, rel=1e-6)

    def test_extrapolation_flags(self, grid: TabulatedPreWdLifetime) -> None:
        assert not grid.is_extrapolated(0.004, 0.26, 2.0)
        assert grid.is_extrapolated(0.05, 0.26, 2.0)
        assert grid.is_extrapolated(0.004, 0.26, 12.0)


class TestLifetimeRegistry:
    def test_available(self) -> None:
        assert available_lifetime_models() == ["hurley2000", "hurley2000_grid"]
        assert isinstance(get_lifetime_model("hurley2000"), Hurley2000Lifetime)
        assert isinstance(get_lifetime_model("hurley2000_grid"), TabulatedPreWdLifetime)

    def test_unknown_tag(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown lifetime model"):
            get_lifetime_model("padova")
