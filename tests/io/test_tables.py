"""Tests for the text table readers and writers."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from wdlf.cooling import AtmosphereType
from wdlf.errors import ObservedWdlfError, TableParseError
from wdlf.inversion import ObservedWdlf, ResponseKernel, WdlfInverter
from wdlf.io import (
    MODEL_COLUMNS,
    format_inversion_result,
    format_model_wdlf,
    format_sfr_table,
    parse_magnitude_bins,
    parse_model_wdlf,
    parse_observed_wdlf,
    parse_sfr_table,
    read_cooling_tracks,
    read_ifmr_table,
    read_lifetime_table,
    read_model_wdlf,
    read_observed_wdlf,
    sfr_from_metadata,
    write_model_wdlf,
)
from wdlf.sfr import TabulatedSfr
from wdlf.synthesis import MagnitudeBins, StellarPopulation, WdlfSolver


@pytest.fixture
def model_wdlf(population: StellarPopulation):
    bins = MagnitudeBins.uniform(8.0, 18.0, 1.0)
    return WdlfSolver(population, bins, chunk_size=2000).synthesize(max_trials=4000, seed=21).wdlf


# =============================================================================
# Model WDLF
# =============================================================================


class TestModelWdlfTable:
    def test_round_trip(self, model_wdlf) -> None:
        parsed = parse_model_wdlf(format_model_wdlf(model_wdlf))
        for name in ("centres", "widths", "density", "density_std", "mean_mass", "mean_age"):
            assert_array_equal(getattr(parsed, name), getattr(model_wdlf, name))
        assert list(parsed.counts) == list(model_wdlf.counts)
        assert parsed.per_magnitude is True
        assert parsed.metadata == model_wdlf.metadata

    def test_header_carries_configuration(self, model_wdlf) -> None:
        text = format_model_wdlf(model_wdlf, {"seed": "21"})
        assert "# ifmr = " in text
        assert "# seed = 21" in text
        assert "# " + "\t".join(MODEL_COLUMNS) in text

    def test_file_round_trip(self, model_wdlf, tmp_path: Path) -> None:
        path = tmp_path / "out" / "wdlf.txt"
        write_model_wdlf(model_wdlf, path)
        assert_array_equal(read_model_wdlf(path).density, model_wdlf.density)

    def test_tabulated_sfr_header_rebuilds_history(
        self, population: StellarPopulation, tmp_path: Path
    ) -> None:
        sfr = TabulatedSfr.from_edges(
            [0.0, 1.234567891234e9, 4.0e9, 1.0e10],
            [1.0e-12, 0.3333333333333e-12, 2.718281828459045e-12],
            [1.0e-13, 0.0, 7.0e-14],
        )
        bins = MagnitudeBins.uniform(8.0, 18.0, 1.0)
        wdlf = WdlfSolver(population.with_sfr(sfr), bins, chunk_size=2000).synthesize(max_trials=2000, seed=4).wdlf
        path = tmp_path / "wdlf.txt"
        write_model_wdlf(wdlf, path)
        rebuilt = sfr_from_metadata(read_model_wdlf(path).metadata)
        for name in ("centres", "widths", "rates", "errors"):
            assert_array_equal(getattr(rebuilt, name), getattr(sfr, name))

    @pytest.mark.parametrize(
        "metadata",
        [{}, {"sfr_table": "[[1, 2"}, {"sfr_table": "[[1.0, 2.0, 3.0]]"}, {"sfr_table": "[]"}],
        ids=["missing", "bad-json", "short-row", "empty"],
    )
    def test_sfr_header_errors(self, metadata: dict[str, str]) -> None:
        with pytest.raises(TableParseError, match="sfr_table"):
            sfr_from_metadata(metadata)

    def test_floats_written_exactly(self) -> None:
        sfr = TabulatedSfr.from_edges([0.0, 1.0 / 3.0 * 1.0e9], [0.1 + 0.2], [1.0e-13 / 7.0])
        parsed = parse_sfr_table(format_sfr_table(sfr))
        assert_array_equal(parsed.rates, sfr.rates)
        assert_array_equal(parsed.widths, sfr.widths)

    def test_wrong_column_count(self) -> None:
        with pytest.raises(TableParseError, match="line 2"):
            parse_model_wdlf("# comment\n1 2 3\n")


# =============================================================================
# Observed WDLF
# =============================================================================


OBSERVED_TEXT = """\
# M   dM   phi   sigma
12.0  1.0  1.0e-4  1.0e-5

13.0  1.0  2.0e-4  2.0e-5
14.0  1.0  3.0e-4  3.0e-5
"""


class TestObservedWdlfTable:
    def test_parse(self) -> None:
        obs = parse_observed_wdlf(OBSERVED_TEXT)
        assert isinstance(obs, ObservedWdlf)
        assert_allclose(obs.centres, [12.0, 13.0, 14.0])
        assert_allclose(obs.density_std, [1.0e-5, 2.0e-5, 3.0e-5])

    def test_read(self, tmp_path: Path) -> None:
        path = tmp_path / "obs.txt"
        path.write_text(OBSERVED_TEXT)
        assert len(read_observed_wdlf(path)) == 3

    @pytest.mark.parametrize(
        ("bad_line", "match"),
        [
            ("15.0 1.0 1e-4", "4 columns"),
            ("15.0 1.0 abc 1e-5", "abc"),
            ("15.0 1.0 -1e-4 1e-5", "non-negative"),
            ("15.0 0.0 1e-4 1e-5", "width"),
            ("13.5 1.0 1e-4 1e-5", "increasing"),
            ("14.8 1.0 1e-4 1e-5", "overlaps"),
        ],
    )
    def test_errors_name_the_line(self, bad_line: str, match: str) -> None:
        with pytest.raises(ObservedWdlfError, match=match) as exc_info:
            parse_observed_wdlf(OBSERVED_TEXT + bad_line + "\n")
        assert exc_info.value.line_number == 6
        assert str(exc_info.value).startswith("line 6:")

    def test_no_bins(self) -> None:
        with pytest.raises(ObservedWdlfError, match="no bins") as exc_info:
            parse_observed_wdlf("# nothing here\n\n")
        assert exc_info.value.line_number is None

    def test_magnitude_bins(self) -> None:
        bins = parse_magnitude_bins("10.5 1.0\n11.5 1.0\n13.0 2.0\n")
        assert_allclose(bins.widths, [1.0, 1.0, 2.0])
        with pytest.raises(ObservedWdlfError, match="line 2"):
            parse_magnitude_bins("10.5 1.0\n10.0 1.0\n")


# =============================================================================
# Model tables
# =============================================================================


class TestModelTables:
    def test_sfr_round_trip(self) -> None:
        sfr = TabulatedSfr.from_edges([0.0, 1.0e9, 3.0e9], [1.0e-12, 2.5e-12], [1.0e-13, 2.0e-13])
        parsed = parse_sfr_table(format_sfr_table(sfr))
        assert_allclose(parsed.rates, sfr.rates)
        assert_allclose(parsed.errors, sfr.errors)
        assert parsed.integrate()[0] == pytest.approx(sfr.integrate()[0])

    def test_sfr_invalid_bins(self) -> None:
        with pytest.raises(TableParseError, match="SFR table"):
            parse_sfr_table("2e9 1e9 1e-12 0\n1e9 1e9 1e-12 0\n")

    def test_cooling_tracks(self, tmp_path: Path) -> None:
        path = tmp_path / "tracks.txt"
        path.write_text(
            "# mass  age  G\n"
            "0.6 0 10.0\n0.6 1e9 13.0\n0.6 1e10 16.0\n"
            "0.9 0 10.5\n0.9 1e9 13.8\n0.9 1e10 16.5\n"
        )
        grid = read_cooling_tracks(path, "G", "He")
        assert grid.atmosphere is AtmosphereType.HE
        assert grid.filter_name == "G"
        assert grid.magnitude(1.0e9, 0.75) == pytest.approx(13.4)

    def test_cooling_tracks_need_three_columns(self, tmp_path: Path) -> None:
        path = tmp_path / "tracks.txt"
        path.write_text("0.6 0\n")
        with pytest.raises(TableParseError, match="expected 3 columns"):
            read_cooling_tracks(path, "G", AtmosphereType.H)

    def test_lifetime_table(self, tmp_path: Path) -> None:
        path = tmp_path / "lifetimes.txt"
        lines = [
            f"{z} {y} {m} {life}"
            for z in (0.001, 0.02)
            for y in (0.25, 0.3)
            for m, life in ((1.0, 1.0e10), (2.0, 1.5e9), (4.0, 2.0e8))
        ]
        path.write_text("\n".join(lines) + "\n")
        model = read_lifetime_table(path, name="toy")
        assert model.describe() == "toy"
        assert model.lifetime(0.001, 0.25, 2.0) == pytest.approx(1.5e9)

    def test_ifmr_table(self, tmp_path: Path) -> None:
        path = tmp_path / "ifmr.txt"
        path.write_text("1.0 0.55\n2.0 0.60\n4.0 0.80\n")
        ifmr = read_ifmr_table(path)
        assert ifmr.final_mass(3.0) == pytest.approx(0.7)

    def test_ifmr_table_must_increase(self, tmp_path: Path) -> None:
        path = tmp_path / "ifmr.txt"
        path.write_text("1.0 0.8\n2.0 0.6\n")
        with pytest.raises(TableParseError, match="IFMR table"):
            read_ifmr_table(path)

    def test_empty_table(self) -> None:
        with pytest.raises(TableParseError, match="no data rows"):
            parse_sfr_table("# header only\n")


# =============================================================================
# Inversion output
# =============================================================================


def test_inversion_result_marks_unconstrained_bins(population: StellarPopulation) -> None:
    observed = ObservedWdlf.from_rows([(12.0, 1.0, 2.0e-3, 1.0e-4), (13.0, 1.0, 4.0e-3, 2.0e-4)])
    kernel = ResponseKernel(
        time_edges=np.array([0.0, 1.0e9, 2.0e9]),
        bins=observed.bins,
        matrix=np.array([[1.0e9, 0.0], [2.0e9, 0.0]]),
        variance=np.zeros((2, 2)),
        counts=np.array([[10, 0], [20, 0]]),
        wd_fraction=np.array([0.3, 0.0]),
        trials_per_bin=100,
    )
    result = WdlfInverter(population, kernel.time_edges).invert(observed, kernel=kernel)
    text = format_inversion_result(result, {"observed": "toy.txt"})
    rows = [line.split("\t") for line in text.splitlines() if not line.startswith("#")]
    assert len(rows) == 2
    assert rows[0][5] == "solved"
    assert float(rows[0][2]) == pytest.approx(2.0e-12)
    assert rows[1][2:4] == ["-", "-"]
    assert rows[1][5] == "unconstrained"
    assert "# observed = toy.txt" in text
