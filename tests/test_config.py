"""Tests for run configuration models and builders."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest
from pydantic import ValidationError

from wdlf.config import (
    BinConfig,
    CoolingConfig,
    CoolingTrackFile,
    ImfConfig,
    InversionConfig,
    PopulationConfig,
    SfrConfig,
    SurveyConfig,
    SynthesisConfig,
    build_bins,
    build_cooling,
    build_imf,
    build_inverter,
    build_population,
    build_selection,
    build_sfr,
    build_solver,
    flatten_config,
    load_inversion_config,
    load_synthesis_config,
)
from wdlf.cooling import AtmosphereType
from wdlf.errors import ConfigurationError
from wdlf.sfr import ConstantSfr, ExponentialDecaySfr, SingleBurstSfr, TabulatedSfr
from wdlf.synthesis import SurveyType


class TestConfigModels:
    def test_defaults(self) -> None:
        config = SynthesisConfig()
        assert config.population.imf.name == "power_law"
        assert config.population.ifmr.name == "kalirai2008"
        assert config.population.cooling.name == "mestel"
        assert config.target_sample_size is None
        assert config.n_workers == 1

    def test_frozen(self) -> None:
        config = SynthesisConfig()
        with pytest.raises(ValidationError):
            config.seed = 3  # type: ignore[misc]

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SynthesisConfig.model_validate({"populaton": {}})

    @pytest.mark.parametrize(
        "data",
        [
            {"kind": "exponential"},
            {"kind": "burst", "onset": 1.0e9},
            {"kind": "tabulated"},
            {"kind": "tabulated", "edges": [0.0, 1.0], "rates": [1.0], "table_path": "sfr.txt"},
            {"rate": -1.0},
        ],
        ids=["no-timescale", "no-duration", "no-table", "two-tables", "negative-rate"],
    )
    def test_sfr_validation(self, data) -> None:
        with pytest.raises(ValidationError):
            SfrConfig.model_validate(data)

    def test_bin_range(self) -> None:
        with pytest.raises(ValidationError, match="m_max"):
            BinConfig(m_min=10.0, m_max=5.0)

    def test_iteration_limits(self) -> None:
        with pytest.raises(ValidationError, match="max_iterations"):
            InversionConfig(min_iterations=10, max_iterations=5)

    def test_magnitude_limited_needs_limit(self) -> None:
        with pytest.raises(ValidationError, match="apparent_limit"):
            SurveyConfig(survey_type=SurveyType.MAGNITUDE_LIMITED)


class TestBuilders:
    def test_sfr_kinds(self) -> None:
        constant = build_sfr(SfrConfig(rate=2.0e-12, t_max=5.0e9))
        assert isinstance(constant, ConstantSfr)
        assert constant.integrate()[0] == pytest.approx(1.0e-2)
        exponential = build_sfr(SfrConfig(kind="exponential", timescale=-3.0e9))
        assert isinstance(exponential, ExponentialDecaySfr)
        burst = build_sfr(SfrConfig(kind="burst", onset=2.0e9, duration=1.0e8))
        assert isinstance(burst, SingleBurstSfr)
        assert burst.t_min == pytest.approx(1.9e9)
        tabulated = build_sfr(SfrConfig(kind="tabulated", edges=[0.0, 1.0e9, 2.0e9], rates=[1.0, 2.0]))
        assert isinstance(tabulated, TabulatedSfr)
        assert tabulated.n_bins == 2

    def test_sfr_from_table(self, tmp_path: Path) -> None:
        path = tmp_path / "sfr.txt"
        path.write_text("0.5e9 1e9 1e-12 1e-13\n1.5e9 1e9 2e-12 1e-13\n")
        sfr = build_sfr(SfrConfig(kind="tabulated", table_path=str(path)))
        assert sfr.integrate()[0] == pytest.approx(3.0e-3)

    def test_imf_exponent(self) -> None:
        imf = build_imf(ImfConfig(name="power_law", exponent=-2.0, mass_lower=0.8))
        assert imf.exponent == -2.0
        assert imf.mass_lower == 0.8

    def test_imf_exponent_not_accepted_by_chabrier(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid arguments"):
            build_imf(ImfConfig(name="chabrier03", exponent=-2.0))

    def test_unknown_tag_fails_fast(self) -> None:
        config = PopulationConfig.model_validate({"ifmr": {"name": "weidemann2000"}})
        with pytest.raises(ConfigurationError, match="Unknown IFMR"):
            build_population(config)

    def test_default_population(self) -> None:
        population = build_population(PopulationConfig())
        assert population.cooling.name == "mestel"
        assert population.h_fraction == 1.0

    def test_cooling_from_track_files(self, tmp_path: Path) -> None:
        path = tmp_path / "da_g.txt"
        path.write_text("0.6 0 10.0\n0.6 1e10 16.0\n0.9 0 10.5\n0.9 1e10 16.5\n")
        config = CoolingConfig(
            name="custom",
            filter_name="G",
            tracks=[CoolingTrackFile(path=str(path), filter_name="G", atmosphere=AtmosphereType.H)],
        )
        cooling = build_cooling(config)
        assert cooling.name == "custom"
        assert cooling.usable_filters() == ["G"]
        population = build_population(PopulationConfig(cooling=config))
        assert population.filter_name == "G"

    def test_bins(self) -> None:
        bins = build_bins(BinConfig(m_min=10.0, m_max=12.0, width=0.5))
        assert len(bins) == 4

    def test_selection(self) -> None:
        assert build_selection(SurveyConfig()).survey_type is SurveyType.VOLUME_LIMITED
        selection = build_selection(
            SurveyConfig(
                survey_type=SurveyType.MAGNITUDE_LIMITED,
                apparent_limit=18.0,
                max_distance=200.0,
                scale_height=250.0,
            )
        )
        assert selection.volume is not None
        assert selection.volume.max_distance == 200.0

    def test_solver(self) -> None:
        solver = build_solver(SynthesisConfig(n_workers=2, chunk_size=100))
        assert len(solver.bins) == 80
        assert solver.n_workers == 2
        assert solver.chunk_size == 100

    def test_inverter(self) -> None:
        inverter = build_inverter(InversionConfig(time_edges=[0.0, 1.0e9, 5.0e9], trials_per_bin=10))
        np.testing.assert_allclose(inverter.time_edges, [0.0, 1.0e9, 5.0e9])
        assert inverter.trials_per_bin == 10


class TestLoading:
    def test_load_synthesis(self, tmp_path: Path) -> None:
        path = tmp_path / "run.json"
        path.write_text(json.dumps({"max_trials": 1000, "population": {"imf": {"name": "salpeter"}}}))
        config = load_synthesis_config(path)
        assert config.max_trials == 1000
        assert config.population.imf.name == "salpeter"

    def test_load_inversion(self, tmp_path: Path) -> None:
        path = tmp_path / "inv.json"
        path.write_text(json.dumps({"n_time_bins": 10}))
        assert load_inversion_config(path).n_time_bins == 10

    @pytest.mark.parametrize(
        ("content", "match"),
        [
            ("{not json", "Invalid JSON"),
            ("[1, 2]", "JSON object"),
            ('{"max_trials": 0}', "Invalid synthesis configuration"),
        ],
    )
    def test_load_errors(self, tmp_path: Path, content: str, match: str) -> None:
        path = tmp_path / "bad.json"
        path.write_text(content)
        with pytest.raises(ConfigurationError, match=match):
            load_synthesis_config(path)


def test_flatten_config() -> None:
    config = SynthesisConfig(
        population=PopulationConfig(sfr=SfrConfig(kind="tabulated", edges=[0.0, 1.0e9], rates=[1.0]))
    )
    flat = flatten_config(config)
    assert flat["population.imf.name"] == "power_law"
    assert flat["population.sfr.edges"] == "[0.0, 1000000000.0]"
    assert flat["bins.per_magnitude"] == "True"
    assert "target_sample_size" not in flat
    assert "population.sfr.timescale" not in flat
