"""Immutable run configuration.

A run is described once by a frozen pydantic model, loaded from JSON, and
turned into model objects by the ``build_*`` helpers. Model choices are
registry tags; tabulated models are loaded from the paths given.
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from wdlf.cooling.grid import AtmosphereType
from wdlf.cooling.model_set import WdCoolingModelSet
from wdlf.cooling.registry import get_cooling_model_set
from wdlf.cooling.synthetic import BOLOMETRIC_FILTER
from wdlf.errors import ConfigurationError
from wdlf.ifmr.base import InitialFinalMassRelation
from wdlf.ifmr.registry import get_ifmr
from wdlf.imf.base import DEFAULT_MASS_LOWER, DEFAULT_MASS_UPPER, InitialMassFunction
from wdlf.imf.registry import get_imf
from wdlf.io.tables import read_cooling_tracks, read_ifmr_table, read_lifetime_table, read_sfr_table
from wdlf.inversion.inverter import (
    DEFAULT_CHI2_THRESHOLD,
    DEFAULT_INITIAL_RATE,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MIN_ITERATIONS,
    DEFAULT_N_TIME_BINS,
    DEFAULT_T_MAX,
    DEFAULT_TRIALS_PER_BIN,
    WdlfInverter,
)
from wdlf.lifetime.base import PreWdLifetime
from wdlf.lifetime.registry import get_lifetime_model
from wdlf.sfr.base import StarFormationHistory
from wdlf.sfr.parametric import ConstantSfr, ExponentialDecaySfr, SingleBurstSfr
from wdlf.sfr.tabulated import TabulatedSfr
from wdlf.survey.volume import ExponentialDisk, SkyCell, SurveyVolume, UniformDensity
from wdlf.synthesis.binner import MagnitudeBins
from wdlf.synthesis.population import (
    DEFAULT_H_FRACTION,
    DEFAULT_HELIUM,
    DEFAULT_HELIUM_SIGMA,
    DEFAULT_MAGNITUDE_SIGMA,
    DEFAULT_METALLICITY,
    DEFAULT_METALLICITY_SIGMA,
    StellarPopulation,
)
from wdlf.synthesis.selection import SurveySelection, SurveyType
from wdlf.synthesis.solver import DEFAULT_CHUNK_SIZE, WdlfSolver

DEFAULT_SFR_RATE = 1.5e-12


class ImfConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(default="power_law", description="IMF registry tag")
    exponent: float | None = Field(
        default=None, description="Power-law exponent (power-law tags only; tag default if omitted)"
    )
    mass_lower: float = Field(default=DEFAULT_MASS_LOWER, gt=0.0, description="Lower mass limit [M_sun]")
    mass_upper: float = Field(default=DEFAULT_MASS_UPPER, gt=0.0, description="Upper mass limit [M_sun]")


class SfrConfig(BaseModel):
    """Star formation history.

    ``constant`` uses ``rate`` over [t_min, t_max]; ``exponential`` decays
    from ``rate`` at t_max with ``timescale`` (negative); ``burst`` runs at
    ``rate`` over [onset - duration, onset]; ``tabulated`` uses either
    ``edges`` and ``rates`` or a ``table_path`` of (centre, width, rate,
    error) rows.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["constant", "exponential", "burst", "tabulated"] = "constant"
    rate: float = Field(default=DEFAULT_SFR_RATE, ge=0.0, description="Rate [stars / yr / volume]")
    t_min: float = Field(default=0.0, ge=0.0, description="Youngest lookback time [yr]")
    t_max: float = Field(default=1.0e10, gt=0.0, description="Oldest lookback time [yr]")
    timescale: float | None = Field(default=None, lt=0.0, description="Exponential timescale [yr]")
    onset: float | None = Field(default=None, gt=0.0, description="Burst onset lookback time [yr]")
    duration: float | None = Field(default=None, gt=0.0, description="Burst duration [yr]")
    edges: list[float] | None = Field(default=None, description="Tabulated bin edges [yr]")
    rates: list[float] | None = Field(default=None, description="Tabulated bin rates")
    errors: list[float] | None = Field(default=None, description="Tabulated bin rate errors")
    table_path: str | None = Field(default=None, description="Tabulated SFR file")

    @model_validator(mode="after")
    def _check_kind_parameters(self) -> SfrConfig:
        if self.kind == "exponential" and self.timescale is None:
            raise ValueError("exponential SFR needs a timescale")
        if self.kind == "burst" and (self.onset is None or self.duration is None):
            raise ValueError("burst SFR needs onset and duration")
        if self.kind == "tabulated":
            has_inline = self.edges is not None and self.rates is not None
            if has_inline == (self.table_path is not None):
                raise ValueError("tabulated SFR needs either edges and rates or a table_path")
        return self


class IfmrConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(default="kalirai2008", description="IFMR registry tag")
    table_path: str | None = Field(default=None, description="Tabulated (m_i, m_f) file; overrides name")


class LifetimeConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(default="hurley2000", description="Lifetime model registry tag")
    table_path: str | None = Field(default=None, description="Tabulated (Z, Y, mass, lifetime) file; overrides name")


class CoolingTrackFile(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    filter_name: str
    atmosphere: AtmosphereType


class CoolingConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(default="mestel", description="Cooling model set tag")
    filter_name: str = Field(default=BOLOMETRIC_FILTER, description="Passband of synthetic magnitudes")
    tracks: list[CoolingTrackFile] = Field(
        default_factory=list, description="Tabulated cooling grids; replace the registry set when given"
    )


class PopulationConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    imf: ImfConfig = Field(default_factory=ImfConfig)
    sfr: SfrConfig = Field(default_factory=SfrConfig)
    ifmr: IfmrConfig = Field(default_factory=IfmrConfig)
    lifetime: LifetimeConfig = Field(default_factory=LifetimeConfig)
    cooling: CoolingConfig = Field(default_factory=CoolingConfig)
    h_fraction: float = Field(default=DEFAULT_H_FRACTION, ge=0.0, le=1.0)
    metallicity: float = Field(default=DEFAULT_METALLICITY, gt=0.0)
    metallicity_sigma: float = Field(default=DEFAULT_METALLICITY_SIGMA, ge=0.0)
    helium: float = Field(default=DEFAULT_HELIUM, gt=0.0)
    helium_sigma: float = Field(default=DEFAULT_HELIUM_SIGMA, ge=0.0)
    magnitude_sigma: float = Field(default=DEFAULT_MAGNITUDE_SIGMA, ge=0.0)


class BinConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    m_min: float = Field(default=0.0, description="Bright edge of the first bin [mag]")
    m_max: float = Field(default=20.0, description="Faint edge of the last bin [mag]")
    width: float = Field(default=0.25, gt=0.0, description="Bin width [mag]")
    per_magnitude: bool = Field(default=True, description="Divide densities by bin width")

    @model_validator(mode="after")
    def _check_range(self) -> BinConfig:
        if not self.m_max > self.m_min:
            raise ValueError("m_max must exceed m_min")
        return self


class SurveyConfig(BaseModel):
    """Survey selection applied after synthesis.

    A magnitude-limited survey integrates a single sky cell of
    ``solid_angle`` steradians at ``galactic_latitude`` radians out to
    ``max_distance`` parsecs, through an exponential disk when
    ``scale_height`` is set.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    survey_type: SurveyType = SurveyType.VOLUME_LIMITED
    apparent_limit: float | None = Field(default=None, description="Apparent magnitude limit")
    max_distance: float = Field(default=1000.0, gt=0.0, description="Survey depth [pc]")
    n_steps: int = Field(default=1000, ge=1)
    solid_angle: float = Field(default=4.0 * math.pi, gt=0.0, le=4.0 * math.pi)
    galactic_latitude: float = Field(default=0.5 * math.pi, ge=-0.5 * math.pi, le=0.5 * math.pi)
    scale_height: float | None = Field(default=None, gt=0.0, description="Disk scale height [pc]")

    @model_validator(mode="after")
    def _check_limit(self) -> SurveyConfig:
        if self.survey_type is SurveyType.MAGNITUDE_LIMITED and self.apparent_limit is None:
            raise ValueError("magnitude_limited survey needs apparent_limit")
        return self


class SynthesisConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    population: PopulationConfig = Field(default_factory=PopulationConfig)
    bins: BinConfig = Field(default_factory=BinConfig)
    survey: SurveyConfig = Field(default_factory=SurveyConfig)
    target_sample_size: int | None = Field(default=None, ge=1, description="White dwarfs to bin")
    max_trials: int | None = Field(default=None, ge=1, description="Monte Carlo trial limit")
    seed: int | None = Field(default=None, ge=0)
    n_workers: int = Field(default=1, ge=1)
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, ge=1)


class InversionConfig(BaseModel):
    """Inversion settings. The population's SFR block is ignored."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    population: PopulationConfig = Field(default_factory=PopulationConfig)
    n_time_bins: int = Field(default=DEFAULT_N_TIME_BINS, ge=1)
    t_max: float = Field(default=DEFAULT_T_MAX, gt=0.0, description="Oldest lookback time [yr]")
    time_edges: list[float] | None = Field(default=None, description="Custom lookback-time edges [yr]")
    trials_per_bin: int = Field(default=DEFAULT_TRIALS_PER_BIN, ge=1)
    initial_rate: float = Field(default=DEFAULT_INITIAL_RATE, ge=0.0)
    min_iterations: int = Field(default=DEFAULT_MIN_ITERATIONS, ge=1)
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1)
    chi2_threshold: float = Field(default=DEFAULT_CHI2_THRESHOLD, gt=0.0)
    seed: int | None = Field(default=None, ge=0)
    n_workers: int = Field(default=1, ge=1)
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, ge=1)

    @model_validator(mode="after")
    def _check_iterations(self) -> InversionConfig:
        if self.max_iterations < self.min_iterations:
            raise ValueError("max_iterations must be at least min_iterations")
        return self


# =============================================================================
# Builders
# =============================================================================


def build_imf(config: ImfConfig) -> InitialMassFunction:
    kwargs: dict[str, Any] = {"mass_lower": config.mass_lower, "mass_upper": config.mass_upper}
    if config.exponent is not None:
        kwargs["exponent"] = config.exponent
    return get_imf(config.name, **kwargs)


def build_sfr(config: SfrConfig) -> StarFormationHistory:
    if config.kind == "constant":
        return ConstantSfr(config.rate, t_min=config.t_min, t_max=config.t_max)
    if config.kind == "exponential":
        assert config.timescale is not None
        return ExponentialDecaySfr(config.rate, config.timescale, t_min=config.t_min, t_max=config.t_max)
    if config.kind == "burst":
        assert config.onset is not None and config.duration is not None
        return SingleBurstSfr(config.onset, config.duration, config.rate)
    if config.table_path is not None:
        return read_sfr_table(config.table_path)
    assert config.edges is not None and config.rates is not None
    return TabulatedSfr.from_edges(config.edges, config.rates, config.errors)


def build_ifmr(config: IfmrConfig) -> InitialFinalMassRelation:
    if config.table_path is not None:
        return read_ifmr_table(config.table_path, name=Path(config.table_path).stem)
    return get_ifmr(config.name)


def build_lifetime(config: LifetimeConfig) -> PreWdLifetime:
    if config.table_path is not None:
        return read_lifetime_table(config.table_path, name=Path(config.table_path).stem)
    return get_lifetime_model(config.name)


def build_cooling(config: CoolingConfig) -> WdCoolingModelSet:
    if not config.tracks:
        return get_cooling_model_set(config.name)
    return WdCoolingModelSet(
        config.name,
        [read_cooling_tracks(t.path, t.filter_name, t.atmosphere) for t in config.tracks],
    )


def build_population(config: PopulationConfig) -> StellarPopulation:
    """Construct every model the configuration names.

    Raises:
        ConfigurationError: On unknown registry tags or invalid parameters.
        UnavailableCoolingModelError: If the filter is missing for an
            atmosphere the population can produce.
    """
    return StellarPopulation(
        imf=build_imf(config.imf),
        sfr=build_sfr(config.sfr),
        ifmr=build_ifmr(config.ifmr),
        lifetime=build_lifetime(config.lifetime),
        cooling=build_cooling(config.cooling),
        filter_name=config.cooling.filter_name,
        h_fraction=config.h_fraction,
        metallicity=config.metallicity,
        metallicity_sigma=config.metallicity_sigma,
        helium=config.helium,
        helium_sigma=config.helium_sigma,
        magnitude_sigma=config.magnitude_sigma,
    )


def build_bins(config: BinConfig) -> MagnitudeBins:
    return MagnitudeBins.uniform(config.m_min, config.m_max, config.width)


def build_selection(config: SurveyConfig) -> SurveySelection:
    if config.survey_type is SurveyType.VOLUME_LIMITED:
        return SurveySelection()
    density = UniformDensity() if config.scale_height is None else ExponentialDisk(config.scale_height)
    volume = SurveyVolume.build(
        [SkyCell(config.solid_angle, config.galactic_latitude)],
        config.max_distance,
        n_steps=config.n_steps,
        density=density,
    )
    return SurveySelection(SurveyType.MAGNITUDE_LIMITED, volume, config.apparent_limit)


def build_solver(config: SynthesisConfig) -> WdlfSolver:
    return WdlfSolver(
        build_population(config.population),
        build_bins(config.bins),
        selection=build_selection(config.survey),
        per_magnitude=config.bins.per_magnitude,
        chunk_size=config.chunk_size,
        n_workers=config.n_workers,
    )


def build_inverter(config: InversionConfig) -> WdlfInverter:
    population = build_population(config.population)
    return WdlfInverter(
        population,
        config.time_edges,
        n_time_bins=config.n_time_bins,
        t_max=config.t_max,
        trials_per_bin=config.trials_per_bin,
        initial_rate=config.initial_rate,
        min_iterations=config.min_iterations,
        max_iterations=config.max_iterations,
        chi2_threshold=config.chi2_threshold,
        n_workers=config.n_workers,
        chunk_size=config.chunk_size,
    )


# =============================================================================
# Loading and flattening
# =============================================================================


def _load_json(path: str | Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration in {path} must be a JSON object")
    return data


def load_synthesis_config(path: str | Path) -> SynthesisConfig:
    try:
        return SynthesisConfig.model_validate(_load_json(path))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid synthesis configuration {path}: {exc}") from exc


def load_inversion_config(path: str | Path) -> InversionConfig:
    try:
        return InversionConfig.model_validate(_load_json(path))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid inversion configuration {path}: {exc}") from exc


def flatten_config(config: BaseModel) -> dict[str, str]:
    """Dotted ``key -> value`` strings for persisted table headers.

    Example:
        >>> flatten_config(SynthesisConfig())["population.imf.name"]
        'power_law'
    """
    out: dict[str, str] = {}

    def _walk(prefix: str, value: Any) -> None:
        if isinstance(value, dict):
            for key, item in value.items():
                _walk(f"{prefix}.{key}" if prefix else str(key), item)
        elif value is None:
            return
        elif isinstance(value, list):
            out[prefix] = json.dumps(value)
        else:
            out[prefix] = str(value)

    _walk("", config.model_dump(mode="json"))
    return out


__all__ = [
    "BinConfig",
    "CoolingConfig",
    "CoolingTrackFile",
    "DEFAULT_SFR_RATE",
    "IfmrConfig",
    "ImfConfig",
    "InversionConfig",
    "LifetimeConfig",
    "PopulationConfig",
    "SfrConfig",
    "SurveyConfig",
    "SynthesisConfig",
    "build_bins",
    "build_cooling",
    "build_ifmr",
    "build_imf",
    "build_inverter",
    "build_lifetime",
    "build_population",
    "build_selection",
    "build_sfr",
    "build_solver",
    "flatten_config",
    "load_inversion_config",
    "load_synthesis_config",
]
