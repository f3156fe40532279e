"""Readers and writers for flat text tables."""

from __future__ import annotations

from wdlf.io.tables import (
    INVERSION_COLUMNS,
    MODEL_COLUMNS,
    SFR_COLUMNS,
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
    read_magnitude_bins,
    read_model_wdlf,
    read_observed_wdlf,
    read_sfr_table,
    sfr_from_metadata,
    write_inversion_result,
    write_model_wdlf,
    write_sfr_table,
)

__all__ = [
    "INVERSION_COLUMNS",
    "MODEL_COLUMNS",
    "SFR_COLUMNS",
    "format_inversion_result",
    "format_model_wdlf",
    "format_sfr_table",
    "parse_magnitude_bins",
    "parse_model_wdlf",
    "parse_observed_wdlf",
    "parse_sfr_table",
    "read_cooling_tracks",
    "read_ifmr_table",
    "read_lifetime_table",
    "read_magnitude_bins",
    "read_model_wdlf",
    "read_observed_wdlf",
    "read_sfr_table",
    "sfr_from_metadata",
    "write_inversion_result",
    "write_model_wdlf",
    "write_sfr_table",
]
