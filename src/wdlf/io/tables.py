"""Flat, tab-separated text tables.

Every table is a sequence of whitespace-separated numeric rows. Lines that
are blank or start with ``#`` are comments. Persisted model luminosity
functions carry their run configuration as ``# key = value`` header lines
followed by a ``#``-prefixed column header, so one file is enough to
reproduce the run.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from wdlf.cooling.grid import AtmosphereType, WdCoolingModelGrid
from wdlf.errors import ObservedWdlfError, TableParseError
from wdlf.ifmr.tabulated import TabulatedIfmr
from wdlf.inversion.observed import ObservedWdlf
from wdlf.lifetime.tabulated import TabulatedPreWdLifetime
from wdlf.sfr.tabulated import TabulatedSfr
from wdlf.synthesis.binner import COLUMNS, MagnitudeBins, ModelWdlf

if TYPE_CHECKING:
    from wdlf.inversion.inverter import InversionResult

logger = logging.getLogger(__name__)

MODEL_COLUMNS = (*COLUMNS, "counts")
SFR_COLUMNS = ("t_centre", "t_width", "rate", "rate_std")
INVERSION_COLUMNS = ("t_centre", "t_width", "rate", "rate_std", "wd_fraction", "status")
UNCONSTRAINED_VALUE = "-"


def _data_lines(text: str) -> Iterator[tuple[int, list[str]]]:
    """Yield (line_number, fields) for every non-comment line."""
    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        yield line_number, line.split()


def _parse_floats(
    text: str,
    n_columns: int,
    label: str,
) -> list[tuple[float, ...]]:
    rows: list[tuple[float, ...]] = []
    for line_number, fields in _data_lines(text):
        if len(fields) != n_columns:
            raise TableParseError(
                f"{label} line {line_number}: expected {n_columns} columns, got {len(fields)}"
            )
        try:
            rows.append(tuple(float(f) for f in fields))
        except ValueError as exc:
            raise TableParseError(f"{label} line {line_number}: {exc}") from exc
    if not rows:
        raise TableParseError(f"{label} contains no data rows")
    return rows


def _read_text(path: str | Path) -> str:
    with open(path) as f:
        return f.read()


def _write_text(path: str | Path, text: str) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w") as f:
        f.write(text)


def _format_row(values: Iterable[object]) -> str:
    parts = []
    for v in values:
        if isinstance(v, float):
            parts.append(repr(float(v)))
        else:
            parts.append(str(v))
    return "\t".join(parts)


# =============================================================================
# Model WDLF
# =============================================================================


def format_model_wdlf(wdlf: ModelWdlf, header: Mapping[str, str] | None = None) -> str:
    """Render a model WDLF with its metadata as a header block."""
    meta = {**wdlf.metadata, **(header or {})}
    meta["per_magnitude"] = str(wdlf.per_magnitude).lower()
    lines = ["# White dwarf luminosity function"]
    lines.extend(f"# {key} = {value}" for key, value in sorted(meta.items()))
    lines.append("# " + "\t".join(MODEL_COLUMNS))
    for row, count in zip(wdlf.rows(), wdlf.counts.tolist()):
        lines.append(_format_row([*row, int(count)]))
    return "\n".join(lines) + "\n"


def write_model_wdlf(
    wdlf: ModelWdlf,
    path: str | Path,
    header: Mapping[str, str] | None = None,
) -> None:
    _write_text(path, format_model_wdlf(wdlf, header))
    logger.info("Wrote model WDLF with %d bins to %s", len(wdlf), path)


def parse_model_wdlf(text: str) -> ModelWdlf:
    """Inverse of :func:`format_model_wdlf`."""
    metadata: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("#") and "=" in line:
            key, _, value = line.lstrip("#").partition("=")
            metadata[key.strip()] = value.strip()
    rows = _parse_floats(text, len(MODEL_COLUMNS), "Model WDLF")
    arr = np.asarray(rows, dtype=np.float64)
    per_magnitude = metadata.pop("per_magnitude", "true") == "true"
    columns = {name: arr[:, i].copy() for i, name in enumerate(COLUMNS)}
    return ModelWdlf(
        **columns,
        counts=arr[:, len(COLUMNS)].astype(np.int64),
        per_magnitude=per_magnitude,
        metadata=metadata,
    )


def read_model_wdlf(path: str | Path) -> ModelWdlf:
    return parse_model_wdlf(_read_text(path))


# =============================================================================
# Observed WDLF
# =============================================================================


def parse_observed_wdlf(text: str) -> ObservedWdlf:
    """Parse (centre, width, density, density_std) rows.

    Raises:
        ObservedWdlfError: On malformed rows, non-increasing centres,
            overlapping bins or negative values. Row-level problems name the
            offending line.
    """
    rows: list[tuple[float, float, float, float]] = []
    for line_number, fields in _data_lines(text):
        if len(fields) != 4:
            raise ObservedWdlfError(
                f"expected 4 columns (centre, width, density, error), got {len(fields)}",
                line_number=line_number,
            )
        try:
            centre, width, density, error = (float(f) for f in fields)
        except ValueError as exc:
            raise ObservedWdlfError(str(exc), line_number=line_number) from exc
        if density < 0.0 or error < 0.0:
            raise ObservedWdlfError("density and error must be non-negative", line_number=line_number)
        if width <= 0.0:
            raise ObservedWdlfError("bin width must be positive", line_number=line_number)
        if rows:
            prev_centre, prev_width = rows[-1][0], rows[-1][1]
            if centre <= prev_centre:
                raise ObservedWdlfError("bin centres must be strictly increasing", line_number=line_number)
            if centre - 0.5 * width < prev_centre + 0.5 * prev_width - 1e-9 * max(width, prev_width):
                raise ObservedWdlfError("bin overlaps the previous bin", line_number=line_number)
        rows.append((centre, width, density, error))
    if not rows:
        raise ObservedWdlfError("observed WDLF contains no bins")
    return ObservedWdlf.from_rows(rows)


def parse_magnitude_bins(text: str) -> MagnitudeBins:
    """Parse bins-only (centre, width) rows."""
    centres: list[float] = []
    widths: list[float] = []
    for line_number, fields in _data_lines(text):
        if len(fields) != 2:
            raise ObservedWdlfError(
                f"expected 2 columns (centre, width), got {len(fields)}",
                line_number=line_number,
            )
        try:
            centre, width = float(fields[0]), float(fields[1])
        except ValueError as exc:
            raise ObservedWdlfError(str(exc), line_number=line_number) from exc
        if centres and centre <= centres[-1]:
            raise ObservedWdlfError("bin centres must be strictly increasing", line_number=line_number)
        centres.append(centre)
        widths.append(width)
    if not centres:
        raise ObservedWdlfError("bin table contains no bins")
    try:
        return MagnitudeBins(np.asarray(centres), np.asarray(widths))
    except ValueError as exc:
        raise ObservedWdlfError(str(exc)) from exc


def read_observed_wdlf(path: str | Path) -> ObservedWdlf:
    return parse_observed_wdlf(_read_text(path))


def read_magnitude_bins(path: str | Path) -> MagnitudeBins:
    return parse_magnitude_bins(_read_text(path))


# =============================================================================
# Model tables
# =============================================================================


def parse_sfr_table(text: str) -> TabulatedSfr:
    """Parse (centre, width, rate, error) rows into a TabulatedSfr."""
    rows = _parse_floats(text, 4, "SFR table")
    arr = np.asarray(rows, dtype=np.float64)
    try:
        return TabulatedSfr(arr[:, 0], arr[:, 1], arr[:, 2], arr[:, 3])
    except ValueError as exc:
        raise TableParseError(f"SFR table: {exc}") from exc


def read_sfr_table(path: str | Path) -> TabulatedSfr:
    return parse_sfr_table(_read_text(path))


def format_sfr_table(sfr: TabulatedSfr) -> str:
    lines = ["# " + "\t".join(SFR_COLUMNS)]
    for c, w, r, e in zip(sfr.centres, sfr.widths, sfr.rates, sfr.errors):
        lines.append(_format_row([float(c), float(w), float(r), float(e)]))
    return "\n".join(lines) + "\n"


def write_sfr_table(sfr: TabulatedSfr, path: str | Path) -> None:
    _write_text(path, format_sfr_table(sfr))


def sfr_from_metadata(metadata: Mapping[str, str]) -> TabulatedSfr:
    """Rebuild the tabulated SFR recorded in a model WDLF header.

    Raises:
        TableParseError: If the header has no ``sfr_table`` entry or it is
            not a list of (centre, width, rate, error) rows.
    """
    try:
        raw = metadata["sfr_table"]
    except KeyError as exc:
        raise TableParseError("Header carries no sfr_table entry") from exc
    try:
        rows = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise TableParseError(f"sfr_table is not valid JSON: {exc}") from exc
    if not isinstance(rows, list) or not rows or any(
        not isinstance(row, list) or len(row) != 4 for row in rows
    ):
        raise TableParseError("sfr_table must be a non-empty list of 4-value rows")
    arr = np.asarray(rows, dtype=np.float64)
    try:
        return TabulatedSfr(arr[:, 0], arr[:, 1], arr[:, 2], arr[:, 3])
    except ValueError as exc:
        raise TableParseError(f"sfr_table: {exc}") from exc


def read_cooling_tracks(
    path: str | Path,
    filter_name: str,
    atmosphere: AtmosphereType | str,
) -> WdCoolingModelGrid:
    """Load (mass, cooling_time, magnitude) rows as one cooling grid."""
    rows = _parse_floats(_read_text(path), 3, f"Cooling table {path}")
    try:
        return WdCoolingModelGrid.from_rows(rows, filter_name, AtmosphereType(atmosphere))  # type: ignore[arg-type]
    except ValueError as exc:
        raise TableParseError(f"Cooling table {path}: {exc}") from exc


def read_lifetime_table(path: str | Path, name: str = "tabulated") -> TabulatedPreWdLifetime:
    """Load (Z, Y, mass, lifetime) rows."""
    rows = _parse_floats(_read_text(path), 4, f"Lifetime table {path}")
    try:
        return TabulatedPreWdLifetime.from_rows(rows, name=name)  # type: ignore[arg-type]
    except ValueError as exc:
        raise TableParseError(f"Lifetime table {path}: {exc}") from exc


def read_ifmr_table(path: str | Path, name: str = "tabulated") -> TabulatedIfmr:
    """Load (initial mass, final mass) rows."""
    rows = _parse_floats(_read_text(path), 2, f"IFMR table {path}")
    arr = np.asarray(rows, dtype=np.float64)
    try:
        return TabulatedIfmr(arr[:, 0], arr[:, 1], name=name)
    except ValueError as exc:
        raise TableParseError(f"IFMR table {path}: {exc}") from exc


# =============================================================================
# Inversion output
# =============================================================================


def format_inversion_result(result: InversionResult, header: Mapping[str, str] | None = None) -> str:
    """One row per lookback-time bin; unconstrained bins carry ``-`` rates."""
    lines = ["# Recovered star formation history"]
    meta = {
        "chi2": f"{result.chi2:.6g}",
        "iterations": str(result.n_iterations),
        "converged": str(result.converged).lower(),
        **(header or {}),
    }
    lines.extend(f"# {key} = {value}" for key, value in sorted(meta.items()))
    lines.append("# " + "\t".join(INVERSION_COLUMNS))
    for b, (centre, width, rate, rate_std, status) in zip(result.time_bins, result.to_rows()):
        values: list[object] = [centre, width]
        values.append(UNCONSTRAINED_VALUE if rate is None else rate)
        values.append(UNCONSTRAINED_VALUE if rate_std is None else rate_std)
        values.extend([b.wd_fraction, status])
        lines.append(_format_row(values))
    return "\n".join(lines) + "\n"


def write_inversion_result(
    result: InversionResult,
    path: str | Path,
    header: Mapping[str, str] | None = None,
) -> None:
    _write_text(path, format_inversion_result(result, header))
    logger.info("Wrote %d lookback-time bins to %s", len(result.time_bins), path)


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
