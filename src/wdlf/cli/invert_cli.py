"""`wdlf invert` command for star formation history recovery."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import click

from wdlf.cli.common_cli import (
    WdlfCliError,
    cli_error_from,
    dump_json_output,
    dump_text_output,
    emit_progress,
    error_payload,
    resolve_optional_output_path,
)
from wdlf.config import InversionConfig, build_inverter, flatten_config, load_inversion_config
from wdlf.inversion.inverter import InversionResult, SolvedRate
from wdlf.io.tables import format_inversion_result, read_observed_wdlf

SCHEMA_VERSION = "cli.invert.v1"


def _result_payload(config: InversionConfig, result: InversionResult) -> dict[str, Any]:
    bins: list[dict[str, Any]] = []
    for b in result.time_bins:
        entry: dict[str, Any] = {
            "t_min": b.t_min,
            "t_max": b.t_max,
            "wd_fraction": b.wd_fraction,
        }
        if isinstance(b.estimate, SolvedRate):
            entry.update(status="solved", rate=b.estimate.rate, rate_std=b.estimate.rate_std)
        else:
            entry.update(status="unconstrained", reason=b.estimate.reason)
        bins.append(entry)
    return {
        "schema_version": SCHEMA_VERSION,
        "time_bins": bins,
        "fit": {
            "chi2": result.chi2,
            "chi2_history": list(result.chi2_history),
            "n_iterations": result.n_iterations,
            "converged": result.converged,
            "magnitudes": result.observed.centres.tolist(),
            "observed_density": result.observed.density.tolist(),
            "fitted_density": result.fitted_density.tolist(),
        },
        "provenance": {"config": config.model_dump(mode="json")},
    }


@click.command("invert")
@click.option(
    "--observed",
    "observed_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Observed WDLF table: centre, width, density, error per row.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Inversion configuration JSON; defaults apply when omitted.",
)
@click.option("--seed", type=click.IntRange(min=0), default=None, help="Seed for the response kernel.")
@click.option(
    "-o",
    "--out",
    "output_path_arg",
    type=str,
    default="-",
    show_default=True,
    help="Output path; '-' writes to stdout.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit a JSON payload instead of a table.")
def invert_command(
    observed_path: Path,
    config_path: Path | None,
    seed: int | None,
    output_path_arg: str,
    as_json: bool,
) -> None:
    """Recover a star formation history from an observed luminosity function."""
    out_path = resolve_optional_output_path(output_path_arg)
    try:
        config = load_inversion_config(config_path) if config_path is not None else InversionConfig()
        if seed is not None:
            config = InversionConfig.model_validate({**config.model_dump(), "seed": seed})
        observed = read_observed_wdlf(observed_path)
        inverter = build_inverter(config)
        emit_progress("invert", "start", magnitude_bins=len(observed), time_bins=len(inverter.time_edges) - 1)
        result = inverter.invert(observed, seed=config.seed)
    except WdlfCliError:
        raise
    except Exception as exc:
        if as_json:
            dump_json_output({"schema_version": SCHEMA_VERSION, "error": error_payload(exc)}, out_path)
        raise cli_error_from(exc) from exc

    emit_progress(
        "invert",
        "completed",
        iterations=result.n_iterations,
        unconstrained=len(result.unconstrained_bins()),
    )
    if as_json:
        dump_json_output(_result_payload(config, result), out_path)
        return
    header = {f"config.{key}": value for key, value in flatten_config(config).items()}
    header["observed"] = str(observed_path)
    dump_text_output(format_inversion_result(result, header), out_path)


__all__ = ["invert_command"]
