"""`wdlf synthesize` command for forward Monte Carlo synthesis."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import click

from wdlf.cli.common_cli import (
    EXIT_INPUT_ERROR,
    WdlfCliError,
    cli_error_from,
    dump_json_output,
    dump_text_output,
    emit_progress,
    error_payload,
    resolve_optional_output_path,
)
from wdlf.config import SynthesisConfig, build_solver, flatten_config, load_synthesis_config
from wdlf.io.tables import MODEL_COLUMNS, format_model_wdlf
from wdlf.synthesis.solver import SynthesisProgress, SynthesisResult

SCHEMA_VERSION = "cli.synthesize.v1"


def _apply_overrides(
    config: SynthesisConfig,
    *,
    n_wds: int | None,
    max_trials: int | None,
    seed: int | None,
    workers: int | None,
) -> SynthesisConfig:
    overrides: dict[str, Any] = {}
    if n_wds is not None:
        overrides["target_sample_size"] = n_wds
    if max_trials is not None:
        overrides["max_trials"] = max_trials
    if seed is not None:
        overrides["seed"] = seed
    if workers is not None:
        overrides["n_workers"] = workers
    if not overrides:
        return config
    return SynthesisConfig.model_validate({**config.model_dump(), **overrides})


def _result_payload(config: SynthesisConfig, result: SynthesisResult) -> dict[str, Any]:
    wdlf = result.wdlf
    return {
        "schema_version": SCHEMA_VERSION,
        "wdlf": {
            "columns": list(MODEL_COLUMNS),
            "rows": [[*row, int(count)] for row, count in zip(wdlf.rows(), wdlf.counts.tolist())],
            "per_magnitude": wdlf.per_magnitude,
            "total_number": wdlf.total_number(),
        },
        "accounting": {
            "n_trials": result.n_trials,
            "n_binned": result.n_binned,
            "n_white_dwarfs": result.n_white_dwarfs,
            "n_discarded": result.n_discarded,
            "n_extrapolated": result.n_extrapolated,
            "fate_counts": dict(result.fate_counts),
            "normalisation": result.normalisation,
        },
        "provenance": {
            "config": config.model_dump(mode="json"),
            "metadata": dict(wdlf.metadata),
        },
    }


@click.command("synthesize")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Synthesis configuration JSON; defaults apply when omitted.",
)
@click.option("--n-wds", type=click.IntRange(min=1), default=None, help="White dwarfs to collect.")
@click.option("--max-trials", type=click.IntRange(min=1), default=None, help="Monte Carlo trial budget.")
@click.option("--seed", type=click.IntRange(min=0), default=None, help="Root random seed.")
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Worker threads.")
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
def synthesize_command(
    config_path: Path | None,
    n_wds: int | None,
    max_trials: int | None,
    seed: int | None,
    workers: int | None,
    output_path_arg: str,
    as_json: bool,
) -> None:
    """Synthesise a model white dwarf luminosity function."""
    out_path = resolve_optional_output_path(output_path_arg)

    def _report(progress: SynthesisProgress) -> None:
        emit_progress(
            "synthesize",
            "progress",
            trials=progress.trials,
            max_trials=progress.max_trials,
            binned=progress.binned,
        )

    try:
        config = load_synthesis_config(config_path) if config_path is not None else SynthesisConfig()
        config = _apply_overrides(config, n_wds=n_wds, max_trials=max_trials, seed=seed, workers=workers)
        if config.target_sample_size is None and config.max_trials is None:
            raise WdlfCliError(
                "Set --n-wds or --max-trials (or target_sample_size / max_trials in the config).",
                exit_code=EXIT_INPUT_ERROR,
            )
        solver = build_solver(config)
        emit_progress("synthesize", "start")
        result = solver.synthesize(
            config.target_sample_size,
            max_trials=config.max_trials,
            seed=config.seed,
            progress=_report,
        )
    except WdlfCliError:
        raise
    except Exception as exc:
        if as_json:
            dump_json_output({"schema_version": SCHEMA_VERSION, "error": error_payload(exc)}, out_path)
        raise cli_error_from(exc) from exc

    emit_progress("synthesize", "completed", trials=result.n_trials, binned=result.n_binned)
    if as_json:
        dump_json_output(_result_payload(config, result), out_path)
        return
    header = {
        **flatten_config(config),
        "n_trials": str(result.n_trials),
        "n_binned": str(result.n_binned),
        "normalisation": f"{result.normalisation:.10g}",
    }
    dump_text_output(format_model_wdlf(result.wdlf, header), out_path)


__all__ = ["synthesize_command"]
