"""`wdlf models` command listing registered model tags."""

from __future__ import annotations

import click

from wdlf.cli.common_cli import dump_json_output, resolve_optional_output_path
from wdlf.cooling.registry import available_cooling_models, get_cooling_model_set
from wdlf.ifmr.registry import available_ifmrs
from wdlf.imf.registry import available_imfs
from wdlf.lifetime.registry import available_lifetime_models


@click.command("models")
@click.option(
    "-o",
    "--out",
    "output_path_arg",
    type=str,
    default="-",
    show_default=True,
    help="JSON output path; '-' writes to stdout.",
)
def models_command(output_path_arg: str) -> None:
    """List the IMF, IFMR, lifetime and cooling models available by tag."""
    cooling = {}
    for name in available_cooling_models():
        model_set = get_cooling_model_set(name)
        cooling[name] = {
            "atmospheres": [atm.value for atm in model_set.atmospheres],
            "usable_filters": model_set.usable_filters(),
        }
    payload = {
        "schema_version": "cli.models.v1",
        "imf": available_imfs(),
        "ifmr": available_ifmrs(),
        "lifetime": available_lifetime_models(),
        "cooling": cooling,
    }
    dump_json_output(payload, resolve_optional_output_path(output_path_arg))


__all__ = ["models_command"]
