"""Entry point for the `wdlf` console script."""

from __future__ import annotations

import logging

import click

from wdlf.cli.invert_cli import invert_command
from wdlf.cli.models_cli import models_command
from wdlf.cli.synthesize_cli import synthesize_command


@click.group()
@click.version_option(package_name="wdlf-toolkit")
@click.option("-v", "--verbose", count=True, help="-v for INFO logging, -vv for DEBUG.")
def cli(verbose: int) -> None:
    """White dwarf luminosity function synthesis and inversion."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG if verbose > 1 else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


cli.add_command(synthesize_command)
cli.add_command(invert_command)
cli.add_command(models_command)


def main() -> None:
    cli()


__all__ = ["cli", "main"]
