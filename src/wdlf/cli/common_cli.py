"""Shared helpers for click-based `wdlf` commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from wdlf.errors import ErrorType, error_type_for, make_error

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_RUNTIME_ERROR = 2


class WdlfCliError(click.ClickException):
    """Click exception with explicit exit-code control."""

    def __init__(self, message: str, *, exit_code: int = EXIT_INPUT_ERROR) -> None:
        super().__init__(message)
        self.exit_code = int(exit_code)


def cli_error_from(exc: Exception) -> WdlfCliError:
    """Map a library exception onto an exit code.

    Configuration, input and file-access problems exit with
    ``EXIT_INPUT_ERROR``; anything else is a runtime failure.
    """
    if isinstance(exc, OSError):
        return WdlfCliError(f"Cannot read input: {exc}", exit_code=EXIT_INPUT_ERROR)
    error_type = error_type_for(exc)
    exit_code = EXIT_RUNTIME_ERROR if error_type is ErrorType.INTERNAL_ERROR else EXIT_INPUT_ERROR
    return WdlfCliError(f"{error_type.value}: {exc}", exit_code=exit_code)


def error_payload(exc: Exception) -> dict[str, Any]:
    return make_error(error_type_for(exc), str(exc), exception=type(exc).__name__).model_dump(mode="json")


def dump_json_output(payload: dict[str, Any], out_path: Path | None) -> None:
    """Write JSON payload to file or stdout."""
    text = json.dumps(payload, sort_keys=True, indent=2)
    if out_path is None:
        click.echo(text)
        return
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text + "\n", encoding="utf-8")


def dump_text_output(text: str, out_path: Path | None) -> None:
    """Write a text table to file or stdout."""
    if out_path is None:
        click.echo(text, nl=False)
        return
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text, encoding="utf-8")


def resolve_optional_output_path(output_arg: str | None) -> Path | None:
    """Map '-', empty, or None to stdout; otherwise return filesystem path."""
    if output_arg is None:
        return None
    value = str(output_arg).strip()
    if value in {"", "-"}:
        return None
    return Path(value)


def emit_progress(command: str, stage: str, **fields: Any) -> None:
    """One progress line on stderr, keeping stdout clean for results."""
    extra = " ".join(f"{key}={value}" for key, value in fields.items())
    click.echo(f"[{command}] {stage}" + (f" {extra}" if extra else ""), err=True)


__all__ = [
    "EXIT_INPUT_ERROR",
    "EXIT_OK",
    "EXIT_RUNTIME_ERROR",
    "WdlfCliError",
    "cli_error_from",
    "dump_json_output",
    "dump_text_output",
    "emit_progress",
    "error_payload",
    "resolve_optional_output_path",
]
