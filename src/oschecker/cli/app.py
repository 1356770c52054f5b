# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""CLI application entry point wiring commands and shared services."""

from __future__ import annotations

import typer

from ..logging import configure_logging
from .config_cmd import config_command, schema_command
from .run_cmd import resolve_command, rewrite_command, run_command

app = typer.Typer(
    name="oschecker",
    help="Run Rust static checkers over many repositories and report their diagnostics.",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def _root(
    debug: bool = typer.Option(False, "--debug", help="Log debug records to stderr."),
) -> None:
    configure_logging(debug=debug)


app.command("config")(config_command)
app.command("schema")(schema_command)
app.command("resolve")(resolve_command)
app.command("run")(run_command)
app.command("rewrite")(rewrite_command)


def main() -> None:
    """Console script entry point."""

    app()


__all__ = ["app", "main"]
