# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration inspection commands."""

from __future__ import annotations

import json
from pathlib import Path

import typer

from ..config.loader import config_json_schema, dump_configs
from ..logging import ok
from .shared import CONFIG_OPTION_HELP, load_configs_or_exit, write_output


def config_command(
    config: list[Path] = typer.Option([], "--config", "-c", help=CONFIG_OPTION_HELP),
    merged: bool = typer.Option(False, "--merged", help="Print the merged configuration as JSON."),
    list_repos: bool = typer.Option(False, "--list-repos", help="Print configured repositories, one per line."),
    out: Path | None = typer.Option(None, "--out", help="Write the merged configuration to this file."),
    emoji: bool = typer.Option(True, "--emoji/--no-emoji", help="Toggle emoji in messages."),
) -> None:
    """Validate configuration files and optionally print their merged form."""

    configs = load_configs_or_exit(config, use_emoji=emoji)
    if list_repos:
        for entry in configs:
            typer.echo(entry.repo)
    if merged or out is not None:
        write_output(dump_configs(configs), out=out, use_emoji=emoji)
    if not (list_repos or merged or out is not None):
        ok(f"{len(configs)} repositories configured", use_emoji=emoji)


def schema_command(
    out: Path | None = typer.Option(None, "--out", help="Write the JSON schema to this file."),
    emoji: bool = typer.Option(True, "--emoji/--no-emoji", help="Toggle emoji in messages."),
) -> None:
    """Emit the JSON schema of configuration files."""

    write_output(json.dumps(config_json_schema(), indent=2), out=out, use_emoji=emoji)


__all__ = ["config_command", "schema_command"]
