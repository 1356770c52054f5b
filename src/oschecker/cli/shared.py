# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Helpers shared by CLI commands."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import typer

from ..config.loader import Config, load_config_files
from ..errors import ConfigError
from ..logging import fail, ok

CONFIG_OPTION_HELP = "Configuration file (YAML or JSON); repeat to layer files, later ones win."


def load_configs_or_exit(paths: Sequence[Path], *, use_emoji: bool) -> list[Config]:
    """Load and merge ``paths``, turning configuration errors into an exit."""

    if not paths:
        fail("at least one --config file is required", use_emoji=use_emoji)
        raise typer.Exit(code=2)
    try:
        return load_config_files(paths)
    except ConfigError as exc:
        fail(str(exc), use_emoji=use_emoji)
        raise typer.Exit(code=1) from exc


def write_output(content: str, *, out: Path | None, use_emoji: bool) -> None:
    """Write ``content`` to ``out``, or to stdout when ``out`` is ``None``."""

    if out is None:
        typer.echo(content)
        return
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(content + "\n", encoding="utf-8")
    ok(f"wrote {out}", use_emoji=use_emoji)


__all__ = ["CONFIG_OPTION_HELP", "load_configs_or_exit", "write_output"]
