# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Commands resolving, running and post-processing checker invocations."""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.table import Table

from ..cache.store import CacheStore
from ..config.resolver import resolve_repo
from ..diagnostics.refine import refine_reports
from ..errors import CacheOpenError, ConfigError, ExecutionError
from ..layout.packages import discover_packages
from ..logging import detect_tty, fail, get_console, info, ok, section, warn
from ..orchestration.runner import RepoReport, repo_target_detector, run_repos
from .shared import CONFIG_OPTION_HELP, load_configs_or_exit


def resolve_command(
    config: list[Path] = typer.Option([], "--config", "-c", help=CONFIG_OPTION_HELP),
    repos_dir: Path = typer.Option(Path("repos"), "--repos-dir", help="Directory holding user/repo checkouts."),
    emoji: bool = typer.Option(True, "--emoji/--no-emoji", help="Toggle emoji in messages."),
) -> None:
    """Print the invocations every configured repository would run."""

    use_color = detect_tty()
    console = get_console(color=use_color, emoji=emoji)
    failed = False
    for entry in load_configs_or_exit(config, use_emoji=emoji):
        user, _, name = entry.repo.partition("/")
        repo_root = repos_dir / user / name
        section(entry.repo, use_color=use_color)
        try:
            packages = discover_packages(repo_root)
            resolves = resolve_repo(entry.repo, entry.config, packages, detect_targets=repo_target_detector(repo_root))
        except (ConfigError, ExecutionError) as exc:
            fail(str(exc), use_emoji=emoji)
            failed = True
            continue
        table = Table("package", "checker", "target", "toolchain", "command")
        for resolve in resolves:
            table.add_row(resolve.pkg_name, resolve.checker.cli_name, resolve.target, resolve.toolchain, resolve.cmd)
        console.print(table)
    if failed:
        raise typer.Exit(code=1)


def run_command(
    config: list[Path] = typer.Option([], "--config", "-c", help=CONFIG_OPTION_HELP),
    repos_dir: Path = typer.Option(Path("repos"), "--repos-dir", help="Directory holding user/repo checkouts."),
    db: Path = typer.Option(Path("cache.sqlite3"), "--db", help="Cache database file."),
    emit: Path = typer.Option(Path("reports"), "--emit", help="Directory receiving user/repo.json reports."),
    jobs: int | None = typer.Option(None, "--jobs", "-j", min=1, help="Parallel checker processes per repository."),
    timeout: float | None = typer.Option(None, "--timeout", min=0, help="Seconds before a checker is killed."),
    emoji: bool = typer.Option(True, "--emoji/--no-emoji", help="Toggle emoji in messages."),
) -> None:
    """Run the checkers of every configured repository and write reports."""

    configs = load_configs_or_exit(config, use_emoji=emoji)
    try:
        store = CacheStore.open(db)
    except CacheOpenError as exc:
        fail(str(exc), use_emoji=emoji)
        raise typer.Exit(code=1) from exc
    with store:
        reports, errors = run_repos(configs, repos_dir, store, jobs=jobs, timeout=timeout)
    for report in reports:
        path = write_report(report, emit)
        info(f"{report.repo}: {len(report.packages)} packages -> {path}", use_emoji=emoji)
    if errors:
        section(f"{len(errors)} errors", use_color=detect_tty())
        for line in errors.summary_lines():
            warn(line, use_emoji=emoji)
        raise typer.Exit(code=1)
    ok(f"checked {len(reports)} repositories", use_emoji=emoji)


def write_report(report: RepoReport, emit: Path) -> Path:
    """Write ``report`` as ``emit/user/repo.json`` and return the path."""

    path = emit / f"{report.repo}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    return path


def rewrite_command(
    reports: list[Path] = typer.Argument(..., help="Report files written by `run`."),
    emit: Path | None = typer.Option(None, "--emit", help="Output directory; files are rewritten in place without it."),
    emoji: bool = typer.Option(True, "--emoji/--no-emoji", help="Toggle emoji in messages."),
) -> None:
    """Attribute lockbud and AtomVChecker findings of stored reports to their files."""

    failed = False
    for path in reports:
        try:
            report = RepoReport.model_validate_json(path.read_bytes())
        except (OSError, ValidationError) as exc:
            fail(f"{path}: {exc}", use_emoji=emoji)
            failed = True
            continue
        for package in report.packages:
            refine_reports(package.raw_reports)
        target = path if emit is None else emit / path.name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        ok(f"rewrote {path} -> {target}", use_emoji=emoji)
    if failed:
        raise typer.Exit(code=1)


__all__ = ["resolve_command", "rewrite_command", "run_command", "write_report"]
