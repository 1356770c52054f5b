# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Read the commit identity of a checked-out repository."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from ..errors import ExecutionError
from .packages import CommandRunner, default_runner

LOGGER = logging.getLogger(__name__)

UNKNOWN: Final[str] = "unknown"


@dataclass(frozen=True, slots=True)
class RepoIdentity:
    """Owner, name and checked-out revision of a repository."""

    user: str
    repo: str
    sha: str
    branch: str


def _git_value(argv: list[str], repo_root: Path, run: CommandRunner) -> str:
    try:
        output = run(argv, repo_root)
    except ExecutionError as exc:
        LOGGER.warning("`%s` failed in %s: %s", " ".join(argv), repo_root, exc)
        return UNKNOWN
    value = output.stdout.strip()
    if output.returncode != 0 or not value:
        LOGGER.warning("`%s` returned no value in %s", " ".join(argv), repo_root)
        return UNKNOWN
    return value


def repo_identity(repo_root: Path, user: str, repo: str, *, runner: CommandRunner | None = None) -> RepoIdentity:
    """Return the sha and branch of ``repo_root``, or ``unknown`` when git cannot tell."""

    run = runner or default_runner
    sha = _git_value(["git", "rev-parse", "HEAD"], repo_root, run)
    branch = _git_value(["git", "rev-parse", "--abbrev-ref", "HEAD"], repo_root, run)
    return RepoIdentity(user=user, repo=repo, sha=sha, branch=branch)


__all__ = ["RepoIdentity", "UNKNOWN", "repo_identity"]
