# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Run resolved checker invocations and collect their reports and errors."""

from __future__ import annotations

from .errors import ErrorStage, RunError, RunErrors
from .runner import (
    CommandExecutor,
    RepoReport,
    RunContext,
    default_parallel_jobs,
    execute_resolve,
    repo_target_detector,
    run_repo,
    run_repos,
)

__all__ = [
    "CommandExecutor",
    "ErrorStage",
    "RepoReport",
    "RunContext",
    "RunError",
    "RunErrors",
    "default_parallel_jobs",
    "execute_resolve",
    "repo_target_detector",
    "run_repo",
    "run_repos",
]
