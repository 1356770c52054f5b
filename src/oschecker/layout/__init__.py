# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Inspect checked-out repositories: packages, targets and git identity."""

from __future__ import annotations

from .git import RepoIdentity, repo_identity
from .packages import CommandRunner, Package, Packages, default_runner, discover_packages, walk_files
from .targets import DetectedTarget, RustToolchain, TargetDetection, TargetSource, detect_targets

__all__ = [
    "CommandRunner",
    "DetectedTarget",
    "Package",
    "Packages",
    "RepoIdentity",
    "RustToolchain",
    "TargetDetection",
    "TargetSource",
    "default_runner",
    "detect_targets",
    "discover_packages",
    "repo_identity",
    "walk_files",
]
