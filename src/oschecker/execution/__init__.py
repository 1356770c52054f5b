# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Expose process execution helpers used to run checkers."""

from __future__ import annotations

from .process import TIMEOUT_RETURNCODE, ProcessOutput, ProcessRegistry, run_command

__all__ = ["ProcessOutput", "ProcessRegistry", "TIMEOUT_RETURNCODE", "run_command"]
