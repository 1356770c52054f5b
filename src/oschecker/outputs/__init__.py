# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Group invocation results per package and roll them up into reports."""

from __future__ import annotations

from .packages import Output, Outputs, PackagesOutputs, cargo_value_for
from .reports import PackageReport, build_raw_reports, build_reports
from .statistics import Statistics

__all__ = [
    "Output",
    "Outputs",
    "PackageReport",
    "PackagesOutputs",
    "Statistics",
    "build_raw_reports",
    "build_reports",
    "cargo_value_for",
]
