# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Build deduplicated per-file reports from collected results."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from ..diagnostics.extraction import extract
from ..diagnostics.report import DiagnosisSet, RawReport, merge_diagnoses, recount_and_sort
from .packages import Outputs, PackagesOutputs
from .statistics import Statistics

LOGGER = logging.getLogger(__name__)


class PackageReport(BaseModel):
    """Reports and totals of one package."""

    pkg_name: str
    statistics: Statistics
    raw_reports: list[RawReport] = Field(default_factory=list)


def build_raw_reports(outputs: Outputs) -> list[RawReport]:
    """Extract, deduplicate and merge every diagnostic of one package.

    Args:
        outputs: Results of the package.

    Returns:
        list[RawReport]: Reports sorted by file and feature set.
    """

    diagnoses = DiagnosisSet()
    for output in outputs:
        resolve = output.resolve
        for raw in output.value.diagnostics:
            diagnoses.update(extract(resolve.checker, raw, features=resolve.features, pkg_dir=resolve.pkg_dir))
    reports: list[RawReport] = []
    merge_diagnoses(diagnoses, reports)
    LOGGER.debug("%s: %d diagnoses in %d files", outputs.pkg_name, len(diagnoses), len(reports))
    return recount_and_sort(reports)


def build_reports(packages_outputs: PackagesOutputs) -> list[PackageReport]:
    """Return the report of every package in name order."""

    packages_outputs.sort_by_name_and_checkers()
    reports: list[PackageReport] = []
    for outputs in packages_outputs:
        raw_reports = build_raw_reports(outputs)
        reports.append(
            PackageReport(
                pkg_name=outputs.pkg_name,
                statistics=Statistics.new(outputs, raw_reports),
                raw_reports=raw_reports,
            ),
        )
    return reports


__all__ = ["PackageReport", "build_raw_reports", "build_reports"]
