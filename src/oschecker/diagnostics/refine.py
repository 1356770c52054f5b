# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Re-attribute segmented diagnostics of stored reports to the files they name."""

from __future__ import annotations

import logging

from .extraction import checker_for_kind, extract
from .report import DiagnosisSet, RawReport, merge_diagnoses, recount_and_sort

LOGGER = logging.getLogger(__name__)


def refine_reports(reports: list[RawReport]) -> list[RawReport]:
    """Split lockbud and AtomVChecker entries of ``reports`` per affected file.

    Reports written before extraction existed hold whole tool outputs under
    the package-level file. Each finding inside them is merged into the
    report of the file it points at; the original entries are kept.

    Args:
        reports: Report list of one package; updated in place.

    Returns:
        list[RawReport]: The same list, recounted and sorted.
    """

    diagnoses = DiagnosisSet()
    for report in reports:
        for kind, texts in report.kinds.items():
            checker = checker_for_kind(kind)
            if checker is None:
                continue
            LOGGER.debug("%s has %d %s diagnoses", report.file or "<package>", len(texts), kind)
            for text in texts:
                diagnoses.update(extract(checker, text, features=report.features, kind=kind))
    merge_diagnoses(diagnoses, reports)
    return recount_and_sort(reports)


__all__ = ["refine_reports"]
