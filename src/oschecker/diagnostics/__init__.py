# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Extract, deduplicate and merge checker diagnostics into per-file reports."""

from __future__ import annotations

from .extraction import attribute_file, extract, iter_segments, parse_atomvchecker_segment, parse_lockbud_segment
from .kinds import Kind, default_kind
from .raw import split_output, strip_ansi
from .refine import refine_reports
from .report import Diagnosis, DiagnosisSet, RawReport, merge_diagnoses, recount_and_sort

__all__ = [
    "Diagnosis",
    "DiagnosisSet",
    "Kind",
    "RawReport",
    "attribute_file",
    "default_kind",
    "extract",
    "iter_segments",
    "merge_diagnoses",
    "parse_atomvchecker_segment",
    "parse_lockbud_segment",
    "recount_and_sort",
    "refine_reports",
    "split_output",
    "strip_ansi",
]
