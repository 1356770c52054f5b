# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Per-file diagnostic reports and the dedup set feeding them."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, MutableSequence
from dataclasses import dataclass

from pydantic import BaseModel, Field

from .kinds import Kind


class RawReport(BaseModel):
    """Diagnostics of one file under one feature set, grouped by kind."""

    file: str
    features: str = ""
    count: int = 0
    kinds: dict[Kind, list[str]] = Field(default_factory=dict)

    def matches(self, file: str, features: str) -> bool:
        return self.file == file and self.features == features

    def total(self) -> int:
        return sum(len(diagnoses) for diagnoses in self.kinds.values())


@dataclass(frozen=True, slots=True)
class Diagnosis:
    """A single diagnostic attributed to a file; equal when all fields are."""

    features: str
    kind: Kind
    file: str
    diag: str

    def update_raw_reports(self, reports: MutableSequence[RawReport]) -> None:
        """Merge this diagnosis into ``reports``.

        The report for the same file and feature set receives the text under
        this kind and its count grows by one. Text already recorded there is
        not added again. Without a matching report a new one is appended with
        a count of one.

        Args:
            reports: Report list of one package, updated in place.
        """

        for report in reports:
            if not report.matches(self.file, self.features):
                continue
            diagnoses = report.kinds.setdefault(self.kind, [])
            if self.diag in diagnoses:
                return
            diagnoses.append(self.diag)
            report.count += 1
            return
        reports.append(RawReport(file=self.file, features=self.features, count=1, kinds={self.kind: [self.diag]}))


class DiagnosisSet:
    """Insertion-ordered set of :class:`Diagnosis` records."""

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[Diagnosis] = ()) -> None:
        self._items: dict[Diagnosis, None] = dict.fromkeys(items)

    def add(self, item: Diagnosis) -> bool:
        """Insert ``item``; return ``False`` when an equal record was present."""

        if item in self._items:
            return False
        self._items[item] = None
        return True

    def update(self, items: Iterable[Diagnosis]) -> None:
        for item in items:
            self.add(item)

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __iter__(self) -> Iterator[Diagnosis]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)


def merge_diagnoses(diagnoses: Iterable[Diagnosis], reports: MutableSequence[RawReport]) -> None:
    """Consume ``diagnoses`` in order, merging each one into ``reports``."""

    for diagnosis in diagnoses:
        diagnosis.update_raw_reports(reports)


def recount_and_sort(reports: list[RawReport]) -> list[RawReport]:
    """Recompute every count, order kinds and sort reports by file and features.

    Args:
        reports: Report list of one package; sorted in place.

    Returns:
        list[RawReport]: The same list, for chaining.
    """

    for report in reports:
        report.kinds = dict(sorted(report.kinds.items(), key=lambda item: item[0].sort_index))
        report.count = report.total()
    reports.sort(key=lambda report: (report.file, report.features))
    return reports


__all__ = ["Diagnosis", "DiagnosisSet", "RawReport", "merge_diagnoses", "recount_and_sort"]
