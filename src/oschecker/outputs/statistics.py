# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Per-package totals over results and reports."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field

from ..diagnostics.kinds import Kind
from ..diagnostics.report import RawReport
from .packages import Outputs


class Statistics(BaseModel):
    """Duration and diagnostic counts of one package."""

    model_config = ConfigDict(frozen=True)

    pkg_name: str
    duration_ms: int = 0
    invocations: int = 0
    cache_hits: int = 0
    total: int = 0
    kinds: dict[Kind, int] = Field(default_factory=dict)
    files: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def new(cls, outputs: Outputs, reports: Sequence[RawReport]) -> Statistics:
        """Summarize ``outputs`` and the reports built from them.

        Args:
            outputs: Results of the package.
            reports: Merged per-file reports of the package.

        Returns:
            Statistics: Totals; kinds are in declaration order and files in
            path order.
        """

        kinds: Counter[Kind] = Counter()
        files: Counter[str] = Counter()
        for report in reports:
            for kind, diagnoses in report.kinds.items():
                kinds[kind] += len(diagnoses)
            files[report.file] += report.count
        return cls(
            pkg_name=outputs.pkg_name,
            duration_ms=sum(item.duration_ms for item in outputs),
            invocations=len(outputs),
            cache_hits=sum(1 for item in outputs if item.cache_hit),
            total=sum(kinds.values()),
            kinds=dict(sorted(kinds.items(), key=lambda item: item[0].sort_index)),
            files=dict(sorted(files.items())),
        )


__all__ = ["Statistics"]
