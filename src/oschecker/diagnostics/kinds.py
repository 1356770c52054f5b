# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Diagnostic kinds reported per file."""

from __future__ import annotations

from enum import Enum
from typing import Final

from ..checkers import CheckerTool


class Kind(str, Enum):
    """Enumerate the kinds a diagnostic can be filed under."""

    CLIPPY_WARN = "clippy-warn"
    CLIPPY_ERROR = "clippy-error"
    UNFORMATTED = "unformatted"
    MIRI = "miri"
    SEMVER_VIOLATION = "semver-violation"
    AUDIT = "audit"
    MIRAI = "mirai"
    LOCKBUD_PROBABLY = "lockbud-probably"
    LOCKBUD_POSSIBLY = "lockbud-possibly"
    ATOMVCHECKER = "atomvchecker"
    RAPX = "rapx"
    RUDRA = "rudra"
    OUTDATED = "outdated"
    GEIGER = "geiger"
    UDEPS = "udeps"
    CARGO = "cargo"

    @property
    def sort_index(self) -> int:
        return _KIND_ORDER[self]

    def __str__(self) -> str:
        return self.value


_KIND_ORDER: Final[dict[Kind, int]] = {kind: index for index, kind in enumerate(Kind)}

_DEFAULT_KIND: Final[dict[CheckerTool, Kind]] = {
    CheckerTool.FMT: Kind.UNFORMATTED,
    CheckerTool.CLIPPY: Kind.CLIPPY_WARN,
    CheckerTool.MIRI: Kind.MIRI,
    CheckerTool.SEMVER_CHECKS: Kind.SEMVER_VIOLATION,
    CheckerTool.AUDIT: Kind.AUDIT,
    CheckerTool.MIRAI: Kind.MIRAI,
    CheckerTool.LOCKBUD: Kind.LOCKBUD_PROBABLY,
    CheckerTool.ATOMVCHECKER: Kind.ATOMVCHECKER,
    CheckerTool.RAPX: Kind.RAPX,
    CheckerTool.RUDRA: Kind.RUDRA,
    CheckerTool.OUTDATED: Kind.OUTDATED,
    CheckerTool.GEIGER: Kind.GEIGER,
    CheckerTool.UDEPS: Kind.UDEPS,
    CheckerTool.CARGO: Kind.CARGO,
}


def default_kind(checker: CheckerTool) -> Kind:
    """Return the kind a checker's diagnostics are filed under by default."""

    return _DEFAULT_KIND[checker]


__all__ = ["Kind", "default_kind"]
