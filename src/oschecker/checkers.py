# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Closed registry of the checker tools the orchestrator knows how to run."""

from __future__ import annotations

from enum import Enum
from typing import Final


class CheckerTool(str, Enum):
    """Enumerate supported checker tools by their canonical CLI name."""

    FMT = "fmt"
    CLIPPY = "clippy"
    MIRI = "miri"
    SEMVER_CHECKS = "semver-checks"
    AUDIT = "audit"
    MIRAI = "mirai"
    LOCKBUD = "lockbud"
    ATOMVCHECKER = "atomvchecker"
    RAPX = "rapx"
    RUDRA = "rudra"
    OUTDATED = "outdated"
    GEIGER = "geiger"
    UDEPS = "udeps"
    # Pseudo tool: stderr of a real checker containing a build error.
    CARGO = "cargo"

    @property
    def cli_name(self) -> str:
        """Return the name used when invoking the checker as a cargo subcommand."""

        return self.value

    @classmethod
    def from_str(cls, raw: str) -> CheckerTool | None:
        """Return the checker matching ``raw`` or ``None`` when unknown.

        Args:
            raw: Canonical checker name such as ``"semver-checks"``.

        Returns:
            CheckerTool | None: Matching enum member when recognised.
        """

        try:
            return cls(raw)
        except ValueError:
            return None

    @property
    def sort_index(self) -> int:
        """Return the declaration index used to order checkers deterministically."""

        return _DECLARATION_ORDER[self]

    def __str__(self) -> str:
        return self.value


_DECLARATION_ORDER: Final[dict[CheckerTool, int]] = {tool: index for index, tool in enumerate(CheckerTool)}

TOOLS: Final[int] = len(CheckerTool)

# Tools a configuration may name; the synthetic cargo entry is never configurable.
REAL_CHECKERS: Final[tuple[CheckerTool, ...]] = tuple(tool for tool in CheckerTool if tool is not CheckerTool.CARGO)

# Checkers whose stale build artefacts confuse their analysis.
_CARGO_CLEAN_BEFORE: Final[frozenset[CheckerTool]] = frozenset(
    {CheckerTool.MIRAI, CheckerTool.RAPX, CheckerTool.GEIGER},
)

HOST_TARGET: Final[str] = "x86_64-unknown-linux-gnu"
HOST_TOOLCHAIN: Final[str] = "nightly"
TOOLCHAIN_RUDRA: Final[str] = "nightly-2021-10-21"
TOOLCHAIN_MIRAI: Final[str] = "nightly-2025-01-10"
TOOLCHAIN_LOCKBUD: Final[str] = "nightly-2025-02-01"
TOOLCHAIN_RAPX: Final[str] = "nightly-2024-10-12"

# Targets no checker can be run on.
PECULIAR_TARGETS: Final[frozenset[str]] = frozenset({"x86_64-fuchsia", "avr-unknown-gnu-atmega328"})


def needs_cargo_clean(tool: CheckerTool) -> bool:
    """Return whether ``tool`` must run after ``cargo clean`` on its workspace."""

    return tool in _CARGO_CLEAN_BEFORE


__all__ = [
    "CheckerTool",
    "HOST_TARGET",
    "HOST_TOOLCHAIN",
    "PECULIAR_TARGETS",
    "REAL_CHECKERS",
    "TOOLCHAIN_LOCKBUD",
    "TOOLCHAIN_MIRAI",
    "TOOLCHAIN_RAPX",
    "TOOLCHAIN_RUDRA",
    "TOOLS",
    "needs_cargo_clean",
]
