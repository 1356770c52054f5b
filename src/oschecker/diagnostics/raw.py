# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Split captured checker output into raw diagnostic strings."""

from __future__ import annotations

import re
from typing import Final

from ..checkers import CheckerTool
from ..execution.process import ProcessOutput
from .extraction import SEGMENTED_CHECKERS

ANSI_PATTERN: Final[re.Pattern[str]] = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
# Start of a rustc/clippy message block.
MESSAGE_START: Final[re.Pattern[str]] = re.compile(r"^(?:warning|error)(?:\[[^\]]+\])?: ", re.MULTILINE)
# Trailing cargo summaries that repeat what the blocks above already say.
SUMMARY_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?:warning: .+ generated \d+ warnings?|error: could not compile|warning: build failed)",
)
FMT_DIFF_START: Final[re.Pattern[str]] = re.compile(r"^Diff in ", re.MULTILINE)

_MESSAGE_CHECKERS: Final[frozenset[CheckerTool]] = frozenset(
    {CheckerTool.CLIPPY, CheckerTool.MIRAI, CheckerTool.RUDRA, CheckerTool.RAPX, CheckerTool.MIRI},
)


def strip_ansi(text: str) -> str:
    """Return ``text`` without ANSI escape sequences."""

    return ANSI_PATTERN.sub("", text)


def _split_at(pattern: re.Pattern[str], text: str) -> list[str]:
    starts = [match.start() for match in pattern.finditer(text)]
    if not starts:
        return []
    blocks = [text[start:end].strip() for start, end in zip(starts, [*starts[1:], len(text)], strict=True)]
    return [block for block in blocks if block and not SUMMARY_PATTERN.match(block)]


def split_output(checker: CheckerTool, output: ProcessOutput) -> list[str]:
    """Return the raw diagnostics contained in ``output``.

    Rustc-style tools yield one entry per message block, ``fmt`` one per
    diff hunk, tools printing JSON segments one entry holding the whole
    output, and report-style tools (audit, outdated, ...) one entry holding
    stdout when they exit with a failure status.

    Args:
        checker: Checker that produced ``output``.
        output: Captured process result.

    Returns:
        list[str]: Raw diagnostics in output order.
    """

    stdout = strip_ansi(output.stdout)
    stderr = strip_ansi(output.stderr)
    if checker is CheckerTool.FMT:
        return _split_at(FMT_DIFF_START, stdout)
    if checker in _MESSAGE_CHECKERS:
        return _split_at(MESSAGE_START, stderr)
    if checker in SEGMENTED_CHECKERS:
        combined = "\n".join(part for part in (stdout, stderr) if part.strip())
        return [combined] if combined.strip() else []
    if output.succeeded:
        return []
    report = stdout.strip() or stderr.strip()
    return [report] if report else []


__all__ = ["split_output", "strip_ansi"]
