# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Turn raw checker diagnostics into :class:`Diagnosis` records.

Some checkers print their findings as JSON arrays embedded in otherwise
free-form output. Those arrays are located first (segmentation) and then
parsed strictly one by one, so a malformed array only loses itself.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ..checkers import CheckerTool
from ..errors import ExtractionError
from .kinds import Kind, default_kind
from .report import Diagnosis

LOGGER = logging.getLogger(__name__)

# A JSON array opened with ` [` and closed by `]` indented four spaces.
SEGMENT_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?s) \[\n.*?\n    \]\n?")
# `src/lib.rs:10:5: 10:20`
SPAN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(\S+\.rs):\d+:\d+: \d+:\d+")
RUSTC_LOCATION_PATTERN: Final[re.Pattern[str]] = re.compile(r"-->\s+(?P<path>\S+?\.rs):\d+:\d+")
FMT_DIFF_PATTERN: Final[re.Pattern[str]] = re.compile(r"Diff in (?P<path>\S+?\.rs)(?::\d+| at line \d+)")

POSSIBLY: Final[str] = "Possibly"

SEGMENTED_CHECKERS: Final[frozenset[CheckerTool]] = frozenset({CheckerTool.LOCKBUD, CheckerTool.ATOMVCHECKER})


class AtomvcheckerRecord(BaseModel):
    """One finding reported by AtomVChecker."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    kind: str = Field(validation_alias=AliasChoices("kind", "ty", "bug_kind"))
    file: str
    location: str = ""
    content: str = ""

    def file_path(self) -> str:
        match = SPAN_PATTERN.search(self.file)
        return match.group(1) if match else self.file

    def diag(self) -> str:
        head = f"[{self.kind}] {self.file}"
        if self.location:
            head = f"{head} {self.location}"
        return f"{head}\n{self.content}" if self.content else head


def iter_segments(raw: str) -> Iterator[str]:
    """Yield every bracketed JSON segment embedded in ``raw``."""

    for match in SEGMENT_PATTERN.finditer(raw):
        yield match.group(0)


def parse_file_paths(payload: Any) -> list[str]:
    """Return the ``.rs`` paths of every span found in the strings of ``payload``."""

    found: list[str] = []
    for text in _strings(payload):
        for match in SPAN_PATTERN.finditer(text):
            path = match.group(1)
            if path not in found:
                found.append(path)
    return found


def _strings(payload: Any) -> Iterator[str]:
    if isinstance(payload, str):
        yield payload
    elif isinstance(payload, Mapping):
        for value in payload.values():
            yield from _strings(value)
    elif isinstance(payload, list):
        for value in payload:
            yield from _strings(value)


def _load_segment(segment: str) -> list[Any]:
    try:
        records = json.loads(segment)
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"segment is not valid JSON: {exc}", segment=segment) from exc
    if not isinstance(records, list):
        raise ExtractionError("segment is not a JSON array", segment=segment)
    return records


def _lockbud_kind(payload: Any, fallback: Kind) -> Kind:
    if isinstance(payload, Mapping):
        possibility = payload.get("possibility")
        if possibility == POSSIBLY:
            return Kind.LOCKBUD_POSSIBLY
        if possibility is not None:
            return Kind.LOCKBUD_PROBABLY
    return fallback


def parse_lockbud_segment(segment: str, *, features: str, kind: Kind = Kind.LOCKBUD_PROBABLY) -> list[Diagnosis]:
    """Parse a lockbud segment: one diagnosis per bug kind and affected file.

    Args:
        segment: JSON array of ``{bug_kind: payload}`` mappings.
        features: Feature-set label of the invocation.
        kind: Kind used when a payload carries no ``possibility``.

    Returns:
        list[Diagnosis]: Diagnoses carrying the pretty-printed payload.

    Raises:
        ExtractionError: If the segment is not an array of mappings.
    """

    diagnoses: list[Diagnosis] = []
    for record in _load_segment(segment):
        if not isinstance(record, Mapping):
            raise ExtractionError("lockbud record is not a mapping", segment=segment)
        for payload in record.values():
            text = json.dumps(payload, indent=2)
            bug_kind = _lockbud_kind(payload, kind)
            diagnoses.extend(
                Diagnosis(features=features, kind=bug_kind, file=file, diag=text) for file in parse_file_paths(payload)
            )
    return diagnoses


def parse_atomvchecker_segment(segment: str, *, features: str) -> list[Diagnosis]:
    """Parse an AtomVChecker segment: one diagnosis per record.

    Raises:
        ExtractionError: If a record does not have the expected fields.
    """

    diagnoses: list[Diagnosis] = []
    for record in _load_segment(segment):
        try:
            parsed = AtomvcheckerRecord.model_validate(record)
        except ValidationError as exc:
            raise ExtractionError(f"invalid AtomVChecker record: {exc}", segment=segment) from exc
        diagnoses.append(
            Diagnosis(features=features, kind=Kind.ATOMVCHECKER, file=parsed.file_path(), diag=parsed.diag()),
        )
    return diagnoses


def _relative(path: str, pkg_dir: Path | None) -> str:
    if pkg_dir is None:
        return path
    candidate = Path(path)
    if candidate.is_absolute():
        try:
            return candidate.relative_to(pkg_dir).as_posix()
        except ValueError:
            return path
    return path


def attribute_file(raw: str, pkg_dir: Path | None = None) -> str:
    """Return the file a rustc-style diagnostic points at, or ``""`` for the package."""

    for pattern in (RUSTC_LOCATION_PATTERN, FMT_DIFF_PATTERN):
        match = pattern.search(raw)
        if match:
            return _relative(match.group("path"), pkg_dir)
    return ""


def _fallback_kind(checker: CheckerTool, raw: str) -> Kind:
    if checker is CheckerTool.CLIPPY and raw.lstrip().startswith("error"):
        return Kind.CLIPPY_ERROR
    return default_kind(checker)


def extract(
    checker: CheckerTool,
    raw: str,
    *,
    features: str,
    pkg_dir: Path | None = None,
    kind: Kind | None = None,
) -> list[Diagnosis]:
    """Extract diagnoses from one raw diagnostic string.

    Malformed segments are logged together with their text and skipped.

    Args:
        checker: Checker that produced ``raw``.
        raw: One entry of a cached value's diagnostics.
        features: Feature-set label of the invocation.
        pkg_dir: Package directory absolute paths are made relative to.
        kind: Kind ``raw`` was filed under, when already known.

    Returns:
        list[Diagnosis]: Extracted diagnoses, possibly with duplicates.
    """

    if checker not in SEGMENTED_CHECKERS:
        file = attribute_file(raw, pkg_dir)
        return [Diagnosis(features=features, kind=kind or _fallback_kind(checker, raw), file=file, diag=raw)]

    diagnoses: list[Diagnosis] = []
    for segment in iter_segments(raw):
        try:
            if checker is CheckerTool.LOCKBUD:
                diagnoses.extend(
                    parse_lockbud_segment(segment, features=features, kind=kind or Kind.LOCKBUD_PROBABLY),
                )
            else:
                diagnoses.extend(parse_atomvchecker_segment(segment, features=features))
        except ExtractionError as exc:
            LOGGER.warning("skipping unparsable %s output: %s\n%s", checker, exc, exc.segment)
    return diagnoses


def checker_for_kind(kind: Kind) -> CheckerTool | None:
    """Return the checker whose output is segmented into ``kind`` records."""

    if kind in (Kind.LOCKBUD_PROBABLY, Kind.LOCKBUD_POSSIBLY):
        return CheckerTool.LOCKBUD
    if kind is Kind.ATOMVCHECKER:
        return CheckerTool.ATOMVCHECKER
    return None


__all__ = [
    "AtomvcheckerRecord",
    "SEGMENTED_CHECKERS",
    "SEGMENT_PATTERN",
    "SPAN_PATTERN",
    "attribute_file",
    "checker_for_kind",
    "extract",
    "iter_segments",
    "parse_atomvchecker_segment",
    "parse_file_paths",
    "parse_lockbud_segment",
]
