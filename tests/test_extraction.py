# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for splitting checker output and extracting diagnoses."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from conftest import double_lock, json_segment

from oschecker.checkers import CheckerTool
from oschecker.diagnostics import Kind, extract, split_output
from oschecker.diagnostics.extraction import attribute_file, iter_segments, parse_lockbud_segment
from oschecker.errors import ExtractionError
from oschecker.execution.process import ProcessOutput

CLIPPY_STDERR = """\
    Checking demo v0.1.0 (/work/alpha)
\x1b[33mwarning\x1b[0m: unused variable: `x`
 --> src/lib.rs:2:9
  |
2 |     let x = 1;
  |         ^ help: if this is intentional, prefix it with an underscore: `_x`

warning: `demo` (lib) generated 1 warning
error[E0425]: cannot find value `y` in this scope
 --> /work/alpha/src/main.rs:3:5

error: could not compile `demo` (bin "demo") due to 1 previous error
"""


def _output(*, stdout: str = "", stderr: str = "", returncode: int = 0) -> ProcessOutput:
    return ProcessOutput(returncode=returncode, stdout=stdout, stderr=stderr, duration_ms=1)


def test_split_clippy_blocks_drops_summaries() -> None:
    blocks = split_output(CheckerTool.CLIPPY, _output(stderr=CLIPPY_STDERR, returncode=101))

    assert len(blocks) == 2
    assert blocks[0].startswith("warning: unused variable")
    assert blocks[1].startswith("error[E0425]")


def test_split_fmt_diff_hunks() -> None:
    stdout = "Diff in /work/alpha/src/lib.rs:1:\n-fn a(){}\n+fn a() {}\nDiff in /work/alpha/src/main.rs:4:\n-x\n+y\n"

    blocks = split_output(CheckerTool.FMT, _output(stdout=stdout, returncode=1))

    assert [block.splitlines()[0] for block in blocks] == [
        "Diff in /work/alpha/src/lib.rs:1:",
        "Diff in /work/alpha/src/main.rs:4:",
    ]


@pytest.mark.parametrize(
    ("checker", "output"),
    [
        (CheckerTool.FMT, _output(stderr="    Finished dev [unoptimized] target(s) in 0.1s\n")),
        (CheckerTool.FMT, _output()),
        (CheckerTool.CLIPPY, _output(stderr="    Checking demo v0.1.0 (/work/alpha)\n    Finished dev\n")),
        (CheckerTool.MIRAI, _output(stderr="    Finished dev\n")),
        (CheckerTool.RUDRA, _output()),
    ],
)
def test_clean_output_yields_no_diagnostics(checker: CheckerTool, output: ProcessOutput) -> None:
    assert split_output(checker, output) == []


def test_split_report_style_tools_only_on_failure() -> None:
    report = "Crate:     time\nID:        RUSTSEC-2020-0071\n"

    assert split_output(CheckerTool.AUDIT, _output(stdout=report, returncode=1)) == [report.strip()]
    assert split_output(CheckerTool.AUDIT, _output(stdout="no vulnerabilities", returncode=0)) == []


def test_clippy_diagnoses_are_attributed_to_files() -> None:
    blocks = split_output(CheckerTool.CLIPPY, _output(stderr=CLIPPY_STDERR, returncode=101))

    diagnoses = [
        diagnosis
        for block in blocks
        for diagnosis in extract(CheckerTool.CLIPPY, block, features="", pkg_dir=Path("/work/alpha"))
    ]

    assert [(item.file, item.kind) for item in diagnoses] == [
        ("src/lib.rs", Kind.CLIPPY_WARN),
        ("src/main.rs", Kind.CLIPPY_ERROR),
    ]


def test_output_without_location_belongs_to_the_package() -> None:
    (diagnosis,) = extract(CheckerTool.OUTDATED, "Name  Project  Latest\nrand  0.7.3    0.8.5", features="")

    assert diagnosis.file == ""
    assert diagnosis.kind is Kind.OUTDATED


def test_fmt_diff_path_is_made_relative() -> None:
    assert attribute_file("Diff in /work/alpha/src/lib.rs:12:\n-a\n+b", Path("/work/alpha")) == "src/lib.rs"
    assert attribute_file("Diff in /elsewhere/src/lib.rs at line 3:", Path("/work/alpha")) == "/elsewhere/src/lib.rs"


def test_lockbud_diagnosis_per_file_with_possibility_kind() -> None:
    segment = json_segment([double_lock("src/lib.rs:10:17: 10:26", "src/main.rs:12:17: 12:26")])

    diagnoses = extract(CheckerTool.LOCKBUD, segment, features="--features=std")

    assert [(item.file, item.kind, item.features) for item in diagnoses] == [
        ("src/lib.rs", Kind.LOCKBUD_POSSIBLY, "--features=std"),
        ("src/main.rs", Kind.LOCKBUD_POSSIBLY, "--features=std"),
    ]
    assert json.loads(diagnoses[0].diag)["bug_kind"] == "DoubleLock"


def test_lockbud_probably_kind() -> None:
    segment = json_segment([double_lock("src/lib.rs:1:1: 1:9", "src/lib.rs:2:1: 2:9", possibility="Probably")])

    (diagnosis,) = extract(CheckerTool.LOCKBUD, segment, features="")

    assert diagnosis.kind is Kind.LOCKBUD_PROBABLY
    assert diagnosis.file == "src/lib.rs"


def test_repeated_segments_yield_equal_diagnoses() -> None:
    record = double_lock("src/lib.rs:10:17: 10:26", "src/lib.rs:11:17: 11:26")
    raw = "\n".join([json_segment([record], prefix="first"), "noise", json_segment([record], prefix="second")])

    diagnoses = extract(CheckerTool.LOCKBUD, raw, features="")

    assert len(list(iter_segments(raw))) == 2
    assert len(diagnoses) == 2
    assert diagnoses[0] == diagnoses[1]


def test_malformed_segment_is_skipped_and_logged(caplog: pytest.LogCaptureFixture) -> None:
    good = json_segment([double_lock("src/lib.rs:1:1: 1:2", "src/lib.rs:3:1: 3:2")])
    raw = f"broken [\n      {{not json\n    ]\n{good}"

    with caplog.at_level(logging.WARNING, logger="oschecker"):
        diagnoses = extract(CheckerTool.LOCKBUD, raw, features="")

    assert [item.file for item in diagnoses] == ["src/lib.rs"]
    assert "{not json" in caplog.text


def test_lockbud_segment_must_hold_mappings() -> None:
    with pytest.raises(ExtractionError, match="not a mapping"):
        parse_lockbud_segment(" [\n      1\n    ]\n", features="")


def test_atomvchecker_records() -> None:
    record = {
        "bug_kind": "AtomicCorrelationViolation",
        "file": "src/sync.rs:20:5: 20:30",
        "location": "fn publish",
        "content": "Relaxed store may be observed before data",
    }

    (diagnosis,) = extract(CheckerTool.ATOMVCHECKER, json_segment([record]), features="")

    assert diagnosis.file == "src/sync.rs"
    assert diagnosis.kind is Kind.ATOMVCHECKER
    assert diagnosis.diag.startswith("[AtomicCorrelationViolation] src/sync.rs:20:5: 20:30 fn publish\n")
