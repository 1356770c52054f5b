# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for collecting results and building package reports."""

from __future__ import annotations

from pathlib import Path

from conftest import double_lock, json_segment

from oschecker.cache import CacheValue, DbRepo
from oschecker.checkers import CheckerTool
from oschecker.config import Resolve
from oschecker.diagnostics import Kind
from oschecker.outputs import PackagesOutputs, build_reports, cargo_value_for

BUILD_FAILURE = "warning: unused import\n --> src/lib.rs:1:5\n\nerror: could not compile `demo`\n"


def _resolve(pkg_name: str = "alpha", checker: CheckerTool = CheckerTool.CLIPPY, cmd: str = "cargo clippy") -> Resolve:
    return Resolve(
        pkg_name=pkg_name,
        pkg_dir=Path("/work") / pkg_name,
        features_args=(),
        checker=checker,
        target="x86_64-unknown-linux-gnu",
        toolchain="nightly",
        cmd=cmd,
    )


def test_cargo_value_only_for_build_errors() -> None:
    resolve = _resolve()

    value = cargo_value_for(resolve, BUILD_FAILURE)

    assert value is not None
    (diagnostic,) = value.diagnostics
    assert diagnostic.startswith(
        "// pkg_name=alpha, checker=clippy\n// toolchain=nightly, target=x86_64-unknown-linux-gnu",
    )
    assert "// cmd=cargo clippy" in diagnostic
    assert diagnostic.endswith("error: could not compile `demo`")
    assert cargo_value_for(resolve, "warning: unused import\n") is None


def test_push_output_with_cargo_records_both() -> None:
    outputs = PackagesOutputs()
    resolve = _resolve()

    cargo_value = outputs.push_output_with_cargo(resolve, CacheValue.new(["warning: a"], duration_ms=30), BUILD_FAILURE)

    assert cargo_value is not None
    package = outputs.get("alpha")
    assert package is not None
    assert [item.checker for item in package] == [CheckerTool.CLIPPY, CheckerTool.CARGO]
    assert sum(item.duration_ms for item in package) == 30
    assert outputs.count() == 2


def test_fetch_cache_pushes_hit_and_cargo_entry(db_repo: DbRepo) -> None:
    resolve = _resolve()
    db_repo.write_cache(db_repo.key(resolve), CacheValue.new(["warning: a"]))
    db_repo.write_cache(db_repo.key(resolve.new_cargo()), CacheValue.new(["// cargo"]))
    outputs = PackagesOutputs()

    assert outputs.fetch_cache(resolve, db_repo) is True
    assert outputs.fetch_cache(_resolve(cmd="cargo clippy --all"), db_repo) is False

    package = outputs.get("alpha")
    assert package is not None
    assert [(item.checker, item.cache_hit) for item in package] == [
        (CheckerTool.CLIPPY, True),
        (CheckerTool.CARGO, True),
    ]


def test_build_reports_merges_and_counts() -> None:
    outputs = PackagesOutputs()
    warning = "warning: unused variable\n --> src/lib.rs:2:9"
    audit = CacheValue.new(["RUSTSEC-2020-0071"], duration_ms=5)
    outputs.push(_resolve("beta", CheckerTool.AUDIT, "cargo audit"), audit)
    outputs.push(_resolve("alpha"), CacheValue.new([warning, warning], duration_ms=7))
    diff = CacheValue.new(["Diff in /work/alpha/src/lib.rs:3:\n-a\n+b"])
    outputs.push(_resolve("alpha", CheckerTool.FMT, "cargo fmt --check"), diff)
    build_error = CacheValue.new(["error: could not compile\n --> src/main.rs:1:1"]).as_cache_hit()
    outputs.push(_resolve("alpha").new_cargo(), build_error)

    alpha, beta = build_reports(outputs)

    assert (alpha.pkg_name, beta.pkg_name) == ("alpha", "beta")
    assert [(report.file, report.count) for report in alpha.raw_reports] == [("src/lib.rs", 2), ("src/main.rs", 1)]
    assert list(alpha.raw_reports[0].kinds) == [Kind.CLIPPY_WARN, Kind.UNFORMATTED]
    assert alpha.statistics.total == 3
    assert alpha.statistics.invocations == 3
    assert alpha.statistics.cache_hits == 1
    assert alpha.statistics.duration_ms == 7
    assert alpha.statistics.kinds == {Kind.CLIPPY_WARN: 1, Kind.UNFORMATTED: 1, Kind.CARGO: 1}
    assert alpha.statistics.files == {"src/lib.rs": 2, "src/main.rs": 1}
    assert [(report.file, report.kinds) for report in beta.raw_reports] == [("", {Kind.AUDIT: ["RUSTSEC-2020-0071"]})]


def test_repeated_segments_count_once() -> None:
    record = double_lock("src/lib.rs:10:17: 10:26", "src/lib.rs:14:9: 14:20")
    raw = f"{json_segment([record], prefix='pass one')}\n{json_segment([record], prefix='pass two')}"
    outputs = PackagesOutputs()
    outputs.push(_resolve(checker=CheckerTool.LOCKBUD, cmd="cargo lockbud -k all"), CacheValue.new([raw]))

    (package,) = build_reports(outputs)

    (report,) = package.raw_reports
    assert report.file == "src/lib.rs"
    assert report.count == 1
    assert list(report.kinds) == [Kind.LOCKBUD_POSSIBLY]
