# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests expanding configurations into ordered invocations."""

from __future__ import annotations

from pathlib import Path

import pytest

from oschecker.checkers import HOST_TARGET, HOST_TOOLCHAIN, TOOLCHAIN_LOCKBUD, CheckerTool
from oschecker.config import ToolchainRegistry, parse_configs, resolve_repo
from oschecker.config.models import RepoConfig
from oschecker.config.resolve import BUILD_TARGET_ENV
from oschecker.errors import ConfigError
from oschecker.layout.packages import Package, Packages
from oschecker.layout.targets import RustToolchain, TargetDetection, TargetSource


def _config(text: str) -> RepoConfig:
    return parse_configs(text)["octo/demo"]


def test_two_packages_fmt_and_clippy_are_sorted(two_packages: Packages) -> None:
    config = _config("octo/demo:\n  all: false\n  fmt: true\n  clippy: true\n")

    resolves = resolve_repo("octo/demo", config, two_packages)

    assert [(item.pkg_name, item.checker) for item in resolves] == [
        ("alpha", CheckerTool.FMT),
        ("alpha", CheckerTool.CLIPPY),
        ("beta", CheckerTool.FMT),
        ("beta", CheckerTool.CLIPPY),
    ]
    clippy = resolves[1]
    assert clippy.cmd == f"cargo +{HOST_TOOLCHAIN} clippy --target {HOST_TARGET} --no-deps"
    assert clippy.cwd == two_packages["alpha"].pkg_dir
    assert clippy.target == HOST_TARGET


def test_package_override_does_not_leak_to_siblings(two_packages: Packages) -> None:
    config = _config(
        "octo/demo:\n  all: false\n  fmt: true\n  packages:\n    alpha:\n      fmt: false\n      audit: true\n",
    )

    resolves = resolve_repo("octo/demo", config, two_packages)

    assert [(item.pkg_name, item.checker) for item in resolves] == [
        ("alpha", CheckerTool.AUDIT),
        ("beta", CheckerTool.FMT),
    ]


def test_disabled_checkers_produce_nothing(two_packages: Packages) -> None:
    config = _config("octo/demo:\n  all: false\n")

    assert resolve_repo("octo/demo", config, two_packages) == []


def test_unknown_package_is_a_config_error(two_packages: Packages) -> None:
    config = _config("octo/demo:\n  packages:\n    gamma:\n      fmt: false\n")

    with pytest.raises(ConfigError, match="The package `gamma` is not in the repo `octo/demo`."):
        resolve_repo("octo/demo", config, two_packages)


def test_checkers_without_heuristic_are_skipped(two_packages: Packages) -> None:
    config = _config("octo/demo:\n  all: false\n  miri: true\n  udeps: true\n")

    assert resolve_repo("octo/demo", config, two_packages) == []


def test_custom_steps_run_per_target_with_build_target_env(two_packages: Packages) -> None:
    text = (
        "octo/demo:\n"
        "  all: false\n"
        "  targets: [x86_64-unknown-linux-gnu, aarch64-unknown-linux-gnu]\n"
        "  env:\n    RUST_BACKTRACE: '1'\n"
        "  miri: |\n    cargo miri test\n"
        "  packages:\n    beta:\n      miri: false\n"
    )

    resolves = resolve_repo("octo/demo", _config(text), two_packages)

    assert [(item.pkg_name, item.target) for item in resolves] == [
        ("alpha", "x86_64-unknown-linux-gnu"),
        ("alpha", "aarch64-unknown-linux-gnu"),
    ]
    assert {item.cmd for item in resolves} == {"cargo miri test"}
    assert resolves[1].env == {"RUST_BACKTRACE": "1", BUILD_TARGET_ENV: "aarch64-unknown-linux-gnu"}


def test_feature_sets_multiply_per_target_checkers(two_packages: Packages) -> None:
    text = (
        "octo/demo:\n"
        "  all: false\n"
        "  clippy: true\n"
        "  fmt: true\n"
        "  features:\n"
        "    - features: [std]\n"
        "    - no-default-features: true\n"
        "  meta:\n    only_pkg_dir_globs: crates/alpha\n"
    )

    resolves = resolve_repo("octo/demo", _config(text), two_packages)

    assert [item.checker for item in resolves] == [CheckerTool.FMT, CheckerTool.CLIPPY, CheckerTool.CLIPPY]
    assert [item.features for item in resolves] == ["", "--features=std", "--no-default-features"]
    assert "--features=std" in resolves[1].cmd


def test_skip_globs_filter_package_dirs(two_packages: Packages) -> None:
    config = _config("octo/demo:\n  all: false\n  fmt: true\n  meta:\n    skip_pkg_dir_globs: ['crates/b*']\n")

    resolves = resolve_repo("octo/demo", config, two_packages)

    assert [item.pkg_name for item in resolves] == ["alpha"]


def test_target_precedence(two_packages: Packages) -> None:
    def detect(package: Package) -> TargetDetection:
        detection = TargetDetection(
            toolchain=RustToolchain(channel="nightly-2024-06-01", targets=(), path=package.pkg_dir / "rust-toolchain"),
        )
        detection.add("riscv64gc-unknown-none-elf", TargetSource.CARGO_CONFIG, package.pkg_dir)
        return detection

    text = (
        "octo/demo:\n"
        "  all: false\n"
        "  clippy: true\n"
        "  packages:\n    beta:\n      targets: aarch64-unknown-linux-gnu\n"
    )

    resolves = resolve_repo("octo/demo", _config(text), two_packages, detect_targets=detect)

    assert [(item.pkg_name, item.target, item.toolchain) for item in resolves] == [
        ("alpha", "riscv64gc-unknown-none-elf", "nightly-2024-06-01"),
        ("beta", "aarch64-unknown-linux-gnu", "nightly-2024-06-01"),
    ]

    repo_level = _config("octo/demo:\n  all: false\n  clippy: true\n  targets: [wasm32-unknown-unknown]\n")
    targets = {item.target for item in resolve_repo("octo/demo", repo_level, two_packages, detect_targets=detect)}
    assert targets == {"wasm32-unknown-unknown"}


def test_pinned_toolchains_are_registered(two_packages: Packages) -> None:
    config = _config(
        "octo/demo:\n  all: false\n  lockbud: true\n  fmt: true\n  no_install_targets: [x86_64-unknown-linux-gnu]\n",
    )
    registry = ToolchainRegistry()

    resolves = resolve_repo("octo/demo", config, two_packages, toolchains=registry)

    lockbud = [item for item in resolves if item.checker is CheckerTool.LOCKBUD]
    assert lockbud[0].cmd == f"cargo +{TOOLCHAIN_LOCKBUD} lockbud -k all -- --target {HOST_TARGET}"
    assert [info.channel for info in registry.infos()] == [HOST_TOOLCHAIN, TOOLCHAIN_LOCKBUD]
    assert registry.targets_for(TOOLCHAIN_LOCKBUD) == ()


def test_target_env_is_applied_per_target(tmp_path: Path) -> None:
    packages = Packages([Package("solo", tmp_path / "Cargo.toml", tmp_path)], repo_root=tmp_path)
    text = (
        "octo/demo:\n"
        "  all: false\n"
        "  clippy: true\n"
        "  targets: [thumbv7em-none-eabihf]\n"
        "  meta:\n    target_env:\n      thumbv7em-none-eabihf:\n        RUSTFLAGS: -C panic=abort\n"
    )

    (resolve,) = resolve_repo("octo/demo", _config(text), packages)

    assert resolve.env == {"RUSTFLAGS": "-C panic=abort"}
    assert resolve.rustflags == ("-C", "panic=abort")


def test_fmt_heuristic_and_literal_clippy_for_two_packages(two_packages: Packages) -> None:
    config = _config('octo/demo:\n  fmt: true\n  clippy: "cargo clippy -F a,b,c"\n')

    resolves = [
        item
        for item in resolve_repo("octo/demo", config, two_packages)
        if item.checker in (CheckerTool.FMT, CheckerTool.CLIPPY)
    ]

    assert [(item.pkg_name, item.checker, item.cmd) for item in resolves] == [
        ("alpha", CheckerTool.FMT, "cargo fmt --check"),
        ("alpha", CheckerTool.CLIPPY, "cargo clippy -F a,b,c"),
        ("beta", CheckerTool.FMT, "cargo fmt --check"),
        ("beta", CheckerTool.CLIPPY, "cargo clippy -F a,b,c"),
    ]
