# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Heuristic detection of target triples and toolchains for a package.

Targets are gathered, in this order, from ``rust-toolchain`` files,
``.cargo/config.toml`` build settings, the ``docs.rs`` metadata table of the
package manifest, and finally build scripts (Makefiles, shell/python/just
scripts and GitHub workflows) that pass ``--target`` explicitly.
"""

from __future__ import annotations

import logging
import re
import tomllib
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Final

from ..checkers import PECULIAR_TARGETS
from .packages import walk_files

LOGGER = logging.getLogger(__name__)

SCRIPT_SUFFIXES: Final[frozenset[str]] = frozenset({".mk", ".sh", ".py", ".just"})
SCRIPT_STEMS: Final[tuple[str, ...]] = ("Makefile", "makefile", "GNUmakefile")
SCRIPT_MAX_DEPTH: Final[int] = 4

# `--target riscv64gc-unknown-none-elf`, `--target=x86_64-unknown-linux-gnu`, `TARGET := aarch64-...`
TARGET_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?:--target[= ]|\bTARGET\s*[:?]?=\s*)\"?(?P<triple>[a-z0-9_]+(?:-[a-z0-9_.]+){1,3})\"?",
)


class TargetSource(str, Enum):
    """Enumerate where a target triple was detected."""

    RUST_TOOLCHAIN = "rust-toolchain"
    CARGO_CONFIG = "cargo-config"
    DOCSRS_PKG = "cargo-toml-docsrs"
    PKG_SCRIPTS = "pkg-scripts"
    REPO_SCRIPTS = "repo-scripts"
    REPO_GITHUB = "repo-github"


@dataclass(frozen=True, slots=True)
class DetectedTarget:
    """A target triple together with the file it was detected in."""

    triple: str
    source: TargetSource
    path: Path


@dataclass(frozen=True, slots=True)
class RustToolchain:
    """Channel and targets declared by a ``rust-toolchain(.toml)`` file."""

    channel: str
    targets: tuple[str, ...]
    path: Path


@dataclass(slots=True)
class TargetDetection:
    """Ordered, de-duplicated detection result for a package."""

    detected: list[DetectedTarget] = field(default_factory=list)
    toolchain: RustToolchain | None = None

    def add(self, triple: str, source: TargetSource, path: Path) -> None:
        if triple in PECULIAR_TARGETS:
            LOGGER.debug("ignoring peculiar target %s from %s", triple, path)
            return
        if any(item.triple == triple for item in self.detected):
            return
        self.detected.append(DetectedTarget(triple=triple, source=source, path=path))

    @property
    def triples(self) -> tuple[str, ...]:
        return tuple(item.triple for item in self.detected)


def _ancestors(pkg_dir: Path, repo_root: Path) -> Iterator[Path]:
    """Yield ``pkg_dir`` and its parents up to and including ``repo_root``."""

    current = pkg_dir.resolve()
    root = repo_root.resolve()
    while True:
        yield current
        if current == root or current.parent == current:
            return
        current = current.parent


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        LOGGER.warning("unable to read %s: %s", path, exc)
        return {}


def search_rust_toolchain(pkg_dir: Path, repo_root: Path) -> RustToolchain | None:
    """Return the nearest ``rust-toolchain`` declaration above ``pkg_dir``."""

    for directory in _ancestors(pkg_dir, repo_root):
        for name in ("rust-toolchain.toml", "rust-toolchain"):
            path = directory / name
            if not path.is_file():
                continue
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as exc:
                LOGGER.warning("unable to read %s: %s", path, exc)
                continue
            try:
                payload = tomllib.loads(text)
            except tomllib.TOMLDecodeError:
                # legacy single-line form: `nightly-2024-01-01`
                return RustToolchain(channel=text.strip(), targets=(), path=path)
            section = payload.get("toolchain", {})
            targets = section.get("targets", [])
            return RustToolchain(
                channel=str(section.get("channel", "")),
                targets=tuple(str(item) for item in targets if isinstance(item, str)),
                path=path,
            )
    return None


def _as_triples(value: Any) -> Iterable[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, list):
        yield from (item for item in value if isinstance(item, str))


def _cargo_config_targets(pkg_dir: Path, repo_root: Path, detection: TargetDetection) -> None:
    for directory in _ancestors(pkg_dir, repo_root):
        for name in ("config.toml", "config"):
            path = directory / ".cargo" / name
            if path.is_file():
                build = _load_toml(path).get("build", {})
                for triple in _as_triples(build.get("target")):
                    detection.add(triple, TargetSource.CARGO_CONFIG, path)
                return


def _docsrs_targets(pkg_dir: Path, detection: TargetDetection) -> None:
    manifest = pkg_dir / "Cargo.toml"
    if not manifest.is_file():
        return
    docsrs = _load_toml(manifest).get("package", {}).get("metadata", {}).get("docs", {}).get("rs", {})
    for key in ("default-target", "targets"):
        for triple in _as_triples(docsrs.get(key)):
            detection.add(triple, TargetSource.DOCSRS_PKG, manifest)


def _is_script(path: Path) -> bool:
    return path.suffix in SCRIPT_SUFFIXES or path.stem.startswith(SCRIPT_STEMS)


def scan_scripts_for_target(paths: Iterable[Path]) -> Iterator[tuple[str, Path]]:
    """Yield ``(triple, path)`` for every explicit target mentioned in ``paths``."""

    for path in paths:
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            LOGGER.debug("unable to scan %s: %s", path, exc)
            continue
        for match in TARGET_PATTERN.finditer(text):
            yield match.group("triple"), path


def detect_targets(pkg_dir: Path, repo_root: Path) -> TargetDetection:
    """Detect target triples and the toolchain for the package in ``pkg_dir``.

    Args:
        pkg_dir: Directory containing the package manifest.
        repo_root: Root of the repository; upward searches stop here.

    Returns:
        TargetDetection: Detected targets (possibly empty, meaning the host
        target) and the declared toolchain, if any.
    """

    detection = TargetDetection()
    toolchain = search_rust_toolchain(pkg_dir, repo_root)
    if toolchain is not None:
        detection.toolchain = toolchain
        for triple in toolchain.targets:
            detection.add(triple, TargetSource.RUST_TOOLCHAIN, toolchain.path)
    _cargo_config_targets(pkg_dir, repo_root, detection)
    _docsrs_targets(pkg_dir, detection)

    pkg_scripts = walk_files(pkg_dir, max_depth=SCRIPT_MAX_DEPTH, excluded_dirs=(".github",), keep=_is_script)
    for triple, path in scan_scripts_for_target(pkg_scripts):
        detection.add(triple, TargetSource.PKG_SCRIPTS, path)
    if pkg_dir.resolve() != repo_root.resolve():
        repo_scripts = walk_files(repo_root, max_depth=1, keep=_is_script)
        for triple, path in scan_scripts_for_target(repo_scripts):
            detection.add(triple, TargetSource.REPO_SCRIPTS, path)
    github_dir = repo_root / ".github"
    if github_dir.is_dir():
        workflows = walk_files(github_dir, max_depth=SCRIPT_MAX_DEPTH, keep=lambda path: path.is_file())
        for triple, path in scan_scripts_for_target(workflows):
            detection.add(triple, TargetSource.REPO_GITHUB, path)
    return detection


__all__ = [
    "DetectedTarget",
    "RustToolchain",
    "TargetDetection",
    "TargetSource",
    "detect_targets",
    "scan_scripts_for_target",
    "search_rust_toolchain",
]
