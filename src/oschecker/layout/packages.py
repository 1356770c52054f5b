# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Cargo package discovery for a checked-out repository."""

from __future__ import annotations

import fnmatch
import json
import logging
import os
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from ..errors import ExecutionError
from ..execution.process import ProcessOutput, run_command

LOGGER = logging.getLogger(__name__)

MANIFEST_NAME: Final[str] = "Cargo.toml"
NO_JUMP_IN: Final[frozenset[str]] = frozenset({".git", "target"})
DEFAULT_MAX_DEPTH: Final[int] = 10

CommandRunner = Callable[[Sequence[str], Path], ProcessOutput]


@dataclass(frozen=True, slots=True)
class Package:
    """A workspace member discovered in a repository."""

    name: str
    manifest_path: Path
    workspace_root: Path

    @property
    def pkg_dir(self) -> Path:
        """Return the directory holding the package manifest."""

        return self.manifest_path.parent


class Packages(Mapping[str, Package]):
    """Discovered packages keyed by name, iterated in name order."""

    def __init__(self, packages: Iterable[Package], *, repo_root: Path) -> None:
        self._by_name: dict[str, Package] = {pkg.name: pkg for pkg in sorted(packages, key=lambda pkg: pkg.name)}
        self.repo_root = repo_root

    def __getitem__(self, key: str) -> Package:
        return self._by_name[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_name)

    def __len__(self) -> int:
        return len(self._by_name)

    def workspace_roots(self) -> list[Path]:
        """Return each distinct workspace root once, sorted."""

        return sorted({pkg.workspace_root for pkg in self._by_name.values()})

    def relative_dir(self, package: Package) -> str:
        """Return ``package``'s directory relative to the repository root."""

        try:
            relative = package.pkg_dir.relative_to(self.repo_root)
        except ValueError:
            return package.pkg_dir.as_posix()
        return relative.as_posix() or "."

    def select(
        self,
        *,
        skip_globs: Sequence[str] = (),
        only_globs: Sequence[str] = (),
        always: Iterable[str] = (),
    ) -> list[Package]:
        """Return packages kept by the directory glob filters.

        Args:
            skip_globs: Patterns of package dirs to leave out.
            only_globs: When non-empty, only package dirs matching one of these
                patterns are kept.
            always: Package names kept regardless of the filters.

        Returns:
            list[Package]: Selected packages in name order.
        """

        forced = set(always)
        selected: list[Package] = []
        for name, package in self._by_name.items():
            if name in forced:
                selected.append(package)
                continue
            rel_dir = self.relative_dir(package)
            if only_globs and not _matches_any(rel_dir, only_globs):
                continue
            if _matches_any(rel_dir, skip_globs):
                LOGGER.debug("skipping package %s in %s", name, rel_dir)
                continue
            selected.append(package)
        return selected


def _matches_any(rel_dir: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch.fnmatch(rel_dir, pattern) for pattern in patterns)


def walk_files(
    root: Path,
    *,
    max_depth: int,
    excluded_dirs: Iterable[str] = (),
    keep: Callable[[Path], bool],
) -> list[Path]:
    """Return files under ``root`` accepted by ``keep`` without entering build dirs.

    Args:
        root: Directory to walk.
        max_depth: Maximum directory depth below ``root``.
        excluded_dirs: Extra directory names never entered.
        keep: Predicate selecting the files to return.

    Returns:
        list[Path]: Matching files sorted by path.
    """

    skipped = NO_JUMP_IN | frozenset(excluded_dirs)
    found: list[Path] = []
    base_depth = len(root.parts)
    for current, dirnames, filenames in os.walk(root):
        current_path = Path(current)
        if len(current_path.parts) - base_depth >= max_depth:
            dirnames[:] = []
        else:
            dirnames[:] = [name for name in dirnames if name not in skipped]
        found.extend(path for path in (current_path / name for name in filenames) if keep(path))
    return sorted(found)


def default_runner(argv: Sequence[str], cwd: Path) -> ProcessOutput:
    return run_command(argv, cwd=cwd)


def discover_packages(
    repo_root: Path,
    *,
    runner: CommandRunner | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Packages:
    """Find every workspace member of every cargo workspace in ``repo_root``.

    Args:
        repo_root: Root of the checked-out repository.
        runner: Callable running ``cargo metadata``; tests supply a fake.
        max_depth: Maximum directory depth searched for manifests.

    Returns:
        Packages: Discovered packages.

    Raises:
        ExecutionError: If ``cargo metadata`` fails for a workspace.
    """

    run = runner or default_runner
    manifests = walk_files(repo_root, max_depth=max_depth, keep=lambda path: path.name == MANIFEST_NAME)
    packages: dict[str, Package] = {}
    covered: set[Path] = set()
    for manifest in manifests:
        if manifest in covered:
            continue
        argv = ["cargo", "metadata", "--no-deps", "--format-version", "1", "--manifest-path", str(manifest)]
        output = run(argv, manifest.parent)
        if output.returncode != 0:
            raise ExecutionError(
                f"cargo metadata failed for {manifest}:\n{output.stderr}",
                command=" ".join(argv),
            )
        for package in _parse_metadata(output.stdout, manifest):
            packages.setdefault(package.name, package)
            covered.add(package.manifest_path)
    return Packages(packages.values(), repo_root=repo_root)


def _parse_metadata(stdout: str, manifest: Path) -> list[Package]:
    try:
        payload = json.loads(stdout)
    except json.JSONDecodeError as exc:
        raise ExecutionError(f"cargo metadata emitted invalid JSON for {manifest}", command="cargo metadata") from exc
    workspace_root = Path(payload.get("workspace_root", manifest.parent))
    members = set(payload.get("workspace_members", []))
    found: list[Package] = []
    for entry in payload.get("packages", []):
        if members and entry.get("id") not in members:
            continue
        found.append(
            Package(
                name=str(entry["name"]),
                manifest_path=Path(entry["manifest_path"]),
                workspace_root=workspace_root,
            ),
        )
    return found


__all__ = ["CommandRunner", "Package", "Packages", "default_runner", "discover_packages", "walk_files"]
