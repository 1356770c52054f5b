# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import pytest

from oschecker.cache.repo import DbRepo
from oschecker.cache.store import CacheStore
from oschecker.execution.process import ProcessOutput, ProcessRegistry
from oschecker.layout.git import RepoIdentity
from oschecker.layout.packages import Package, Packages


def make_package(repo_root: Path, name: str, rel_dir: str = "") -> Package:
    pkg_dir = repo_root / rel_dir if rel_dir else repo_root
    return Package(name=name, manifest_path=pkg_dir / "Cargo.toml", workspace_root=repo_root)


def metadata_json(repo_root: Path, members: Mapping[str, str]) -> str:
    """Return ``cargo metadata`` output for ``{name: rel_dir}`` members."""

    packages = [
        {
            "id": f"{name} 0.1.0 (path+file://{repo_root / rel_dir})",
            "name": name,
            "manifest_path": str((repo_root / rel_dir / "Cargo.toml") if rel_dir else repo_root / "Cargo.toml"),
        }
        for name, rel_dir in members.items()
    ]
    return json.dumps(
        {
            "packages": packages,
            "workspace_members": [entry["id"] for entry in packages],
            "workspace_root": str(repo_root),
        },
    )


class FakeExecutor:
    """Stand-in for ``run_command`` returning canned outputs by program word."""

    def __init__(self, outputs: Callable[[list[str]], ProcessOutput] | None = None) -> None:
        self._outputs = outputs or (lambda argv: ProcessOutput(returncode=0, stdout="", stderr="", duration_ms=5))
        self.calls: list[tuple[list[str], Path | None, dict[str, str]]] = []
        self._lock = threading.Lock()

    def __call__(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        registry: ProcessRegistry | None = None,
    ) -> ProcessOutput:
        argv = list(args)
        with self._lock:
            self.calls.append((argv, cwd, dict(env or {})))
        return self._outputs(argv)

    def commands(self) -> list[str]:
        with self._lock:
            return [" ".join(argv) for argv, _, _ in self.calls]


@pytest.fixture
def repo_root(tmp_path: Path) -> Path:
    root = tmp_path / "repos" / "octo" / "demo"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def two_packages(repo_root: Path) -> Packages:
    return Packages(
        [make_package(repo_root, "beta", "crates/beta"), make_package(repo_root, "alpha", "crates/alpha")],
        repo_root=repo_root,
    )


@pytest.fixture
def identity() -> RepoIdentity:
    return RepoIdentity(user="octo", repo="demo", sha="abc123", branch="main")


@pytest.fixture
def store() -> CacheStore:
    with CacheStore.in_memory() as cache_store:
        yield cache_store


@pytest.fixture
def db_repo(store: CacheStore, identity: RepoIdentity) -> DbRepo:
    return DbRepo(store, identity)


def json_segment(records: Sequence[object], *, prefix: str = "report:") -> str:
    """Render ``records`` the way lockbud and AtomVChecker embed them in their logs."""

    lines = json.dumps(list(records), indent=2).splitlines()
    body = "\n".join(f"    {line}" for line in lines[1:])
    return f"{prefix} [\n{body}\n"


def double_lock(first: str, second: str, *, possibility: str = "Possibly") -> dict[str, object]:
    return {
        "DoubleLock": {
            "bug_kind": "DoubleLock",
            "possibility": possibility,
            "diagnosis": {
                "first_lock_type": "StdMutex(i32)",
                "first_lock_span": f"{first} (#0)",
                "second_lock_type": "StdMutex(i32)",
                "second_lock_span": f"{second} (#0)",
                "callchains": [],
            },
            "explanation": "The first lock is not released when acquiring the second lock",
        },
    }
