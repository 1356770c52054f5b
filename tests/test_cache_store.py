# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the cache store and repository-scoped cache access."""

from __future__ import annotations

import sqlite3
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path

import pytest

from oschecker.cache import CacheChecker, CacheCmd, CacheKey, CacheRepo, CacheStore, CacheValue, DbRepo
from oschecker.checkers import CheckerTool
from oschecker.config import Resolve
from oschecker.errors import CacheError, CacheOpenError
from oschecker.layout.git import RepoIdentity


def _key(sha: str = "abc", cmd: str = "cargo clippy") -> CacheKey:
    return CacheKey(
        repo=CacheRepo(user="octo", repo="demo", pkg_name="alpha", sha=sha, branch="main"),
        checker=CacheChecker(checker=CheckerTool.CLIPPY),
        cmd=CacheCmd(cmd=cmd, target="x86_64-unknown-linux-gnu"),
    )


def _resolve(cmd: str = "cargo clippy") -> Resolve:
    return Resolve(
        pkg_name="alpha",
        pkg_dir=Path("/work/alpha"),
        features_args=(),
        checker=CheckerTool.CLIPPY,
        target="x86_64-unknown-linux-gnu",
        toolchain="nightly",
        cmd=cmd,
    )


def test_set_or_replace_sees_previous_value(store: CacheStore) -> None:
    seen: list[CacheValue | None] = []

    def append(diag: str):
        def update(old: CacheValue | None) -> CacheValue:
            seen.append(old)
            base = old or CacheValue()
            return base.update_diagnostics(lambda diagnostics: diagnostics.append(diag))

        return update

    first = store.set_or_replace(_key(), append("one"))
    second = store.set_or_replace(_key(), append("two"))

    assert seen[0] is None
    assert seen[1] == first
    assert second.diagnostics == ("one", "two")
    assert second.unix_timestamp_milli >= first.unix_timestamp_milli
    assert store.get(_key()) == second
    assert len(store) == 1


def test_set_or_replace_stamps_the_written_value(store: CacheStore) -> None:
    stale = CacheValue(unix_timestamp_milli=1, diagnostics=("kept",))

    written = store.set_or_replace(_key(), lambda old: stale)

    assert written.diagnostics == ("kept",)
    assert written.unix_timestamp_milli > 1
    assert store.get(_key()) == written
    assert not hasattr(CacheValue, "touch")


def test_failed_update_keeps_old_value(store: CacheStore) -> None:
    store.set(_key(), CacheValue.new(["kept"]))

    def explode(old: CacheValue | None) -> CacheValue:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        store.set_or_replace(_key(), explode)

    value = store.get(_key())
    assert value is not None
    assert value.diagnostics == ("kept",)


def test_latest_in_scope_spans_revisions(store: CacheStore) -> None:
    store.set(_key(sha="old"), CacheValue(unix_timestamp_milli=1, diagnostics=("old",)))
    store.set(_key(sha="new"), CacheValue(unix_timestamp_milli=2, diagnostics=("new",)))
    store.set(_key(sha="new", cmd="cargo clippy --all"), CacheValue(unix_timestamp_milli=3, diagnostics=("other",)))

    latest = store.get_latest_in_scope(_key(sha="missing"))

    assert latest is not None
    assert latest.diagnostics == ("new",)
    assert [key.repo.sha for key in store.keys()] == ["new", "new", "old"]


def test_file_store_persists_across_connections(tmp_path: Path) -> None:
    path = tmp_path / "cache" / "db.sqlite3"
    with CacheStore.open(path) as first:
        first.set(_key(), CacheValue.new(["persisted"], duration_ms=12))

    with CacheStore.open(path) as second:
        value = second.get(_key())

    assert value is not None
    assert value.diagnostics == ("persisted",)
    assert value.duration_ms == 12
    assert value.cache_hit is False


def test_concurrent_writers_never_lose_updates(tmp_path: Path) -> None:
    with CacheStore.open(tmp_path / "db.sqlite3") as store:

        def add(index: int) -> None:
            store.set_or_replace(
                _key(),
                lambda old: (old or CacheValue()).update_diagnostics(lambda items: items.append(str(index))),
            )

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(add, range(40)))

        value = store.get(_key())

    assert value is not None
    assert sorted(value.diagnostics, key=int) == [str(index) for index in range(40)]


def test_open_rejects_directory(tmp_path: Path) -> None:
    with pytest.raises(CacheOpenError):
        CacheStore.open(tmp_path)


def test_open_rejects_non_database(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("this is not sqlite, just plain text that is long enough\n" * 20, encoding="utf-8")

    with pytest.raises(CacheOpenError):
        CacheStore.open(path)


def test_corrupt_value_reads_as_miss(store: CacheStore, db_repo: DbRepo) -> None:
    key = db_repo.key(_resolve())
    store._conn.execute(
        "INSERT INTO cache (key, scope, updated, value) VALUES (?, ?, ?, ?)",
        (key.encode(), key.scope(), 1, b"{not json"),
    )

    assert db_repo.read_cache(key) is None
    with pytest.raises(CacheError):
        store.get(key)


def test_write_without_replace_appends_new_diagnostics(db_repo: DbRepo) -> None:
    key = db_repo.key(_resolve())
    db_repo.write_cache(key, CacheValue.new(["a", "b"], duration_ms=10))

    written = db_repo.write_cache(key, CacheValue.new(["b", "c"], duration_ms=20))

    assert written is not None
    assert written.diagnostics == ("a", "b", "c")
    assert written.duration_ms == 20
    hit = db_repo.read_cache(key)
    assert hit is not None
    assert hit.cache_hit is True


def test_write_with_replace_discards_old_diagnostics(db_repo: DbRepo) -> None:
    key = db_repo.key(_resolve())
    db_repo.write_cache(key, CacheValue.new(["a"]))

    written = db_repo.write_cache(key, CacheValue.new(["z"]), replace=True)

    assert written is not None
    assert written.diagnostics == ("z",)


def test_use_last_cache_falls_back_to_other_revision(store: CacheStore, identity: RepoIdentity) -> None:
    old_repo = DbRepo(store, replace(identity, sha="old"))
    old_repo.write_cache(old_repo.key(_resolve()), CacheValue.new(["from old"]))
    current = DbRepo(store, identity)
    key = current.key(_resolve())

    assert current.read_cache(key) is None
    fallback = current.read_cache(key, use_last_cache=True)
    assert fallback is not None
    assert fallback.diagnostics == ("from old",)


def test_key_uses_pinned_checker_versions(store: CacheStore, identity: RepoIdentity) -> None:
    pinned = DbRepo(
        store,
        identity,
        checker_versions={CheckerTool.CLIPPY: CacheChecker(checker=CheckerTool.CLIPPY, version="0.1.84")},
    )

    key = pinned.key(_resolve())

    assert key.checker.version == "0.1.84"
    assert key.repo.sha == "abc123"


def test_write_failure_is_reported_as_none(tmp_path: Path, identity: RepoIdentity) -> None:
    store = CacheStore.open(tmp_path / "db.sqlite3")
    db_repo = DbRepo(store, identity)
    store.close()

    with pytest.raises(sqlite3.ProgrammingError):
        store._conn.execute("SELECT 1")
    assert db_repo.write_cache(db_repo.key(_resolve()), CacheValue.new(["x"])) is None
