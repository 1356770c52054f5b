# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for cache key encoding."""

from __future__ import annotations

import pytest

from oschecker.cache import CacheChecker, CacheCmd, CacheKey, CacheRepo
from oschecker.checkers import CheckerTool
from oschecker.errors import CacheError


def _key(
    *,
    pkg_name: str = "alpha",
    sha: str = "abc",
    version: str | None = None,
    cmd: str = "cargo clippy",
    features: tuple[str, ...] = (),
) -> CacheKey:
    return CacheKey(
        repo=CacheRepo(user="octo", repo="demo", pkg_name=pkg_name, sha=sha, branch="main"),
        checker=CacheChecker(checker=CheckerTool.CLIPPY, version=version),
        cmd=CacheCmd(cmd=cmd, target="x86_64-unknown-linux-gnu", features=features, rustflags=("-D", "warnings")),
    )


def test_decode_inverts_encode_with_nul_bytes() -> None:
    key = _key(cmd="cargo clippy -- \x00odd", version="0.1.84", features=("--features=a\x00b", ""))

    assert CacheKey.decode(key.encode()) == key


def test_encoding_preserves_field_order() -> None:
    keys = [
        _key(pkg_name="alpha", features=("--features=b",)),
        _key(pkg_name="alpha", features=()),
        _key(pkg_name="alpha", version="1.0"),
        _key(pkg_name="al"),
        _key(pkg_name="beta", cmd="a"),
        _key(pkg_name="alpha", features=("--features=a", "x")),
    ]

    def as_tuple(key: CacheKey) -> tuple[object, ...]:
        return (
            key.repo.pkg_name,
            key.checker.version is not None,
            key.checker.version or "",
            key.cmd.features,
        )

    assert sorted(keys, key=CacheKey.encode) == sorted(keys, key=as_tuple)


def test_scope_ignores_revision() -> None:
    assert _key(sha="abc").scope() == _key(sha="def").scope()
    assert _key(sha="abc").encode() != _key(sha="def").encode()
    assert _key(cmd="cargo clippy").scope() != _key(cmd="cargo clippy --all").scope()


def test_decode_rejects_garbage() -> None:
    encoded = _key().encode()

    with pytest.raises(CacheError):
        CacheKey.decode(encoded[:-3])
    with pytest.raises(CacheError, match="trailing"):
        CacheKey.decode(encoded + b"\x01")
