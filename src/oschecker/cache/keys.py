# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Composite cache keys and their order-preserving byte encoding.

Strings are written with every ``0x00`` escaped as ``0x00 0xFF`` and a
terminating ``0x00``; optional values are prefixed with ``0x00`` (absent) or
``0x01`` (present); lists write ``0x01`` before each element and ``0x00``
after the last. Comparing two encodings byte by byte therefore orders keys
field by field, exactly like comparing the key tuples.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from ..checkers import CheckerTool
from ..errors import CacheError

_NUL: Final[int] = 0x00
_ESCAPE: Final[int] = 0xFF
_ABSENT: Final[int] = 0x00
_PRESENT: Final[int] = 0x01


@dataclass(frozen=True, slots=True)
class CacheRepo:
    """Repository identity of a cached invocation."""

    user: str
    repo: str
    pkg_name: str
    sha: str
    branch: str


@dataclass(frozen=True, slots=True)
class CacheChecker:
    """Checker identity; ``version`` and ``sha`` pin the tool build when known."""

    checker: CheckerTool
    version: str | None = None
    sha: str | None = None


@dataclass(frozen=True, slots=True)
class CacheCmd:
    """Command identity of a cached invocation."""

    cmd: str
    target: str
    features: tuple[str, ...] = ()
    rustflags: tuple[str, ...] = ()


class _Writer:
    __slots__ = ("_buffer",)

    def __init__(self) -> None:
        self._buffer = bytearray()

    def string(self, value: str) -> None:
        for byte in value.encode("utf-8"):
            self._buffer.append(byte)
            if byte == _NUL:
                self._buffer.append(_ESCAPE)
        self._buffer.append(_NUL)

    def optional(self, value: str | None) -> None:
        if value is None:
            self._buffer.append(_ABSENT)
        else:
            self._buffer.append(_PRESENT)
            self.string(value)

    def strings(self, values: Sequence[str]) -> None:
        for value in values:
            self._buffer.append(_PRESENT)
            self.string(value)
        self._buffer.append(_ABSENT)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


class _Reader:
    __slots__ = ("_data", "_pos")

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def _byte(self) -> int:
        if self._pos >= len(self._data):
            raise CacheError("cache key ended unexpectedly")
        value = self._data[self._pos]
        self._pos += 1
        return value

    def string(self) -> str:
        raw = bytearray()
        while True:
            byte = self._byte()
            if byte != _NUL:
                raw.append(byte)
                continue
            if self._pos < len(self._data) and self._data[self._pos] == _ESCAPE:
                self._pos += 1
                raw.append(_NUL)
                continue
            break
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CacheError("cache key holds invalid UTF-8") from exc

    def optional(self) -> str | None:
        marker = self._byte()
        if marker == _ABSENT:
            return None
        if marker != _PRESENT:
            raise CacheError(f"invalid optional marker {marker:#04x} in cache key")
        return self.string()

    def strings(self) -> tuple[str, ...]:
        values: list[str] = []
        while (marker := self._byte()) == _PRESENT:
            values.append(self.string())
        if marker != _ABSENT:
            raise CacheError(f"invalid list marker {marker:#04x} in cache key")
        return tuple(values)

    def finish(self) -> None:
        if self._pos != len(self._data):
            raise CacheError("cache key has trailing bytes")


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Full identity of a cached invocation result.

    Two invocations share a cache entry only when every field matches.
    Leaving ``checker.version`` and ``checker.sha`` unset makes different
    builds of the same tool collide on one key.
    """

    repo: CacheRepo
    checker: CacheChecker
    cmd: CacheCmd

    def _write_scope(self, writer: _Writer) -> None:
        writer.string(self.repo.user)
        writer.string(self.repo.repo)
        writer.string(self.repo.pkg_name)

    def _write_rest(self, writer: _Writer) -> None:
        writer.string(self.checker.checker.cli_name)
        writer.optional(self.checker.version)
        writer.optional(self.checker.sha)
        writer.string(self.cmd.cmd)
        writer.string(self.cmd.target)
        writer.strings(self.cmd.features)
        writer.strings(self.cmd.rustflags)

    def encode(self) -> bytes:
        """Return the canonical, order-preserving byte encoding of the key."""

        writer = _Writer()
        self._write_scope(writer)
        writer.string(self.repo.sha)
        writer.string(self.repo.branch)
        self._write_rest(writer)
        return writer.getvalue()

    def scope(self) -> bytes:
        """Return the encoding without ``sha`` and ``branch``.

        Every revision of the same invocation shares one scope, which is what
        falling back to the last cached result looks up.
        """

        writer = _Writer()
        self._write_scope(writer)
        self._write_rest(writer)
        return writer.getvalue()

    @classmethod
    def decode(cls, data: bytes) -> CacheKey:
        """Rebuild a key from :meth:`encode` output.

        Raises:
            CacheError: If ``data`` is not a valid key encoding.
        """

        reader = _Reader(data)
        repo = CacheRepo(
            user=reader.string(),
            repo=reader.string(),
            pkg_name=reader.string(),
            sha=reader.string(),
            branch=reader.string(),
        )
        name = reader.string()
        tool = CheckerTool.from_str(name)
        if tool is None:
            raise CacheError(f"cache key names unknown checker `{name}`")
        checker = CacheChecker(checker=tool, version=reader.optional(), sha=reader.optional())
        cmd = CacheCmd(
            cmd=reader.string(),
            target=reader.string(),
            features=reader.strings(),
            rustflags=reader.strings(),
        )
        reader.finish()
        return cls(repo=repo, checker=checker, cmd=cmd)

    def describe(self) -> str:
        return f"{self.repo.user}/{self.repo.repo}#{self.repo.pkg_name} {self.checker.checker} [{self.cmd.target}]"


__all__ = ["CacheChecker", "CacheCmd", "CacheKey", "CacheRepo"]
