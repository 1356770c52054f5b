# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Cached invocation results."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import CacheError


def now_millis() -> int:
    """Return the current unix time in milliseconds."""

    return time.time_ns() // 1_000_000


class CacheValue(BaseModel):
    """Raw diagnostics of one invocation and when they were last updated.

    The timestamp and the diagnostics change together: :meth:`update_diagnostics`
    restamps, and the store restamps whatever it writes through
    :meth:`CacheStore.set_or_replace`.
    """

    model_config = ConfigDict(frozen=True)

    unix_timestamp_milli: int = Field(default_factory=now_millis)
    diagnostics: tuple[str, ...] = ()
    duration_ms: int = 0
    cache_hit: bool = Field(default=False, exclude=True)

    @classmethod
    def new(cls, diagnostics: Iterable[str], *, duration_ms: int = 0) -> CacheValue:
        return cls(diagnostics=tuple(diagnostics), duration_ms=duration_ms)

    def update_diagnostics(self, update: Callable[[list[str]], None]) -> CacheValue:
        """Return a copy whose diagnostics were changed in place by ``update``."""

        diagnostics = list(self.diagnostics)
        update(diagnostics)
        return self.model_copy(update={"diagnostics": tuple(diagnostics), "unix_timestamp_milli": now_millis()})

    def as_cache_hit(self) -> CacheValue:
        return self.model_copy(update={"cache_hit": True})

    def count(self) -> int:
        return len(self.diagnostics)

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_bytes(cls, payload: bytes) -> CacheValue:
        """Decode a stored value.

        Raises:
            CacheError: If ``payload`` is not a valid encoded value.
        """

        try:
            return cls.model_validate_json(payload)
        except ValidationError as exc:
            raise CacheError(f"cached value could not be decoded: {exc}") from exc


__all__ = ["CacheValue", "now_millis"]
