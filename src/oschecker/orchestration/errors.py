# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Itemized errors collected while running checkers."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from enum import Enum

from pydantic import BaseModel, ConfigDict

from ..checkers import CheckerTool


class ErrorStage(str, Enum):
    """Enumerate where in a run an error happened."""

    CONFIG = "config"
    LAYOUT = "layout"
    SETUP = "setup"
    CACHE = "cache"
    EXECUTION = "execution"


class RunError(BaseModel):
    """One error, located as precisely as the failure allows."""

    model_config = ConfigDict(frozen=True)

    stage: ErrorStage
    repo: str
    message: str
    pkg_name: str | None = None
    checker: CheckerTool | None = None
    cmd: str | None = None

    def location(self) -> str:
        parts = [self.repo]
        if self.pkg_name:
            parts.append(self.pkg_name)
        if self.checker is not None:
            parts.append(self.checker.cli_name)
        return " / ".join(parts)


class RunErrors:
    """Thread-safe, ordered collection of :class:`RunError` entries."""

    def __init__(self) -> None:
        self._items: list[RunError] = []
        self._lock = threading.Lock()

    def add(self, error: RunError) -> None:
        with self._lock:
            self._items.append(error)

    def for_repo(self, repo: str) -> list[RunError]:
        with self._lock:
            return [error for error in self._items if error.repo == repo]

    def summary_lines(self) -> list[str]:
        """Return one line per error, prefixed with its location."""

        with self._lock:
            return [f"[{error.stage.value}] {error.location()}: {error.message}" for error in self._items]

    def __iter__(self) -> Iterator[RunError]:
        with self._lock:
            return iter(list(self._items))

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __bool__(self) -> bool:
        return len(self) > 0


__all__ = ["ErrorStage", "RunError", "RunErrors"]
