# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Exception hierarchy shared by configuration, cache, extraction and execution."""

from __future__ import annotations


class OsCheckerError(RuntimeError):
    """Base class for every error raised by the checker pipeline."""


class ConfigError(OsCheckerError):
    """Raised when repository configuration input is invalid.

    Configuration errors abort the resolution of the affected repository
    before any checker is executed.
    """


class CacheError(OsCheckerError):
    """Raised when a cache entry cannot be read, decoded or written."""


class CacheOpenError(CacheError):
    """Raised when the cache database itself cannot be opened."""


class ExtractionError(OsCheckerError):
    """Raised when a structured segment of checker output cannot be parsed."""

    def __init__(self, message: str, *, segment: str) -> None:
        """Initialise the error with the offending raw segment.

        Args:
            message: Human-readable description of the parse failure.
            segment: Raw text that failed to parse.
        """

        super().__init__(message)
        self.segment = segment


class ExecutionError(OsCheckerError):
    """Raised when a checker process cannot be spawned or its output decoded."""

    def __init__(self, message: str, *, command: str) -> None:
        """Initialise the error with the command that failed.

        Args:
            message: Human-readable description of the failure.
            command: Command line that was being executed.
        """

        super().__init__(message)
        self.command = command


__all__ = [
    "CacheError",
    "CacheOpenError",
    "ConfigError",
    "ExecutionError",
    "ExtractionError",
    "OsCheckerError",
]
