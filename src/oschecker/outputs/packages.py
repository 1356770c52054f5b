# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Collect invocation results per package."""

from __future__ import annotations

import re
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Final

from ..cache.repo import DbRepo
from ..cache.values import CacheValue
from ..checkers import CheckerTool
from ..config.resolve import Resolve
from ..diagnostics.raw import strip_ansi

# A cargo build error somewhere in the output, not on its first line.
CARGO_ERROR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\nerror: ")


@dataclass(frozen=True, slots=True)
class Output:
    """An invocation and the cached or fresh value it produced."""

    resolve: Resolve
    value: CacheValue

    @property
    def checker(self) -> CheckerTool:
        return self.resolve.checker

    @property
    def cache_hit(self) -> bool:
        return self.value.cache_hit

    @property
    def duration_ms(self) -> int:
        return self.value.duration_ms


@dataclass(slots=True)
class Outputs:
    """Results of one package."""

    pkg_name: str
    items: list[Output] = field(default_factory=list)

    def push(self, output: Output) -> None:
        self.items.append(output)

    def sort_by_checkers(self) -> None:
        self.items.sort(key=lambda item: (item.checker.sort_index, item.resolve.target, item.resolve.features))

    def count(self) -> int:
        return sum(item.value.count() for item in self.items)

    def __iter__(self) -> Iterator[Output]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


def cargo_header(resolve: Resolve, timestamp: int) -> str:
    """Return the comment lines identifying the invocation a build error came from."""

    return "\n".join(
        (
            f"// pkg_name={resolve.pkg_name}, checker={resolve.checker.cli_name}",
            f"// toolchain={resolve.toolchain}, target={resolve.target}",
            f"// features={resolve.features}",
            f"// pkg_dir={resolve.pkg_dir}",
            f"// cmd={resolve.cmd}",
            f"// timestamp={timestamp}",
        ),
    )


def cargo_value_for(resolve: Resolve, stderr: str) -> CacheValue | None:
    """Return a ``cargo`` value when ``stderr`` reports a build error.

    Args:
        resolve: Invocation that produced ``stderr``.
        stderr: Captured standard error of the invocation.

    Returns:
        CacheValue | None: Header plus stripped stderr, or ``None`` when the
        build did not fail.
    """

    stripped = strip_ansi(stderr)
    if not CARGO_ERROR_PATTERN.search(stripped):
        return None
    value = CacheValue()
    diagnostic = f"{cargo_header(resolve, value.unix_timestamp_milli)}\n\n{stripped.strip()}"
    return value.update_diagnostics(lambda diagnostics: diagnostics.append(diagnostic))


class PackagesOutputs:
    """Results of every package of a repository, safe to fill from worker threads.

    Each package has its own lock, so results for one package are merged
    one at a time while different packages proceed in parallel.
    """

    def __init__(self) -> None:
        self._outputs: dict[str, Outputs] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, pkg_name: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(pkg_name)
            if lock is None:
                lock = self._locks[pkg_name] = threading.Lock()
                self._outputs[pkg_name] = Outputs(pkg_name=pkg_name)
            return lock

    def push(self, resolve: Resolve, value: CacheValue) -> None:
        with self.lock_for(resolve.pkg_name):
            self._outputs[resolve.pkg_name].push(Output(resolve=resolve, value=value))

    def fetch_cache(self, resolve: Resolve, db_repo: DbRepo, *, use_last_cache: bool = False) -> bool:
        """Reuse the cached result of ``resolve`` when there is one.

        The synthesized ``cargo`` entry of the same invocation is fetched
        along with it.

        Args:
            resolve: Invocation to look up.
            db_repo: Cache access for the repository.
            use_last_cache: Accept a result recorded at another revision.

        Returns:
            bool: ``True`` on a cache hit, in which case nothing needs to run.
        """

        value = db_repo.read_cache(db_repo.key(resolve), use_last_cache=use_last_cache)
        if value is None:
            return False
        self.push(resolve, value)
        cargo = resolve.new_cargo()
        cargo_value = db_repo.read_cache(db_repo.key(cargo), use_last_cache=use_last_cache)
        if cargo_value is not None:
            self.push(cargo, cargo_value)
        return True

    def push_output_with_cargo(self, resolve: Resolve, value: CacheValue, stderr: str) -> CacheValue | None:
        """Record a fresh result and, for a failed build, a ``cargo`` entry.

        Returns:
            CacheValue | None: The synthesized ``cargo`` value, if any, so the
            caller can cache it under ``resolve.new_cargo()``.
        """

        self.push(resolve, value)
        cargo_value = cargo_value_for(resolve, stderr)
        if cargo_value is not None:
            self.push(resolve.new_cargo(), cargo_value)
        return cargo_value

    def sort_by_name_and_checkers(self) -> None:
        with self._guard:
            self._outputs = dict(sorted(self._outputs.items()))
            for outputs in self._outputs.values():
                outputs.sort_by_checkers()

    def get(self, pkg_name: str) -> Outputs | None:
        return self._outputs.get(pkg_name)

    def count(self) -> int:
        return sum(outputs.count() for outputs in self._outputs.values())

    def __iter__(self) -> Iterator[Outputs]:
        return iter(list(self._outputs.values()))

    def __len__(self) -> int:
        return len(self._outputs)


__all__ = ["CARGO_ERROR_PATTERN", "Output", "Outputs", "PackagesOutputs", "cargo_header", "cargo_value_for"]
