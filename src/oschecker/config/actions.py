# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Per-checker actions: run heuristically, skip, or run explicit shell steps.

Each checker key in a configuration maps to one of three values::

    fmt: true            # run with the built-in heuristic command
    miri: false          # never run
    clippy: |            # run each non-comment line as a command
      # lint with extra features
      cargo clippy -F a,b,c
"""

from __future__ import annotations

import shlex
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import TypeAlias

from ..checkers import REAL_CHECKERS, CheckerTool
from ..errors import ConfigError


@dataclass(frozen=True, slots=True)
class Perform:
    """Run (``True``) or skip (``False``) the checker's heuristic invocation."""

    enabled: bool


@dataclass(frozen=True, slots=True)
class Steps:
    """Literal shell invocations supplied by the configuration author."""

    lines: tuple[str, ...]

    def validate_checker_name(self, name: str) -> str | None:
        """Return the first step that does not mention ``name``.

        A command such as ``make clippy`` is accepted under the ``clippy``
        key; ``cargo miri run`` is not.

        Args:
            name: Canonical checker name expected in every step.

        Returns:
            str | None: Offending step, or ``None`` when every step matches.
        """

        for line in self.lines:
            if name not in line:
                return line
        return None


Action: TypeAlias = Perform | Steps


def strip_comment(line: str) -> str:
    """Return ``line`` trimmed with any unquoted ``#`` comment removed."""

    quote: str | None = None
    for index, char in enumerate(line):
        if quote is not None:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == "#":
            return line[:index].strip()
    return line.strip()


def parse_steps(text: str) -> tuple[str, ...]:
    """Split multi-line command text into trimmed, comment-free steps."""

    stripped = (strip_comment(line) for line in text.splitlines())
    return tuple(line for line in stripped if line)


def validate_shell_steps(steps: Iterable[str], *, scope: str) -> None:
    """Raise :class:`ConfigError` for the first step ``sh`` could not parse."""

    for step in steps:
        try:
            shlex.split(step)
        except ValueError as exc:
            raise ConfigError(f"For {scope}, `{step}` is not a valid shell command: {exc}") from exc


def parse_action(value: object) -> Action:
    """Decode a raw configuration scalar into an :class:`Action`.

    Args:
        value: YAML/JSON boolean, ``"true"``/``"false"`` text, or command text.

    Returns:
        Action: Decoded action.

    Raises:
        ValueError: If ``value`` is neither a boolean nor a string.
    """

    if isinstance(value, (Perform, Steps)):
        return value
    if isinstance(value, bool):
        return Perform(value)
    if not isinstance(value, str):
        raise ValueError("expected a boolean, a string or lines of string")
    trimmed = value.strip()
    if trimmed == "true":
        return Perform(True)
    if trimmed == "false":
        return Perform(False)
    return Steps(parse_steps(trimmed))


def dump_action(action: Action) -> bool | str:
    """Return the configuration scalar that round-trips to ``action``."""

    if isinstance(action, Perform):
        return action.enabled
    return "\n".join(action.lines)


class Cmds(Mapping[CheckerTool, Action]):
    """Insertion-ordered mapping from checker to action.

    Instances are immutable; :meth:`merge` and :meth:`enable_all_checkers`
    return new mappings so a package override can never leak into the
    baseline used for its siblings.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[tuple[CheckerTool, Action]] = ()) -> None:
        self._entries: dict[CheckerTool, Action] = dict(entries)

    @classmethod
    def new_with_all_checkers_enabled(
        cls,
        enabled: bool = True,
        *,
        excluded: Iterable[CheckerTool] = (),
    ) -> Cmds:
        """Return a baseline where every real checker maps to ``Perform(enabled)``.

        Args:
            enabled: Value assigned to every checker not in ``excluded``.
            excluded: Checkers forced to ``Perform(False)``.

        Returns:
            Cmds: Baseline command table. The synthetic ``cargo`` tool is
            never part of it.
        """

        skip = frozenset(excluded)
        return cls((tool, Perform(enabled and tool not in skip)) for tool in REAL_CHECKERS)

    def enable_all_checkers(self, enabled: bool = True) -> Cmds:
        """Return the baseline for this table's checker set."""

        return Cmds((tool, Perform(enabled)) for tool in self._entries)

    def merge(self, other: Mapping[CheckerTool, Action]) -> Cmds:
        """Return a new table where entries of ``other`` override ours."""

        merged = dict(self._entries)
        merged.update(other)
        return Cmds(merged.items())

    def is_enabled(self, tool: CheckerTool) -> bool:
        """Return whether ``tool`` will produce at least one invocation."""

        action = self._entries.get(tool)
        if isinstance(action, Steps):
            return bool(action.lines)
        return isinstance(action, Perform) and action.enabled

    def validate_checker_names(self, *, scope: str) -> None:
        """Ensure every custom step mentions its checker's name and parses as a shell command.

        Args:
            scope: Human-readable location used in the error message.

        Raises:
            ConfigError: If a step was filed under the wrong checker or has
                unbalanced quotes or a dangling escape.
        """

        for tool, action in self._entries.items():
            if not isinstance(action, Steps):
                continue
            failed = action.validate_checker_name(tool.cli_name)
            if failed is not None:
                raise ConfigError(
                    f"For {scope}, `{failed}` doesn't contain the corresponding checker name `{tool.cli_name}`",
                )
            validate_shell_steps(action.lines, scope=f"{tool.cli_name} in {scope}")

    def __getitem__(self, key: CheckerTool) -> Action:
        return self._entries[key]

    def __iter__(self) -> Iterator[CheckerTool]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Cmds):
            return list(self._entries.items()) == list(other._entries.items())
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self._entries.items()))

    def __repr__(self) -> str:
        return f"Cmds({self._entries!r})"


__all__ = [
    "Action",
    "Cmds",
    "Perform",
    "Steps",
    "dump_action",
    "parse_action",
    "parse_steps",
    "strip_comment",
    "validate_shell_steps",
]
