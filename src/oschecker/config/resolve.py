# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Fully resolved checker invocations and the heuristic command table."""

from __future__ import annotations

import dataclasses
import re
import shlex
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, TypeAlias

from ..checkers import (
    HOST_TOOLCHAIN,
    TOOLCHAIN_LOCKBUD,
    TOOLCHAIN_MIRAI,
    TOOLCHAIN_RAPX,
    TOOLCHAIN_RUDRA,
    CheckerTool,
)

_ASSIGNMENT: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")
# `NAME=value`, `NAME="a b"` or `NAME='a b'` followed by a blank or the end.
_LEADING_ASSIGNMENT: Final[re.Pattern[str]] = re.compile(
    r"""\s*(?P<name>[A-Za-z_][A-Za-z0-9_]*)=(?P<value>"[^"]*"|'[^']*'|[^\s"']*)(?=\s|$)""",
)
BUILD_TARGET_ENV: Final[str] = "CARGO_BUILD_TARGET"
SHELL: Final[str] = "sh"


def leading_assignments(cmd: str) -> dict[str, str]:
    """Return the environment assignments written in front of ``cmd``."""

    found: dict[str, str] = {}
    position = 0
    while (match := _LEADING_ASSIGNMENT.match(cmd, position)) is not None:
        value = match.group("value")
        if len(value) >= 2 and value[0] in "\"'" and value[-1] == value[0]:
            value = value[1:-1]
        found[match.group("name")] = value
        position = match.end()
    return found


@dataclass(frozen=True, slots=True)
class Resolve:
    """One invocation ready for cache lookup or execution."""

    pkg_name: str
    pkg_dir: Path
    features_args: tuple[str, ...]
    checker: CheckerTool
    target: str
    toolchain: str
    cmd: str
    env: Mapping[str, str] = field(default_factory=dict, hash=False)
    shell: bool = False

    @property
    def cwd(self) -> Path:
        return self.pkg_dir

    @property
    def features(self) -> str:
        """Return the feature-set label used to group diagnostics."""

        return " ".join(self.features_args)

    @property
    def sort_key(self) -> tuple[str, int]:
        return self.pkg_name, self.checker.sort_index

    @property
    def assignments(self) -> dict[str, str]:
        """Return the ``NAME=value`` words written in front of the command."""

        return leading_assignments(self.cmd)

    @property
    def argv(self) -> list[str]:
        """Return the arguments to execute.

        Shell steps run verbatim through ``sh -c``. Heuristic commands are
        split into words and lose their leading ``NAME=value`` words, which
        :attr:`run_env` carries instead.
        """

        if self.shell:
            return [SHELL, "-c", self.cmd]
        tokens = shlex.split(self.cmd)
        while tokens and _ASSIGNMENT.match(tokens[0]):
            tokens.pop(0)
        return tokens

    @property
    def run_env(self) -> dict[str, str]:
        """Return the environment the command runs with.

        Assignments in front of a shell step are applied by the shell itself.
        """

        if self.shell:
            return dict(self.env)
        return {**self.env, **self.assignments}

    @property
    def rustflags(self) -> tuple[str, ...]:
        flags = self.assignments.get("RUSTFLAGS", self.env.get("RUSTFLAGS", ""))
        return tuple(flags.split())

    def new_cargo(self) -> Resolve:
        """Return the synthetic ``cargo`` entry sharing this command's identity."""

        return dataclasses.replace(self, checker=CheckerTool.CARGO)

    def describe(self) -> str:
        return f"{self.pkg_name} {self.checker.cli_name} [{self.target}] `{self.cmd}`"


@dataclass(frozen=True, slots=True)
class PackageContext:
    """Inputs shared by every builder for one package."""

    pkg_name: str
    pkg_dir: Path
    targets: tuple[str, ...]
    feature_sets: tuple[tuple[str, ...], ...]
    env: Mapping[str, str]
    toolchain: str | None = None
    target_env: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    def env_for(self, target: str) -> dict[str, str]:
        return {**self.env, **self.target_env.get(target, {})}

    def resolve(
        self,
        checker: CheckerTool,
        cmd: str,
        *,
        target: str,
        toolchain: str,
        features_args: tuple[str, ...] = (),
        extra_env: Mapping[str, str] | None = None,
        shell: bool = False,
    ) -> Resolve:
        env = self.env_for(target)
        if extra_env:
            env.update(extra_env)
        return Resolve(
            pkg_name=self.pkg_name,
            pkg_dir=self.pkg_dir,
            features_args=features_args,
            checker=checker,
            target=target,
            toolchain=toolchain,
            cmd=cmd,
            env=env,
            shell=shell,
        )


Builder: TypeAlias = Callable[[PackageContext], list[Resolve]]


def _join(*parts: str | Sequence[str]) -> str:
    words: list[str] = []
    for part in parts:
        if isinstance(part, str):
            words.append(part)
        else:
            words.extend(part)
    return " ".join(word for word in words if word)


def _per_target(
    checker: CheckerTool,
    toolchain: str | None,
    render: Callable[[str, str, tuple[str, ...]], str],
) -> Builder:
    """Return a builder emitting one command per (target, feature set).

    Args:
        checker: Checker the commands belong to.
        toolchain: Pinned toolchain, or ``None`` to use the package's own.
        render: Callable receiving ``(toolchain, target, features_args)``.

    Returns:
        Builder: Builder for ``checker``.
    """

    def build(ctx: PackageContext) -> list[Resolve]:
        channel = toolchain or ctx.toolchain or HOST_TOOLCHAIN
        return [
            ctx.resolve(
                checker,
                render(channel, target, features_args),
                target=target,
                toolchain=channel,
                features_args=features_args,
            )
            for target in ctx.targets
            for features_args in ctx.feature_sets
        ]

    return build


def _once(checker: CheckerTool, cmd: str) -> Builder:
    """Return a builder emitting a single target-independent command."""

    def build(ctx: PackageContext) -> list[Resolve]:
        channel = ctx.toolchain or HOST_TOOLCHAIN
        return [ctx.resolve(checker, cmd, target=ctx.targets[0], toolchain=channel)]

    return build


HEURISTIC_BUILDERS: Final[Mapping[CheckerTool, Builder]] = {
    CheckerTool.FMT: _once(CheckerTool.FMT, "cargo fmt --check"),
    CheckerTool.CLIPPY: _per_target(
        CheckerTool.CLIPPY,
        None,
        lambda tc, target, feats: _join(f"cargo +{tc} clippy", feats, f"--target {target}", "--no-deps"),
    ),
    CheckerTool.LOCKBUD: _per_target(
        CheckerTool.LOCKBUD,
        TOOLCHAIN_LOCKBUD,
        lambda tc, target, feats: _join(f"cargo +{tc} lockbud -k all -- --target {target}", feats),
    ),
    CheckerTool.MIRAI: _per_target(
        CheckerTool.MIRAI,
        TOOLCHAIN_MIRAI,
        lambda tc, target, feats: _join(f"cargo +{tc} mirai --target {target}", feats),
    ),
    CheckerTool.AUDIT: _once(CheckerTool.AUDIT, "cargo audit"),
    CheckerTool.RAPX: _per_target(
        CheckerTool.RAPX,
        TOOLCHAIN_RAPX,
        lambda tc, target, feats: _join(f"cargo +{tc} rapx -F -M -- --target {target}", feats),
    ),
    CheckerTool.RUDRA: _per_target(
        CheckerTool.RUDRA,
        TOOLCHAIN_RUDRA,
        lambda tc, target, feats: _join(f"cargo +{tc} rudra --target {target}", feats),
    ),
    CheckerTool.OUTDATED: _once(CheckerTool.OUTDATED, "cargo outdated --workspace --exit-code 1"),
    CheckerTool.GEIGER: _per_target(
        CheckerTool.GEIGER,
        None,
        lambda tc, target, feats: _join(f"cargo +{tc} geiger --target {target}", feats),
    ),
    CheckerTool.SEMVER_CHECKS: _once(CheckerTool.SEMVER_CHECKS, "cargo semver-checks"),
}


def build_custom(ctx: PackageContext, checker: CheckerTool, steps: Sequence[str]) -> list[Resolve]:
    """Return one invocation per step line per target.

    Steps are shell command lines and run through ``sh -c``. The target is
    exported as ``CARGO_BUILD_TARGET`` because a literal command cannot be
    rewritten to include ``--target``.
    """

    channel = ctx.toolchain or HOST_TOOLCHAIN
    return [
        ctx.resolve(
            checker,
            step,
            target=target,
            toolchain=channel,
            extra_env={BUILD_TARGET_ENV: target},
            shell=True,
        )
        for step in steps
        for target in ctx.targets
    ]


__all__ = [
    "BUILD_TARGET_ENV",
    "Builder",
    "HEURISTIC_BUILDERS",
    "PackageContext",
    "Resolve",
    "SHELL",
    "build_custom",
    "leading_assignments",
]
