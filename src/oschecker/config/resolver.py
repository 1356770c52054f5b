# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Expand a repository configuration into an ordered list of invocations."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeAlias

from ..checkers import HOST_TARGET, CheckerTool
from ..errors import ConfigError
from ..layout.packages import Package, Packages
from ..layout.targets import TargetDetection
from .actions import Cmds, Perform, Steps
from .models import FeatureSet, RepoConfig
from .resolve import HEURISTIC_BUILDERS, PackageContext, Resolve, build_custom
from .toolchain import ToolchainRegistry

LOGGER = logging.getLogger(__name__)

TargetDetector: TypeAlias = Callable[[Package], TargetDetection]

_DEFAULT_FEATURE_SETS: tuple[tuple[str, ...], ...] = ((),)

# Checkers whose heuristic command does not depend on the target triple.
_TARGET_INDEPENDENT: frozenset[CheckerTool] = frozenset(
    {CheckerTool.FMT, CheckerTool.AUDIT, CheckerTool.OUTDATED, CheckerTool.SEMVER_CHECKS},
)


def validate_packages(repo: str, config: RepoConfig, packages: Packages) -> None:
    """Ensure every package named in ``config.packages`` exists in ``packages``.

    Raises:
        ConfigError: Naming the first unknown package.
    """

    for pkg_name in config.packages:
        if pkg_name not in packages:
            raise ConfigError(f"The package `{pkg_name}` is not in the repo `{repo}`.")


def _feature_sets(features: tuple[FeatureSet, ...] | None, target: str) -> tuple[tuple[str, ...], ...]:
    if not features:
        return _DEFAULT_FEATURE_SETS
    selected = tuple(feature_set.args() for feature_set in features if feature_set.applies_to(target))
    return selected or _DEFAULT_FEATURE_SETS


def _targets_for(
    package: Package,
    repo_config: RepoConfig,
    pkg_config: RepoConfig | None,
    detector: TargetDetector | None,
) -> tuple[tuple[str, ...], str | None]:
    """Return ``(targets, toolchain channel)`` for ``package``.

    Targets come from the package config, else the repo config, else
    detection, else the host target.
    """

    toolchain: str | None = None
    detection = detector(package) if detector is not None else None
    if detection is not None and detection.toolchain is not None and detection.toolchain.channel:
        toolchain = detection.toolchain.channel
    if pkg_config is not None and pkg_config.targets:
        return tuple(pkg_config.targets), toolchain
    if repo_config.targets:
        return tuple(repo_config.targets), toolchain
    if detection is not None and detection.triples:
        return detection.triples, toolchain
    return (HOST_TARGET,), toolchain


def _expand(ctx: PackageContext, cmds: Cmds, features: tuple[FeatureSet, ...] | None) -> list[Resolve]:
    resolved: list[Resolve] = []
    for checker, action in cmds.items():
        if isinstance(action, Steps):
            resolved.extend(build_custom(ctx, checker, action.lines))
            continue
        if not (isinstance(action, Perform) and action.enabled):
            continue
        builder = HEURISTIC_BUILDERS.get(checker)
        if builder is None:
            LOGGER.debug("%s has no heuristic command for %s; provide custom steps", checker, ctx.pkg_name)
            continue
        for target in ctx.targets:
            per_target = PackageContext(
                pkg_name=ctx.pkg_name,
                pkg_dir=ctx.pkg_dir,
                targets=(target,),
                feature_sets=_feature_sets(features, target),
                env=ctx.env,
                toolchain=ctx.toolchain,
                target_env=ctx.target_env,
            )
            resolved.extend(builder(per_target))
            if checker in _TARGET_INDEPENDENT:
                break
    return resolved


def resolve_repo(
    repo: str,
    config: RepoConfig,
    packages: Packages,
    *,
    detect_targets: TargetDetector | None = None,
    toolchains: ToolchainRegistry | None = None,
) -> list[Resolve]:
    """Turn ``config`` into invocations sorted by package name and checker.

    Args:
        repo: Repository identifier used in error messages.
        config: Validated repository configuration.
        packages: Packages discovered in the checked-out repository.
        detect_targets: Callable detecting targets for packages without
            configured ones.
        toolchains: Registry collecting the toolchains the plan needs.

    Returns:
        list[Resolve]: Ordered invocations for every selected package.

    Raises:
        ConfigError: If a package is unknown, a checker is not configurable,
            a custom command does not name its checker, or meta flags conflict.
    """

    validate_packages(repo, config, packages)
    config.validate_for(repo)

    baseline = Cmds.new_with_all_checkers_enabled(config.run_all_checkers)
    repo_cmds = config.commands
    meta_target_env = config.meta.target_env if config.meta is not None else {}
    selected = packages.select(
        skip_globs=config.skip_pkg_dir_globs(),
        only_globs=config.only_pkg_dir_globs(),
        always=config.packages,
    )

    resolved: list[Resolve] = []
    for package in selected:
        pkg_config = config.packages.get(package.name)
        cmds = baseline.merge(repo_cmds)
        if pkg_config is not None:
            cmds = cmds.merge(pkg_config.commands)
        targets, toolchain = _targets_for(package, config, pkg_config, detect_targets)
        features = pkg_config.features if pkg_config is not None and pkg_config.features is not None else None
        if features is None:
            features = config.features
        env = dict(config.env or {})
        if pkg_config is not None and pkg_config.env:
            env.update(pkg_config.env)
        ctx = PackageContext(
            pkg_name=package.name,
            pkg_dir=package.pkg_dir,
            targets=targets,
            feature_sets=_DEFAULT_FEATURE_SETS,
            env=env,
            toolchain=toolchain,
            target_env=meta_target_env,
        )
        resolved.extend(_expand(ctx, cmds, features))

    resolved.sort(key=lambda item: item.sort_key)
    if toolchains is not None:
        no_install = set(config.no_install_targets or ())
        for item in resolved:
            toolchains.register(item.toolchain, None if item.target in no_install else item.target)
    LOGGER.debug("resolved %d invocations for %s", len(resolved), repo)
    return resolved


__all__ = ["TargetDetector", "resolve_repo", "validate_packages"]
