# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models describing how checkers run for a repo and its packages."""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Mapping
from typing import Annotated, Any, Final

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    WithJsonSchema,
    model_validator,
)

from ..checkers import REAL_CHECKERS, CheckerTool
from ..errors import ConfigError
from .actions import Action, Cmds, Perform, Steps, dump_action, parse_action, parse_steps, validate_shell_steps

LEGACY_ALL_KEY: Final[str] = "all"
CMDS_KEY: Final[str] = "cmds"
META_KEY: Final[str] = "meta"


def _coerce_str_list(value: object) -> object:
    """Accept a single string wherever a list of strings is expected."""

    if isinstance(value, str):
        return [value]
    return value


def _coerce_setup(value: object) -> object:
    if isinstance(value, str):
        return parse_steps(value)
    return value


StrList = Annotated[tuple[str, ...], BeforeValidator(_coerce_str_list)]

ActionField = Annotated[
    Perform | Steps,
    BeforeValidator(parse_action),
    PlainSerializer(dump_action, return_type=Any),
    WithJsonSchema(
        {
            "anyOf": [{"type": "boolean"}, {"type": "string"}],
            "description": "true/false, or one command per line (# starts a comment)",
        },
    ),
]

SetupField = Annotated[
    tuple[str, ...],
    BeforeValidator(_coerce_setup),
    PlainSerializer(lambda steps: "\n".join(steps), return_type=str),
    WithJsonSchema({"type": "string"}),
]


class Meta(BaseModel):
    """Repository-wide switches that do not describe a checker directly."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    run_all_checkers: bool = True
    skip_pkg_dir_globs: StrList = ()
    only_pkg_dir_globs: StrList = ()
    rerun: bool = False
    use_last_cache: bool = False
    target_env: dict[str, dict[str, str]] = Field(default_factory=dict)


class FeatureSet(BaseModel):
    """One combination of cargo feature flags to check a package with."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    features: StrList = ()
    no_default_features: bool = Field(default=False, alias="no-default-features")
    all_features: bool = Field(default=False, alias="all-features")
    targets: StrList | None = None

    def args(self) -> tuple[str, ...]:
        """Render the cargo command-line flags for this feature set."""

        rendered: list[str] = []
        if self.features:
            rendered.append(f"--features={','.join(self.features)}")
        if self.no_default_features:
            rendered.append("--no-default-features")
        if self.all_features:
            rendered.append("--all-features")
        return tuple(rendered)

    def applies_to(self, target: str) -> bool:
        """Return whether this feature set is restricted away from ``target``."""

        return self.targets is None or target in self.targets


class RepoConfig(BaseModel):
    """Checker configuration for a repository or for one of its packages.

    The same model is used at both levels: the ``packages`` mapping nests a
    ``RepoConfig`` per package whose values override the repository's.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    meta: Meta | None = None
    setup: SetupField | None = None
    targets: StrList | None = None
    no_install_targets: StrList | None = None
    features: tuple[FeatureSet, ...] | None = None
    env: dict[str, str] | None = None
    cmds: dict[CheckerTool, ActionField] = Field(default_factory=dict)
    packages: dict[str, RepoConfig] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_checkers(cls, data: Any) -> Any:
        """Move checker keys written at the node's top level into ``cmds``.

        Args:
            data: Raw mapping decoded from YAML or JSON.

        Returns:
            Any: Mapping in canonical shape.

        Raises:
            ValueError: If a key is neither a field nor a checker, or custom
                steps are given under the ``all`` key.
        """

        if not isinstance(data, Mapping):
            return data
        fields = set(cls.model_fields)
        normalized: dict[str, Any] = {}
        cmds: dict[str, Any] = dict(data.get(CMDS_KEY) or {})
        meta: dict[str, Any] | None = None
        for key, value in data.items():
            if key in fields:
                if key != CMDS_KEY:
                    normalized[key] = value
                continue
            if key == LEGACY_ALL_KEY:
                action = parse_action(value)
                if isinstance(action, Steps):
                    raise ValueError("custom commands are not allowed under the `all` key; use true or false")
                meta = dict(data.get(META_KEY) or {})
                meta["run_all_checkers"] = action.enabled
                continue
            if CheckerTool.from_str(str(key)) is None:
                raise ValueError(f"`{key}` is neither a configuration key nor a supported checker")
            cmds[key] = value
        if meta is not None:
            normalized[META_KEY] = meta
        if cmds:
            normalized[CMDS_KEY] = cmds
        return normalized

    @property
    def commands(self) -> Cmds:
        """Return ``cmds`` as an ordered :class:`Cmds` table."""

        return Cmds(self.cmds.items())

    @property
    def run_all_checkers(self) -> bool:
        """Return whether checkers run by default when not configured."""

        return self.meta.run_all_checkers if self.meta is not None else True

    def skip_pkg_dir_globs(self) -> tuple[str, ...]:
        """Return the glob patterns of package dirs to leave out."""

        return self.meta.skip_pkg_dir_globs if self.meta is not None else ()

    def only_pkg_dir_globs(self) -> tuple[str, ...]:
        """Return the glob patterns of package dirs to keep exclusively."""

        return self.meta.only_pkg_dir_globs if self.meta is not None else ()

    def merged_with(self, other: RepoConfig) -> RepoConfig:
        """Return a new config where values set in ``other`` win.

        ``cmds`` merge per checker and ``packages`` merge recursively per
        package; every other field is replaced when ``other`` sets it.

        Args:
            other: Overriding configuration (the right-hand side).

        Returns:
            RepoConfig: Merged configuration; neither input is modified.
        """

        update: dict[str, Any] = {}
        for name in other.model_fields_set:
            if name in {CMDS_KEY, "packages", META_KEY}:
                continue
            update[name] = getattr(other, name)
        update[CMDS_KEY] = {**self.cmds, **other.cmds}
        packages = dict(self.packages)
        for pkg_name, pkg_config in other.packages.items():
            current = packages.get(pkg_name)
            packages[pkg_name] = pkg_config if current is None else current.merged_with(pkg_config)
        update["packages"] = packages
        if other.meta is not None:
            update[META_KEY] = _merge_meta(self.meta, other.meta)
        return self.model_copy(update=update)

    def validate_for(self, repo: str) -> None:
        """Run every structural validation that needs no package information.

        Args:
            repo: Repository identifier used in error messages.

        Raises:
            ConfigError: If meta flags conflict, glob patterns are invalid,
                a checker is not configurable, a custom command was filed
                under the wrong checker, or a step is not a valid shell command.
        """

        self.validate_meta(repo)
        self.validate_checkers(repo)
        self.validate_checker_names(repo)
        self.validate_setup(repo)

    def validate_meta(self, repo: str) -> None:
        """Ensure meta flags are coherent for ``repo``."""

        if self.meta is None:
            return
        for label, patterns in (
            ("skip_pkg_dir_globs", self.meta.skip_pkg_dir_globs),
            ("only_pkg_dir_globs", self.meta.only_pkg_dir_globs),
        ):
            for pattern in patterns:
                if not _is_valid_glob(pattern):
                    raise ConfigError(f"{repo!r}'s meta.{label} value {pattern!r} is invalid.")
        if self.meta.rerun and self.meta.use_last_cache:
            raise ConfigError(f"meta.rerun and meta.use_last_cache can't be both true in {repo!r}")

    def validate_checkers(self, repo: str) -> None:
        """Ensure every configured checker belongs to the configurable registry."""

        _ensure_configurable(self.cmds, f"cmds of repo `{repo}`")
        for pkg_name, pkg_config in self.packages.items():
            _ensure_configurable(pkg_config.cmds, f"cmds of repo `{repo}`'s pkg `{pkg_name}`")

    def validate_checker_names(self, repo: str) -> None:
        """Ensure custom commands mention the checker they are filed under."""

        self.commands.validate_checker_names(scope=f"repo `{repo}`")
        for pkg_name, pkg_config in self.packages.items():
            pkg_config.commands.validate_checker_names(scope=f"pkg `{pkg_name}` in repo `{repo}`")

    def validate_setup(self, repo: str) -> None:
        """Ensure setup steps can be handed to ``sh -c``."""

        validate_shell_steps(self.setup or (), scope=f"setup of repo `{repo}`")
        for pkg_name, pkg_config in self.packages.items():
            validate_shell_steps(pkg_config.setup or (), scope=f"setup of pkg `{pkg_name}` in repo `{repo}`")

    def sorted_packages(self) -> RepoConfig:
        """Return a copy whose ``packages`` mapping is ordered by name."""

        return self.model_copy(update={"packages": dict(sorted(self.packages.items()))})


def _merge_meta(current: Meta | None, override: Meta) -> Meta:
    if current is None:
        return override
    payload = current.model_dump(exclude_unset=True)
    payload.update(override.model_dump(exclude_unset=True))
    return Meta.model_validate(payload)


def _ensure_configurable(cmds: Mapping[CheckerTool, Action], scope: str) -> None:
    for tool in cmds:
        if tool not in REAL_CHECKERS:
            raise ConfigError(f"Checker `{tool.cli_name}` is not supported in {scope}")


def _is_valid_glob(pattern: str) -> bool:
    if not pattern.strip():
        return False
    if pattern.count("[") != pattern.count("]"):
        return False
    try:
        re.compile(fnmatch.translate(pattern))
    except re.error:
        return False
    return True


RepoConfig.model_rebuild()

__all__ = ["FeatureSet", "Meta", "RepoConfig"]
