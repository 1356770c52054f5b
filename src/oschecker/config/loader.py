# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Load repository configurations from YAML or JSON documents."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import TypeAdapter, ValidationError

from ..errors import ConfigError
from .models import RepoConfig

LOGGER = logging.getLogger(__name__)

ConfigFormat = Literal["yaml", "json"]

_REPOS_ADAPTER: TypeAdapter[dict[str, RepoConfig]] = TypeAdapter(dict[str, RepoConfig])


@dataclass(frozen=True, slots=True)
class Config:
    """A repository identifier (``user/repo``) and its checker configuration."""

    repo: str
    config: RepoConfig

    @property
    def user_and_name(self) -> tuple[str, str]:
        """Return the ``(user, repo)`` halves of the identifier."""

        user, _, name = self.repo.partition("/")
        if not name:
            raise ConfigError(f"repository `{self.repo}` must be written as `user/repo`")
        return user, name


def _format_for(path: Path) -> ConfigFormat:
    return "json" if path.suffix.lower() == ".json" else "yaml"


def _decode(text: str, fmt: ConfigFormat) -> Any:
    try:
        if fmt == "json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"repository configuration could not be parsed as {fmt}: {exc}") from exc


def _validate_repo(repo: str, raw: Any) -> RepoConfig:
    try:
        config = RepoConfig.model_validate(raw or {})
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration for repo `{repo}`:\n{exc}") from exc
    config.validate_for(repo)
    return config


def parse_configs(text: str, *, fmt: ConfigFormat = "yaml") -> dict[str, RepoConfig]:
    """Decode ``text`` into a mapping of repository to validated configuration.

    Args:
        text: YAML or JSON document whose top-level keys are ``user/repo``.
        fmt: Serialisation format of ``text``.

    Returns:
        dict[str, RepoConfig]: Validated configurations keyed by repository.

    Raises:
        ConfigError: If the document cannot be decoded or any repository
            configuration is invalid.
    """

    raw = _decode(text, fmt)
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigError("repository configuration must be a mapping of `user/repo` to settings")
    return {str(repo): _validate_repo(str(repo), value) for repo, value in raw.items()}


def load_configs(text: str, *, fmt: ConfigFormat = "yaml") -> list[Config]:
    """Return :class:`Config` entries sorted by repository name."""

    return [Config(repo=repo, config=config) for repo, config in sorted(parse_configs(text, fmt=fmt).items())]


def merge_repo_configs(layers: Iterable[Mapping[str, RepoConfig]]) -> dict[str, RepoConfig]:
    """Merge configuration layers from left to right; the rightmost wins.

    Args:
        layers: Mappings of repository to configuration in precedence order.

    Returns:
        dict[str, RepoConfig]: Merged mapping ordered by repository name.
    """

    merged: dict[str, RepoConfig] = {}
    for layer in layers:
        for repo, config in layer.items():
            current = merged.get(repo)
            merged[repo] = config if current is None else current.merged_with(config)
    return {repo: merged[repo].sorted_packages() for repo in sorted(merged)}


def load_config_files(paths: Sequence[Path]) -> list[Config]:
    """Load and merge configuration files given on the command line.

    Args:
        paths: Files in precedence order (``--config a --config b``).

    Returns:
        list[Config]: Merged, validated configurations sorted by repository.

    Raises:
        ConfigError: If a file is missing, unreadable or invalid.
    """

    layers: list[dict[str, RepoConfig]] = []
    for path in paths:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"unable to read configuration file {path}: {exc}") from exc
        LOGGER.debug("loaded configuration layer %s", path)
        layers.append(parse_configs(text, fmt=_format_for(path)))
    merged = merge_repo_configs(layers)
    for repo, config in merged.items():
        config.validate_for(repo)
    return [Config(repo=repo, config=config) for repo, config in merged.items()]


def dump_configs(configs: Iterable[Config]) -> str:
    """Return the merged configurations as pretty-printed JSON."""

    payload = {
        entry.repo: entry.config.model_dump(mode="json", exclude_defaults=True, by_alias=True) for entry in configs
    }
    return json.dumps(payload, indent=2)


def config_json_schema() -> dict[str, Any]:
    """Return the JSON schema describing a configuration document."""

    return _REPOS_ADAPTER.json_schema(by_alias=True)


__all__ = [
    "Config",
    "ConfigFormat",
    "config_json_schema",
    "dump_configs",
    "load_config_files",
    "load_configs",
    "merge_repo_configs",
    "parse_configs",
]
