# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Repository configuration: models, loading and resolution into invocations."""

from __future__ import annotations

from .actions import Action, Cmds, Perform, Steps, parse_action
from .loader import Config, config_json_schema, dump_configs, load_config_files, load_configs, parse_configs
from .models import FeatureSet, Meta, RepoConfig
from .resolve import Resolve
from .resolver import resolve_repo
from .toolchain import ToolchainInfo, ToolchainRegistry

__all__ = [
    "Action",
    "Cmds",
    "Config",
    "FeatureSet",
    "Meta",
    "Perform",
    "RepoConfig",
    "Resolve",
    "Steps",
    "ToolchainInfo",
    "ToolchainRegistry",
    "config_json_schema",
    "dump_configs",
    "load_config_files",
    "load_configs",
    "parse_action",
    "parse_configs",
    "resolve_repo",
]
