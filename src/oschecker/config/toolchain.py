# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Registry of the toolchains and targets a run needs installed."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict


class ToolchainInfo(BaseModel):
    """Serializable view of one registered toolchain."""

    model_config = ConfigDict(frozen=True)

    index: int
    channel: str
    targets: tuple[str, ...]


@dataclass(slots=True)
class _Entry:
    channel: str
    targets: list[str] = field(default_factory=list)


class ToolchainRegistry:
    """Deduplicate toolchain channels and hand back stable indices.

    One registry belongs to one run context; indices are assigned in
    registration order and never change for the lifetime of the registry.
    """

    def __init__(self) -> None:
        self._entries: list[_Entry] = []
        self._index: dict[str, int] = {}

    def register(self, channel: str, target: str | None = None) -> int:
        """Return the index of ``channel``, registering it on first sight.

        Args:
            channel: Toolchain designator such as ``nightly-2025-01-10``.
            target: Target triple that must be installed for the channel.

        Returns:
            int: Stable index of the channel.
        """

        index = self._index.get(channel)
        if index is None:
            index = len(self._entries)
            self._entries.append(_Entry(channel=channel))
            self._index[channel] = index
        entry = self._entries[index]
        if target is not None and target not in entry.targets:
            entry.targets.append(target)
        return index

    def index_of(self, channel: str) -> int | None:
        return self._index.get(channel)

    def channel(self, index: int) -> str:
        return self._entries[index].channel

    def targets_for(self, channel: str) -> tuple[str, ...]:
        index = self._index.get(channel)
        return () if index is None else tuple(self._entries[index].targets)

    def __len__(self) -> int:
        return len(self._entries)

    def infos(self) -> list[ToolchainInfo]:
        """Return every registered toolchain in index order."""

        return [
            ToolchainInfo(index=index, channel=entry.channel, targets=tuple(entry.targets))
            for index, entry in enumerate(self._entries)
        ]


__all__ = ["ToolchainInfo", "ToolchainRegistry"]
