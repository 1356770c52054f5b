# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Cache access scoped to one checked-out repository."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from ..checkers import CheckerTool
from ..config.resolve import Resolve
from ..errors import CacheError
from ..layout.git import RepoIdentity
from .keys import CacheChecker, CacheCmd, CacheKey, CacheRepo
from .store import CacheStore
from .values import CacheValue

LOGGER = logging.getLogger(__name__)


class DbRepo:
    """Derive cache keys for a repository's invocations and read/write them.

    Args:
        store: Shared cache store.
        identity: Owner, name and revision of the repository.
        checker_versions: Pinned version/sha per checker; checkers missing
            here are keyed without version information.
    """

    def __init__(
        self,
        store: CacheStore,
        identity: RepoIdentity,
        *,
        checker_versions: Mapping[CheckerTool, CacheChecker] | None = None,
    ) -> None:
        self.store = store
        self.identity = identity
        self._checker_versions = dict(checker_versions or {})

    def key(self, resolve: Resolve) -> CacheKey:
        """Return the cache key identifying ``resolve``."""

        checker = self._checker_versions.get(resolve.checker, CacheChecker(checker=resolve.checker))
        return CacheKey(
            repo=CacheRepo(
                user=self.identity.user,
                repo=self.identity.repo,
                pkg_name=resolve.pkg_name,
                sha=self.identity.sha,
                branch=self.identity.branch,
            ),
            checker=checker,
            cmd=CacheCmd(
                cmd=resolve.cmd,
                target=resolve.target,
                features=resolve.features_args,
                rustflags=resolve.rustflags,
            ),
        )

    def read_cache(self, key: CacheKey, *, use_last_cache: bool = False) -> CacheValue | None:
        """Return the cached value for ``key`` marked as a cache hit.

        A value that cannot be read is treated as absent after a warning.

        Args:
            key: Key to look up.
            use_last_cache: Fall back to the newest entry for the same
                invocation at any revision when ``key`` itself is missing.

        Returns:
            CacheValue | None: Cached value, or ``None`` on a miss.
        """

        try:
            value = self.store.get(key)
            if value is None and use_last_cache:
                value = self.store.get_latest_in_scope(key)
        except CacheError as exc:
            LOGGER.warning("cache read failed for %s, treating as a miss: %s", key.describe(), exc)
            return None
        return None if value is None else value.as_cache_hit()

    def write_cache(self, key: CacheKey, value: CacheValue, *, replace: bool = False) -> CacheValue | None:
        """Store ``value`` under ``key``.

        With ``replace`` the previous entry is discarded. Otherwise its
        diagnostics are kept and new ones not already present are appended,
        all in one transaction.

        Returns:
            CacheValue | None: Value written, or ``None`` when the write
            failed and was logged.
        """

        def merge(old: CacheValue | None) -> CacheValue:
            if replace or old is None:
                return value

            def append(diagnostics: list[str]) -> None:
                diagnostics.extend(item for item in value.diagnostics if item not in old.diagnostics)

            return old.update_diagnostics(append).model_copy(update={"duration_ms": value.duration_ms})

        try:
            return self.store.set_or_replace(key, merge)
        except CacheError as exc:
            LOGGER.warning("cache write failed for %s: %s", key.describe(), exc)
            return None


__all__ = ["DbRepo"]
