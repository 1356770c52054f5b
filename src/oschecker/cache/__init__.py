# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Persistent, transactional cache of checker results."""

from __future__ import annotations

from .keys import CacheChecker, CacheCmd, CacheKey, CacheRepo
from .repo import DbRepo
from .store import CacheStore
from .values import CacheValue, now_millis

__all__ = [
    "CacheChecker",
    "CacheCmd",
    "CacheKey",
    "CacheRepo",
    "CacheStore",
    "CacheValue",
    "DbRepo",
    "now_millis",
]
