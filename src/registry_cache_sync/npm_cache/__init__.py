# SPDX-License-Identifier: MIT
"""Local npm cache access and process-wide cache tuning."""

from .store import NpmCacheStore
from .tuning import CacheMinOverride


__all__ = ["CacheMinOverride", "NpmCacheStore"]
