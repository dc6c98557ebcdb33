"""Key-value caches that sit in front of the rate store."""

from __future__ import annotations

from fx_keeper.cache.base import DEFAULT_TTL_SECONDS, KeyValueCache
from fx_keeper.cache.memory import MemoryCache

__all__ = ["DEFAULT_TTL_SECONDS", "KeyValueCache", "MemoryCache"]
