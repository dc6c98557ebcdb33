"""In-process TTL cache."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable

from fx_keeper.cache.base import DEFAULT_TTL_SECONDS, KeyValueCache
from fx_keeper.models import CacheEntry


class MemoryCache(KeyValueCache):
    """Dictionary-backed cache with lazy expiry.

    Entries are checked against their deadline on read; ``purge_expired`` can
    be called to reclaim memory eagerly. When ``max_entries`` is set, writing a
    new key into a full cache evicts the entry closest to expiry.
    """

    def __init__(
        self,
        *,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.max_entries = max_entries

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._lock:
            now = self._clock()
            if (
                self.max_entries is not None
                and key not in self._entries
                and len(self._entries) >= self.max_entries
            ):
                self._purge_expired_locked(now)
                if len(self._entries) >= self.max_entries:
                    victim = min(self._entries, key=lambda k: self._entries[k].expires_at)
                    del self._entries[victim]
            self._entries[key] = CacheEntry(value=value, expires_at=now + ttl_seconds)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_expired_locked(self._clock())

    def _purge_expired_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None


__all__ = ["MemoryCache"]
