"""The cache capability the rate repository relies on."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

DEFAULT_TTL_SECONDS = 24 * 60 * 60


class KeyValueCache(ABC):
    """Minimal TTL cache contract.

    Implementations must be safe for concurrent readers and writers and treat
    an expired entry exactly like a missing one.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the live value stored under ``key`` or ``None``."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds`` from now."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``; return whether something was removed."""

    @abstractmethod
    def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``; return how many were removed."""

    def close(self) -> None:  # pragma: no cover - optional cleanup hook
        """Caches may override to release connections."""


__all__ = ["DEFAULT_TTL_SECONDS", "KeyValueCache"]
