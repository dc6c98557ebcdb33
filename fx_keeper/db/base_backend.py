"""Storage interface shared by every rate store backend."""

from __future__ import annotations

from abc import ABC, abstractmethod

from fx_keeper.models import RateRecord


class RateStore(ABC):
    """Durable key-indexed storage for rate records, keyed by currency code."""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create required tables/collections and verify connectivity."""

    @abstractmethod
    def find(self, code: str) -> RateRecord | None:
        """Return the record stored for ``code`` or ``None``."""

    @abstractmethod
    def find_all(self) -> list[RateRecord]:
        """Return every stored record ordered by currency code."""

    @abstractmethod
    def save(self, record: RateRecord) -> RateRecord:
        """Insert or replace the record for ``record.currency_code``."""

    @abstractmethod
    def delete(self, code: str) -> bool:
        """Remove the record for ``code``; return whether a row existed."""

    def close(self) -> None:  # pragma: no cover - optional cleanup hook
        """Backends may override to release connections/resources."""

    def __enter__(self) -> "RateStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["RateStore"]
