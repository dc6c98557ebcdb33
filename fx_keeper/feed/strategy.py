"""Abstractions for pluggable quote feeds."""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol


class RateFeed(Protocol):
    """Contract for anything that can produce a rate-to-base snapshot.

    An empty mapping means "no update available", never "every rate is zero".
    """

    def fetch_latest_rates(self) -> dict[str, Decimal]:
        ...  # pragma: no cover - protocol definition


__all__ = ["RateFeed"]
