"""Data models for upstream feed payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping

from fx_keeper.utils.decimals import to_decimal
from fx_keeper.utils.logger import get_logger

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class FeedSnapshot:
    """Quotes as published upstream: units of each currency per one ``base``."""

    base: str | None
    date: str | None
    rates: dict[str, Decimal] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "FeedSnapshot":
        """Parse ``{base, date, rates}`` JSON; unknown fields are ignored.

        Non-numeric or non-positive quotes are dropped; a missing or malformed
        ``rates`` member yields an empty snapshot.
        """

        if not isinstance(payload, Mapping):
            raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
        base = payload.get("base")
        date = payload.get("date")
        raw_rates = payload.get("rates")
        rates: dict[str, Decimal] = {}
        if isinstance(raw_rates, Mapping):
            for code, value in raw_rates.items():
                parsed = _parse_quote(value)
                if parsed is None:
                    LOGGER.debug("Dropping unusable quote %s=%r", code, value)
                    continue
                rates[str(code).upper()] = parsed
        elif raw_rates is not None:
            LOGGER.warning("Ignoring malformed rates member of type %s", type(raw_rates).__name__)
        return cls(
            base=str(base).upper() if isinstance(base, str) and base else None,
            date=str(date) if date is not None else None,
            rates=rates,
        )

    def __len__(self) -> int:
        return len(self.rates)


def _parse_quote(value: object) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = to_decimal(value)  # type: ignore[arg-type]
    except ValueError:
        return None
    return parsed if parsed > 0 else None


__all__ = ["FeedSnapshot"]
