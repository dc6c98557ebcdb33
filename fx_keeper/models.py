"""Data models shared across the store, cache and refresh modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from fx_keeper.exceptions import InvalidRate
from fx_keeper.utils.decimals import Number, to_rate


class CurrencyCode(str, Enum):
    """Currencies the system keeps rates for."""

    TWD = "TWD"
    USD = "USD"
    EUR = "EUR"
    JPY = "JPY"
    CNY = "CNY"

    @classmethod
    def from_code(cls, code: str | None) -> "CurrencyCode | None":
        """Return the matching member (case-insensitive) or ``None``."""

        if code is None:
            return None
        try:
            return cls(code.strip().upper())
        except ValueError:
            return None

    @classmethod
    def is_valid(cls, code: str | None) -> bool:
        return cls.from_code(code) is not None


def normalise_code(code: "str | CurrencyCode") -> str:
    """Upper-case a currency code and check it looks like a 3-letter code."""

    value = code.value if isinstance(code, CurrencyCode) else str(code).strip().upper()
    if len(value) != 3 or not value.isalpha():
        raise ValueError(f"Currency codes must be three letters, got {code!r}")
    return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: object) -> datetime | None:
    """Normalise driver timestamps (naive, aware or ISO strings) to aware UTC."""

    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, datetime):
        raise TypeError(f"Unsupported timestamp value: {value!r}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(slots=True)
class RateRecord:
    """One durable rate row: how many base-currency units one unit of ``currency_code`` buys."""

    currency_code: str
    rate_to_base: Decimal
    last_update: datetime | None = None

    def __post_init__(self) -> None:
        self.currency_code = normalise_code(self.currency_code)
        if self.rate_to_base is None:
            raise InvalidRate(self.currency_code, None)
        try:
            self.rate_to_base = to_rate(self.rate_to_base)
        except ValueError as exc:
            raise InvalidRate(self.currency_code, self.rate_to_base) from exc
        self.last_update = as_utc(self.last_update)

    @classmethod
    def of(cls, code: "str | CurrencyCode", rate: Number) -> "RateRecord":
        """Build a record from loosely typed input."""

        return cls(currency_code=normalise_code(code), rate_to_base=rate)  # type: ignore[arg-type]

    @property
    def is_valid(self) -> bool:
        return self.rate_to_base > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.currency_code,
            "rate_to_base": str(self.rate_to_base),
            "last_update": self.last_update.isoformat() if self.last_update else None,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RateRecord":
        code = payload.get("code", payload.get("currency_code"))
        return cls(
            currency_code=code,
            rate_to_base=payload.get("rate_to_base"),  # type: ignore[arg-type]
            last_update=as_utc(payload.get("last_update")),
        )


@dataclass(slots=True)
class CacheEntry:
    """A cached value with an absolute expiry deadline on the cache's clock."""

    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(slots=True)
class RefreshResult:
    """Counters collected while reconciling one feed snapshot."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    fetched: int = 0
    started_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None

    @property
    def total(self) -> int:
        """Return the number of records written."""

        return self.created + self.updated

    @property
    def duration_ms(self) -> float | None:
        if self.finished_at is None:
            return None
        return round((self.finished_at - self.started_at).total_seconds() * 1000.0, 2)

    def as_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "fetched": self.fetched,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
        }


__all__ = [
    "CurrencyCode",
    "RateRecord",
    "CacheEntry",
    "RefreshResult",
    "normalise_code",
    "utcnow",
    "as_utc",
]
