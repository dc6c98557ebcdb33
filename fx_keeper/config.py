"""Runtime settings, loaded from ``FX_KEEPER_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from fx_keeper.cache.base import DEFAULT_TTL_SECONDS
from fx_keeper.feed.client import DEFAULT_FEED_URL
from fx_keeper.models import CurrencyCode, normalise_code
from fx_keeper.scheduler import MAX_WORKERS, RefreshPeriod

ENV_PREFIX = "FX_KEEPER_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _all_codes() -> tuple[str, ...]:
    return tuple(code.value for code in CurrencyCode)


@dataclass(frozen=True)
class Settings:
    db_url: str | None = None
    redis_url: str | None = None
    base_currency: str = CurrencyCode.TWD.value
    currencies: tuple[str, ...] = field(default_factory=_all_codes)
    feed_url: str = DEFAULT_FEED_URL
    connect_timeout: float = 5.0
    read_timeout: float = 10.0
    cache_ttl_seconds: float = DEFAULT_TTL_SECONDS
    refresh_period: str = "@hourly"
    auto_update: bool = True
    max_workers: int = 3

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_currency", normalise_code(self.base_currency))
        object.__setattr__(
            self, "currencies", tuple(normalise_code(code) for code in self.currencies)
        )
        if not self.currencies:
            raise ValueError("At least one currency must be configured")
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ValueError("Timeouts must be positive")
        if self.cache_ttl_seconds <= 0:
            raise ValueError("cache_ttl_seconds must be positive")
        if not 1 <= self.max_workers <= MAX_WORKERS:
            raise ValueError(f"max_workers must be between 1 and {MAX_WORKERS}")
        RefreshPeriod.parse(self.refresh_period)

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from the environment, falling back to defaults."""

        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            if value is None or not value.strip():
                return None
            return value.strip()

        currencies = get("CURRENCIES")
        return cls(
            db_url=get("DB_URL"),
            redis_url=get("REDIS_URL"),
            base_currency=get("BASE_CURRENCY") or defaults.base_currency,
            currencies=(
                tuple(part for part in currencies.split(",") if part.strip())
                if currencies
                else defaults.currencies
            ),
            feed_url=get("FEED_URL") or defaults.feed_url,
            connect_timeout=_parse_float("CONNECT_TIMEOUT", get("CONNECT_TIMEOUT"), defaults.connect_timeout),
            read_timeout=_parse_float("READ_TIMEOUT", get("READ_TIMEOUT"), defaults.read_timeout),
            cache_ttl_seconds=_parse_float("CACHE_TTL", get("CACHE_TTL"), defaults.cache_ttl_seconds),
            refresh_period=get("REFRESH_PERIOD") or defaults.refresh_period,
            auto_update=_parse_bool("AUTO_UPDATE", get("AUTO_UPDATE"), defaults.auto_update),
            max_workers=_parse_int("WORKERS", get("WORKERS"), defaults.max_workers),
        )


def _parse_float(name: str, raw: str | None, default: float) -> float:
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from exc


def _parse_int(name: str, raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


def _parse_bool(name: str, raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{ENV_PREFIX}{name} must be a boolean, got {raw!r}")


__all__ = ["ENV_PREFIX", "Settings"]
