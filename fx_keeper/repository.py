"""Cache-aside facade over the rate cache and the durable rate store."""

from __future__ import annotations

from decimal import Decimal

from fx_keeper.cache.base import DEFAULT_TTL_SECONDS, KeyValueCache
from fx_keeper.db.base_backend import RateStore
from fx_keeper.exceptions import CurrencyNotFound, InvalidRate
from fx_keeper.models import CurrencyCode, RateRecord, normalise_code
from fx_keeper.utils.decimals import Number, to_rate
from fx_keeper.utils.logger import get_logger

LOGGER = get_logger(__name__)

CACHE_KEY_PREFIX = "currency:rate:"


def cache_key(code: str) -> str:
    return f"{CACHE_KEY_PREFIX}{code}"


class RateRepository:
    """Unifies a :class:`KeyValueCache` and a :class:`RateStore`.

    Reads go to the cache first and fall back to the store, filling the cache
    on the way out. Writes hit the store first and only then overwrite the
    cache, so a failed store write never leaves the cache ahead of the store.
    """

    def __init__(
        self,
        store: RateStore,
        cache: KeyValueCache,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.store = store
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def get(self, code: str | CurrencyCode) -> RateRecord | None:
        """Return the record for ``code`` or ``None`` when nothing is stored."""

        try:
            key = normalise_code(code)
        except ValueError:
            LOGGER.debug("Ignoring lookup for malformed code %r", code)
            return None
        cached = self._cache_get(key)
        if cached is not None:
            LOGGER.debug("Cache hit for %s", key)
            return cached
        LOGGER.debug("Cache miss for %s; reading store", key)
        record = self.store.find(key)
        if record is None:
            return None
        self._cache_set(record)
        return record

    def put(self, record: RateRecord) -> RateRecord:
        """Persist ``record`` then refresh its cache entry."""

        rate = getattr(record, "rate_to_base", None)
        if rate is None or not isinstance(rate, Decimal) or not rate > 0:
            raise InvalidRate(getattr(record, "currency_code", None), rate)
        saved = self.store.save(record)
        self._cache_set(saved)
        LOGGER.info("Stored %s = %s", saved.currency_code, saved.rate_to_base)
        return saved

    def delete(self, code: str | CurrencyCode) -> bool:
        """Delete the stored record, then evict its cache entry."""

        key = normalise_code(code)
        removed = self.store.delete(key)
        self.cache.delete(cache_key(key))
        return removed

    def evict(self, code: str | CurrencyCode) -> bool:
        """Drop one cache entry, forcing the next read to go to the store."""

        return self.cache.delete(cache_key(normalise_code(code)))

    def evict_all(self) -> int:
        """Drop every cached rate record without touching the store."""

        removed = self.cache.delete_prefix(CACHE_KEY_PREFIX)
        LOGGER.info("Evicted %s cached rate entries", removed)
        return removed

    def all(self) -> list[RateRecord]:
        return self.store.find_all()

    def update_rate(self, code: str | CurrencyCode, rate: Number) -> RateRecord:
        """Change the rate of an existing record."""

        key = normalise_code(code)
        try:
            new_rate = to_rate(rate)
        except ValueError as exc:
            raise InvalidRate(key, rate) from exc
        if new_rate <= 0:
            raise InvalidRate(key, rate)
        existing = self.get(key)
        if existing is None:
            raise CurrencyNotFound(key)
        LOGGER.info("Updating %s rate %s -> %s", key, existing.rate_to_base, new_rate)
        return self.put(RateRecord(currency_code=key, rate_to_base=new_rate))

    def _cache_get(self, key: str) -> RateRecord | None:
        try:
            value = self.cache.get(cache_key(key))
        except Exception as exc:  # cache outages degrade to store reads
            LOGGER.warning("Cache read failed for %s: %s", key, exc)
            return None
        return value if isinstance(value, RateRecord) else None

    def _cache_set(self, record: RateRecord) -> None:
        try:
            self.cache.set(cache_key(record.currency_code), record, self.ttl_seconds)
        except Exception as exc:  # the store already holds the value
            LOGGER.warning("Cache write failed for %s: %s", record.currency_code, exc)


__all__ = ["RateRepository", "CACHE_KEY_PREFIX", "cache_key"]
