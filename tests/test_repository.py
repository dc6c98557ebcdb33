from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest

from fx_keeper.cache.memory import MemoryCache
from fx_keeper.db.base_backend import RateStore
from fx_keeper.db.sqlite_backend import SQLiteBackend
from fx_keeper.exceptions import CurrencyNotFound, InvalidRate
from fx_keeper.models import RateRecord
from fx_keeper.repository import CACHE_KEY_PREFIX, RateRepository, cache_key


class _CountingStore(RateStore):
    """In-memory store that records every call."""

    def __init__(self) -> None:
        self.rows: dict[str, RateRecord] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_saves = False

    def ensure_schema(self) -> None:
        return None

    def find(self, code: str) -> RateRecord | None:
        self.calls.append(("find", code))
        return self.rows.get(code)

    def find_all(self) -> list[RateRecord]:
        self.calls.append(("find_all", ""))
        return [self.rows[code] for code in sorted(self.rows)]

    def save(self, record: RateRecord) -> RateRecord:
        self.calls.append(("save", record.currency_code))
        if self.fail_saves:
            raise RuntimeError("disk full")
        self.rows[record.currency_code] = record
        return record

    def delete(self, code: str) -> bool:
        self.calls.append(("delete", code))
        return self.rows.pop(code, None) is not None


class _BrokenCache(MemoryCache):
    def get(self, key: str) -> Any | None:
        raise ConnectionError("cache down")

    def set(self, key: str, value: Any, ttl_seconds: float = 1) -> None:
        raise ConnectionError("cache down")


def _finds(store: _CountingStore) -> int:
    return sum(1 for name, _ in store.calls if name == "find")


def test_get_unknown_code_returns_none() -> None:
    repo = RateRepository(_CountingStore(), MemoryCache())

    assert repo.get("USD") is None
    assert repo.get("not-a-code") is None


def test_put_then_get_is_served_from_cache() -> None:
    store = _CountingStore()
    cache = MemoryCache()
    repo = RateRepository(store, cache)

    assert repo.get("USD") is None
    repo.put(RateRecord.of("USD", "31.25"))
    finds_before = _finds(store)

    record = repo.get("usd")

    assert record is not None
    assert record.rate_to_base == Decimal("31.250000")
    assert _finds(store) == finds_before
    assert cache_key("USD") in cache


def test_cache_miss_reads_store_and_fills_cache() -> None:
    store = _CountingStore()
    store.rows["EUR"] = RateRecord.of("EUR", "34.722222")
    cache = MemoryCache()
    repo = RateRepository(store, cache)

    assert repo.get("EUR") == store.rows["EUR"]
    assert repo.get("EUR") == store.rows["EUR"]
    assert _finds(store) == 1
    assert cache.get("currency:rate:EUR") == store.rows["EUR"]


@pytest.mark.parametrize("rate", ["0", "-1.5"])
def test_put_rejects_non_positive_rates(rate: str) -> None:
    store = _CountingStore()
    cache = MemoryCache()
    repo = RateRepository(store, cache)

    with pytest.raises(InvalidRate):
        repo.put(RateRecord.of("USD", rate))

    assert store.calls == []
    assert len(cache) == 0


def test_store_failure_leaves_cache_untouched() -> None:
    store = _CountingStore()
    cache = MemoryCache()
    repo = RateRepository(store, cache)
    repo.put(RateRecord.of("USD", "31.25"))
    store.fail_saves = True

    with pytest.raises(RuntimeError):
        repo.put(RateRecord.of("USD", "40"))

    cached = cache.get(cache_key("USD"))
    assert cached.rate_to_base == Decimal("31.250000")


def test_delete_removes_store_row_then_cache_entry() -> None:
    store = _CountingStore()
    cache = MemoryCache()
    repo = RateRepository(store, cache)
    repo.put(RateRecord.of("JPY", "0.2134"))

    assert repo.delete("JPY") is True
    assert cache_key("JPY") not in cache
    assert repo.get("JPY") is None


def test_evict_all_only_touches_rate_namespace() -> None:
    store = _CountingStore()
    cache = MemoryCache()
    cache.set("session:1", "keep")
    repo = RateRepository(store, cache)
    repo.put(RateRecord.of("USD", "31.25"))
    repo.put(RateRecord.of("EUR", "34.7"))

    assert repo.evict_all() == 2
    assert "session:1" in cache
    assert set(store.rows) == {"USD", "EUR"}
    assert repo.get("USD") is not None
    assert CACHE_KEY_PREFIX == "currency:rate:"


def test_evict_single_entry_forces_store_read() -> None:
    store = _CountingStore()
    repo = RateRepository(store, MemoryCache())
    repo.put(RateRecord.of("CNY", "4.31"))

    assert repo.evict("CNY") is True
    repo.get("CNY")
    assert _finds(store) == 1


def test_update_rate_requires_existing_record() -> None:
    store = _CountingStore()
    repo = RateRepository(store, MemoryCache())

    with pytest.raises(CurrencyNotFound) as excinfo:
        repo.update_rate("USD", "31")
    assert excinfo.value.code == "USD"

    repo.put(RateRecord.of("USD", "31"))
    updated = repo.update_rate("usd", "31.5")
    assert updated.rate_to_base == Decimal("31.500000")
    assert repo.get("USD").rate_to_base == Decimal("31.500000")

    with pytest.raises(InvalidRate):
        repo.update_rate("USD", 0)
    with pytest.raises(InvalidRate):
        repo.update_rate("USD", "abc")


def test_cache_outage_degrades_to_store() -> None:
    store = _CountingStore()
    repo = RateRepository(store, _BrokenCache())

    repo.put(RateRecord.of("USD", "31.25"))
    record = repo.get("USD")

    assert record is not None
    assert record.rate_to_base == Decimal("31.250000")
    assert _finds(store) == 1


def test_repository_over_sqlite_store(tmp_path) -> None:
    store = SQLiteBackend(tmp_path / "repo.db")
    repo = RateRepository(store, MemoryCache(), ttl_seconds=60)

    repo.put(RateRecord.of("USD", "31.25"))
    repo.evict_all()

    record = repo.get("USD")
    assert record is not None
    assert record.rate_to_base == Decimal("31.250000")
    assert [row.currency_code for row in repo.all()] == ["USD"]
    store.close()


def test_ttl_must_be_positive() -> None:
    with pytest.raises(ValueError):
        RateRepository(_CountingStore(), MemoryCache(), ttl_seconds=0)
