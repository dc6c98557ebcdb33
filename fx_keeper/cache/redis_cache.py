"""Redis-backed cache for rate records."""

from __future__ import annotations

import json
import math
from typing import Any, Callable

import redis

from fx_keeper.cache.base import DEFAULT_TTL_SECONDS, KeyValueCache
from fx_keeper.models import RateRecord
from fx_keeper.utils.logger import get_logger

LOGGER = get_logger(__name__)


def dump_rate_record(value: Any) -> str:
    """Serialize a :class:`RateRecord` (or plain JSON data) for storage."""

    if isinstance(value, RateRecord):
        return json.dumps({"__rate_record__": value.to_dict()})
    return json.dumps(value)


def load_rate_record(raw: str | bytes) -> Any:
    payload = json.loads(raw)
    if isinstance(payload, dict) and "__rate_record__" in payload:
        return RateRecord.from_dict(payload["__rate_record__"])
    return payload


class RedisCache(KeyValueCache):
    """Cache that stores values in Redis under an optional key prefix.

    Serialization is pluggable through ``dumps``/``loads`` so the repository
    above never depends on how records are encoded.
    """

    def __init__(
        self,
        client: "redis.Redis",
        *,
        prefix: str = "",
        dumps: Callable[[Any], str] = dump_rate_record,
        loads: Callable[[str | bytes], Any] = load_rate_record,
        scan_count: int = 500,
    ) -> None:
        self.client = client
        self.prefix = prefix
        self._dumps = dumps
        self._loads = loads
        self._scan_count = scan_count

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisCache":
        client = redis.from_url(url, decode_responses=True)
        return cls(client, **kwargs)

    def _make_key(self, key: str) -> str:
        return f"{self.prefix}:{key}" if self.prefix else key

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as exc:
            LOGGER.warning("Redis ping failed: %s", exc)
            return False

    def get(self, key: str) -> Any | None:
        raw = self.client.get(self._make_key(key))
        if raw is None:
            return None
        try:
            return self._loads(raw)
        except (ValueError, TypeError) as exc:
            LOGGER.warning("Dropping undecodable cache entry %s: %s", key, exc)
            self.client.delete(self._make_key(key))
            return None

    def set(self, key: str, value: Any, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.client.setex(self._make_key(key), max(1, math.ceil(ttl_seconds)), self._dumps(value))

    def delete(self, key: str) -> bool:
        return bool(self.client.delete(self._make_key(key)))

    def delete_prefix(self, prefix: str) -> int:
        pattern = f"{self._make_key(prefix)}*"
        removed = 0
        batch: list[str] = []
        for redis_key in self.client.scan_iter(match=pattern, count=self._scan_count):
            batch.append(redis_key)
            if len(batch) >= self._scan_count:
                removed += int(self.client.delete(*batch))
                batch = []
        if batch:
            removed += int(self.client.delete(*batch))
        return removed

    def close(self) -> None:  # pragma: no cover - trivial cleanup
        self.client.close()


__all__ = ["RedisCache", "dump_rate_record", "load_rate_record"]
