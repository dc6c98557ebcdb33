"""MongoDB rate store."""

from __future__ import annotations

from typing import Any

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from fx_keeper.db import RATE_TABLE
from fx_keeper.db.base_backend import RateStore
from fx_keeper.models import RateRecord, normalise_code, utcnow
from fx_keeper.utils.logger import get_logger

LOGGER = get_logger(__name__)


class MongoBackend(RateStore):
    """Rate store that persists one document per currency inside MongoDB."""

    def __init__(self, url: str, *, database: str | None = None) -> None:
        self.url = url
        self._client = MongoClient(url)
        db = self._client.get_default_database() if database is None else self._client[database]
        if db is None:
            raise ValueError("MongoDB connection URI must include a database name")
        self._collection: Collection = db[RATE_TABLE]

    def ensure_schema(self) -> None:
        try:
            LOGGER.info("Ensuring MongoDB %s collection exists", RATE_TABLE)
            self._client.admin.command("ping")
            self._collection.create_index([("currency_code", ASCENDING)], unique=True)
        except PyMongoError as exc:  # pragma: no cover - error path
            raise RuntimeError(f"Failed to ensure MongoDB schema: {exc}") from exc

    def find(self, code: str) -> RateRecord | None:
        try:
            doc = self._collection.find_one({"currency_code": normalise_code(code)})
        except PyMongoError as exc:
            raise RuntimeError(f"Failed to read MongoDB rate: {exc}") from exc
        return _doc_to_record(doc) if doc is not None else None

    def find_all(self) -> list[RateRecord]:
        try:
            docs = self._collection.find({}).sort("currency_code", ASCENDING)
            return [_doc_to_record(doc) for doc in docs]
        except PyMongoError as exc:
            raise RuntimeError(f"Failed to read MongoDB rates: {exc}") from exc

    def save(self, record: RateRecord) -> RateRecord:
        stamped = RateRecord(
            currency_code=record.currency_code,
            rate_to_base=record.rate_to_base,
            last_update=record.last_update or utcnow(),
        )
        # Rates are stored as strings so no digits are lost to binary floats.
        doc = {
            "currency_code": stamped.currency_code,
            "rate_to_base": str(stamped.rate_to_base),
            "last_update": stamped.last_update,
        }
        try:
            self._collection.update_one(
                {"currency_code": stamped.currency_code},
                {"$set": doc},
                upsert=True,
            )
        except PyMongoError as exc:
            raise RuntimeError(f"Failed to save MongoDB rate: {exc}") from exc
        return stamped

    def delete(self, code: str) -> bool:
        try:
            result = self._collection.delete_one({"currency_code": normalise_code(code)})
        except PyMongoError as exc:
            raise RuntimeError(f"Failed to delete MongoDB rate: {exc}") from exc
        return bool(result.deleted_count)

    def close(self) -> None:  # pragma: no cover - trivial cleanup
        self._client.close()


def _doc_to_record(doc: dict[str, Any]) -> RateRecord:
    return RateRecord(
        currency_code=doc.get("currency_code", doc.get("code", "")),
        rate_to_base=doc["rate_to_base"],
        last_update=doc.get("last_update"),
    )


__all__ = ["MongoBackend"]
