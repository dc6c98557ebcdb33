"""Shared logic for SQL (Postgres/MySQL) rate stores."""

from __future__ import annotations

from typing import Any

from sqlalchemy import DateTime, bindparam, create_engine, text
from sqlalchemy.engine import Engine

from fx_keeper.db import RATE_TABLE
from fx_keeper.db.base_backend import RateStore
from fx_keeper.models import RateRecord, as_utc, normalise_code, utcnow
from fx_keeper.utils.logger import get_logger

LOGGER = get_logger(__name__)

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {RATE_TABLE} (
    currency_code VARCHAR(3) NOT NULL,
    rate_to_base NUMERIC(19, 6) NOT NULL,
    last_update TIMESTAMP NULL,
    PRIMARY KEY(currency_code)
);
"""

SELECT_ONE_SQL = (
    f"SELECT currency_code, rate_to_base, last_update FROM {RATE_TABLE} "
    "WHERE currency_code = :currency_code"
)
SELECT_ALL_SQL = (
    f"SELECT currency_code, rate_to_base, last_update FROM {RATE_TABLE} ORDER BY currency_code"
)
DELETE_SQL = f"DELETE FROM {RATE_TABLE} WHERE currency_code = :currency_code"
INSERT_SQL = f"""
INSERT INTO {RATE_TABLE}(currency_code, rate_to_base, last_update)
VALUES(:currency_code, :rate_to_base, :last_update)
"""


class RelationalBackend(RateStore):
    """Base class that encapsulates SQLAlchemy powered interactions."""

    def __init__(self, url: str) -> None:
        self.url = url
        self._engine_instance: Engine | None = None

    def _get_engine(self) -> Engine:
        if self._engine_instance is None:
            self._engine_instance = create_engine(self.url, future=True)
        return self._engine_instance

    def ensure_schema(self) -> None:
        engine = self._get_engine()
        with engine.begin() as connection:
            LOGGER.info("Ensuring %s schema exists", RATE_TABLE)
            connection.execute(text("SELECT 1"))
            connection.execute(text(SCHEMA_SQL))

    def find(self, code: str) -> RateRecord | None:
        with self._get_engine().connect() as connection:
            row = connection.execute(
                text(SELECT_ONE_SQL), {"currency_code": normalise_code(code)}
            ).first()
        return _row_to_record(row._mapping) if row is not None else None

    def find_all(self) -> list[RateRecord]:
        with self._get_engine().connect() as connection:
            return [_row_to_record(row._mapping) for row in connection.execute(text(SELECT_ALL_SQL))]

    def save(self, record: RateRecord) -> RateRecord:
        stamped = RateRecord(
            currency_code=record.currency_code,
            rate_to_base=record.rate_to_base,
            last_update=record.last_update or utcnow(),
        )
        params = {
            "currency_code": stamped.currency_code,
            # Bound as text so drivers without native Decimal support keep every digit.
            "rate_to_base": str(stamped.rate_to_base),
            "last_update": stamped.last_update,
        }
        # Delete + insert keeps the upsert portable across dialects.
        with self._get_engine().begin() as connection:
            connection.execute(text(DELETE_SQL), params)
            connection.execute(_insert_statement(), params)
        return stamped

    def delete(self, code: str) -> bool:
        with self._get_engine().begin() as connection:
            result = connection.execute(text(DELETE_SQL), {"currency_code": normalise_code(code)})
        return bool(result.rowcount)

    def close(self) -> None:  # pragma: no cover - trivial resource cleanup
        if self._engine_instance is not None:
            self._engine_instance.dispose()


def _insert_statement():
    return text(INSERT_SQL).bindparams(bindparam("last_update", type_=DateTime(timezone=True)))


def _row_to_record(mapping: Any) -> RateRecord:
    return RateRecord(
        currency_code=mapping["currency_code"],
        rate_to_base=mapping["rate_to_base"],
        last_update=as_utc(mapping["last_update"]),
    )


__all__ = ["RelationalBackend"]
