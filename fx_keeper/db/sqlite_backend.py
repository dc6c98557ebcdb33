"""SQLite rate store built on the SQLAlchemy ORM."""

from __future__ import annotations

from pathlib import Path
from typing import cast

from sqlalchemy import Column, DateTime, Numeric, String, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from fx_keeper.db import DEFAULT_SQLITE_DB_PATH, RATE_TABLE
from fx_keeper.db.base_backend import RateStore
from fx_keeper.models import RateRecord, normalise_code, utcnow
from fx_keeper.utils.logger import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class _CurrencyRate(Base):
    __tablename__ = RATE_TABLE

    currency_code = Column(String(3), primary_key=True)
    rate_to_base = Column(Numeric(19, 6, asdecimal=True), nullable=False)
    last_update = Column(DateTime(timezone=True), nullable=True)


def _to_record(model: _CurrencyRate) -> RateRecord:
    return RateRecord(
        currency_code=cast(str, model.currency_code),
        rate_to_base=model.rate_to_base,  # type: ignore[arg-type]
        last_update=model.last_update,  # type: ignore[arg-type]
    )


class SQLiteBackend(RateStore):
    """Rate store that keeps one row per currency in a local SQLite file."""

    def __init__(self, db_path: str | Path = DEFAULT_SQLITE_DB_PATH) -> None:
        self.db_path = Path(db_path).expanduser().resolve()
        self.engine: Engine = create_engine(
            f"sqlite:///{self.db_path}",
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
        )
        Base.metadata.create_all(self.engine)
        self._SessionFactory: sessionmaker[Session] = sessionmaker(
            bind=self.engine, expire_on_commit=False, future=True
        )

    def ensure_schema(self) -> None:
        # The constructor already created the table.
        return None

    def find(self, code: str) -> RateRecord | None:
        with self._SessionFactory() as session:
            model = session.get(_CurrencyRate, normalise_code(code))
            return _to_record(model) if model is not None else None

    def find_all(self) -> list[RateRecord]:
        with self._SessionFactory() as session:
            stmt = select(_CurrencyRate).order_by(_CurrencyRate.currency_code)
            return [_to_record(cast(_CurrencyRate, row)) for row in session.execute(stmt).scalars()]

    def save(self, record: RateRecord) -> RateRecord:
        stamped = RateRecord(
            currency_code=record.currency_code,
            rate_to_base=record.rate_to_base,
            last_update=record.last_update or utcnow(),
        )
        with self._SessionFactory() as session:
            existing = session.get(_CurrencyRate, stamped.currency_code)
            if existing is None:
                session.add(
                    _CurrencyRate(
                        currency_code=stamped.currency_code,
                        rate_to_base=stamped.rate_to_base,
                        last_update=stamped.last_update,
                    )
                )
                LOGGER.debug("Inserted %s = %s", stamped.currency_code, stamped.rate_to_base)
            else:
                setattr(existing, "rate_to_base", stamped.rate_to_base)
                setattr(existing, "last_update", stamped.last_update)
                LOGGER.debug("Updated %s = %s", stamped.currency_code, stamped.rate_to_base)
            session.commit()
        return stamped

    def delete(self, code: str) -> bool:
        with self._SessionFactory() as session:
            existing = session.get(_CurrencyRate, normalise_code(code))
            if existing is None:
                return False
            session.delete(existing)
            session.commit()
        return True

    def close(self) -> None:  # pragma: no cover - trivial
        self.engine.dispose()


__all__ = ["SQLiteBackend"]
