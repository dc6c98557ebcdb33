from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from fx_keeper.db.sqlite_backend import SQLiteBackend
from fx_keeper.models import RateRecord


def test_sqlite_backend_roundtrip(tmp_path) -> None:
    backend = SQLiteBackend(db_path=tmp_path / "rates.db")
    assert backend.ensure_schema() is None

    saved = backend.save(RateRecord.of("USD", "31.25"))
    assert saved.last_update is not None

    fetched = backend.find("usd")
    assert fetched is not None
    assert fetched.rate_to_base == Decimal("31.250000")
    assert fetched.last_update is not None
    assert fetched.last_update.tzinfo is not None
    assert backend.find("EUR") is None

    backend.close()


def test_sqlite_backend_updates_in_place(tmp_path) -> None:
    backend = SQLiteBackend(db_path=tmp_path / "rates.db")
    stamp = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
    backend.save(RateRecord.of("EUR", "34.5"))
    backend.save(RateRecord(currency_code="EUR", rate_to_base=Decimal("34.722222"), last_update=stamp))
    backend.save(RateRecord.of("JPY", "0.2134"))

    rows = backend.find_all()
    assert [row.currency_code for row in rows] == ["EUR", "JPY"]
    assert rows[0].rate_to_base == Decimal("34.722222")
    assert rows[0].last_update == stamp

    backend.close()


def test_sqlite_backend_delete(tmp_path) -> None:
    backend = SQLiteBackend(db_path=tmp_path / "rates.db")
    backend.save(RateRecord.of("CNY", "4.3"))

    assert backend.delete("CNY") is True
    assert backend.delete("CNY") is False
    assert backend.find("CNY") is None

    backend.close()


def test_sqlite_backend_persists_across_instances(tmp_path) -> None:
    path = tmp_path / "rates.db"
    with SQLiteBackend(db_path=path) as backend:
        backend.save(RateRecord.of("USD", "30.9"))

    with SQLiteBackend(db_path=path) as reopened:
        record = reopened.find("USD")
    assert record is not None
    assert record.rate_to_base == Decimal("30.900000")
