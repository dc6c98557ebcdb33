from __future__ import annotations

import json
from typing import Any

import pytest

from fx_keeper import FxKeeper, cli


class _StaticFeed:
    def __init__(self, rates: dict[str, Any]) -> None:
        self.rates = rates

    def fetch_latest_rates(self) -> dict[str, Any]:
        return dict(self.rates)


@pytest.fixture()
def patch_feed(monkeypatch: pytest.MonkeyPatch):
    def install(rates: dict[str, Any]) -> None:
        feed = _StaticFeed(rates)
        monkeypatch.setattr(cli, "FxKeeper", lambda settings: FxKeeper(settings, feed=feed))

    return install


def test_parse_args_convert() -> None:
    args = cli.parse_args(["--db", "rates.db", "convert", "1000", "USD", "TWD"])

    assert args.command == "convert"
    assert (args.amount, args.from_code, args.to_code) == ("1000", "USD", "TWD")
    assert args.db == "rates.db"


def test_refresh_rates_and_convert(tmp_path, patch_feed, capsys: pytest.CaptureFixture[str]) -> None:
    patch_feed({"TWD": "1", "USD": "31.25"})
    db = str(tmp_path / "cli.db")

    assert cli.main(["--db", db, "refresh"]) == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["created"] == 2
    assert summary["skipped"] == 3

    assert cli.main(["--db", db, "rates"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert [line.split("\t")[:2] for line in lines] == [["TWD", "1.000000"], ["USD", "31.250000"]]

    assert cli.main(["--db", db, "convert", "1000.00", "usd", "twd"]) == 0
    assert capsys.readouterr().out.strip() == "31250.00"


def test_convert_unknown_currency_reports_error(tmp_path, patch_feed, capsys: pytest.CaptureFixture[str]) -> None:
    patch_feed({})

    assert cli.main(["--db", str(tmp_path / "cli.db"), "convert", "1", "GBP", "TWD"]) == 1
    assert "Currency not found: GBP" in capsys.readouterr().err


def test_refresh_without_quotes_exits_non_zero(tmp_path, patch_feed, capsys: pytest.CaptureFixture[str]) -> None:
    patch_feed({})

    assert cli.main(["--db", str(tmp_path / "cli.db"), "refresh"]) == 1
    assert json.loads(capsys.readouterr().out)["fetched"] == 0


def test_bad_configuration_exits_with_usage_code(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("FX_KEEPER_WORKERS", "9")

    assert cli.main(["rates"]) == 2
    assert "max_workers" in capsys.readouterr().err


def test_db_path_is_turned_into_sqlite_url(tmp_path) -> None:
    url = cli._resolve_db_url(str(tmp_path / "local.db"))

    assert url == f"sqlite:///{(tmp_path / 'local.db').resolve().as_posix()}"
    assert cli._resolve_db_url("postgresql://db/fx") == "postgresql://db/fx"


def test_convert_oversized_amount_reports_error(tmp_path, patch_feed, capsys: pytest.CaptureFixture[str]) -> None:
    patch_feed({"TWD": "1", "USD": "31.25"})
    db = str(tmp_path / "cli.db")
    assert cli.main(["--db", db, "refresh"]) == 0
    capsys.readouterr()

    assert cli.main(["--db", db, "convert", "1e30", "USD", "TWD"]) == 1
    assert "out of range" in capsys.readouterr().err
