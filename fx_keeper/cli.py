"""Command line entry point: ``fx-keeper refresh|convert|rates|serve``."""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
import time
from pathlib import Path
from typing import Sequence

from fx_keeper import FxKeeper
from fx_keeper.config import Settings
from fx_keeper.exceptions import FxKeeperError
from fx_keeper.utils.logger import get_logger

LOGGER = get_logger(__name__)

__all__ = ["parse_args", "main"]


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="fx-keeper", description=__doc__)
    parser.add_argument(
        "--db",
        dest="db",
        help="Database DSN (sqlite:///, postgresql://, mysql://, mongodb://) or SQLite file path",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("refresh", help="Fetch quotes once and update stored rates")

    convert = subparsers.add_parser("convert", help="Convert an amount between two currencies")
    convert.add_argument("amount", help="Amount to convert, e.g. 1000.00")
    convert.add_argument("from_code", metavar="FROM", help="Source currency code")
    convert.add_argument("to_code", metavar="TO", help="Target currency code")

    subparsers.add_parser("rates", help="List stored rates")

    serve = subparsers.add_parser("serve", help="Keep rates fresh until interrupted")
    serve.add_argument(
        "--period",
        dest="period",
        help="Refresh period, e.g. 30m, 1h or @hourly (default from FX_KEEPER_REFRESH_PERIOD)",
    )
    return parser.parse_args(argv)


def _resolve_db_url(value: str) -> str:
    if "://" in value:
        return value
    return f"sqlite:///{Path(value).expanduser().resolve().as_posix()}"


def _settings_from_args(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    overrides: dict[str, object] = {}
    if args.db:
        overrides["db_url"] = _resolve_db_url(args.db)
    if getattr(args, "period", None):
        overrides["refresh_period"] = args.period
    return dataclasses.replace(settings, **overrides) if overrides else settings


def _serve(keeper: FxKeeper) -> None:
    keeper.start()
    LOGGER.info("Serving rate refresh; press Ctrl+C to stop")
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        LOGGER.info("Interrupted; stopping")


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = _settings_from_args(args)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    with FxKeeper(settings) as keeper:
        try:
            if args.command == "refresh":
                result = keeper.refresh()
                print(json.dumps(result.as_dict(), indent=2))
                return 1 if result.fetched == 0 else 0
            if args.command == "convert":
                print(keeper.convert(args.amount, args.from_code, args.to_code))
                return 0
            if args.command == "rates":
                for record in keeper.rates():
                    updated = record.last_update.isoformat() if record.last_update else "-"
                    print(f"{record.currency_code}\t{record.rate_to_base}\t{updated}")
                return 0
            _serve(keeper)
            return 0
        except (FxKeeperError, ValueError) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
