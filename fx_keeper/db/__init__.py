"""Storage backends for currency rate records."""

from __future__ import annotations

from pathlib import Path
from typing import Final

__all__ = ["DEFAULT_SQLITE_DB_PATH", "bundled_sqlite_path", "RATE_TABLE"]

# Resolved next to this file so the default database does not depend on the
# working directory of the calling process.
DEFAULT_SQLITE_DB_PATH: Final[Path] = Path(__file__).resolve().with_name("rates.db")

RATE_TABLE: Final[str] = "currency_rates"


def bundled_sqlite_path() -> Path:
    """Return the absolute path to the default ``rates.db`` file."""

    return DEFAULT_SQLITE_DB_PATH
