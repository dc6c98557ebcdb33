"""Exception types raised by :mod:`fx_keeper`."""

from __future__ import annotations

from typing import Any


class FxKeeperError(Exception):
    """Base class for every error raised by the package."""


class InvalidRate(FxKeeperError, ValueError):
    """A missing, zero or negative rate was about to be persisted."""

    def __init__(self, code: str | None, rate: Any) -> None:
        self.code = code
        self.rate = rate
        super().__init__(f"Rate for {code or '<unknown>'} must be a positive number, got {rate!r}")


class CurrencyNotFound(FxKeeperError, LookupError):
    """No rate record exists for a currency that was expected to exist."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Currency not found: {code}")


class InvalidRateState(FxKeeperError, RuntimeError):
    """A stored record violates the positive-rate invariant."""

    def __init__(self, code: str, rate: Any) -> None:
        self.code = code
        self.rate = rate
        super().__init__(f"Stored rate for {code} is not usable: {rate!r}")


class UpstreamUnavailable(FxKeeperError, RuntimeError):
    """The external quote feed could not deliver usable data."""


class InvalidSchedule(FxKeeperError, ValueError):
    """The refresh period could not be parsed."""


__all__ = [
    "FxKeeperError",
    "InvalidRate",
    "CurrencyNotFound",
    "InvalidRateState",
    "UpstreamUnavailable",
    "InvalidSchedule",
]
