"""Currency conversion through the base currency.

Amounts go from the source currency into the base currency
(``amount * rate_to_base``) and, unless the target is the base, back out
again (``base_amount / rate_to_base(target)``). Every final amount is rounded
half-up to two decimal places exactly once. Amounts too large to carry two
fractional digits raise :class:`ValueError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from fx_keeper.exceptions import CurrencyNotFound, InvalidRateState
from fx_keeper.models import CurrencyCode, RateRecord, normalise_code
from fx_keeper.utils.decimals import Number, divide, multiply, to_decimal, to_money, to_rate

_ONE = to_rate(1)


class SupportsRateLookup(Protocol):
    def get(self, code: str) -> RateRecord | None: ...


@dataclass(frozen=True, slots=True)
class ConversionResult:
    amount: Decimal
    from_code: str
    to_code: str
    from_rate: Decimal
    to_rate: Decimal
    result: Decimal


class ConversionEngine:
    """Stateless converter backed by anything exposing ``get(code)``."""

    def __init__(
        self,
        repository: SupportsRateLookup,
        base_currency: str | CurrencyCode = CurrencyCode.TWD,
    ) -> None:
        self.repository = repository
        self.base_currency = normalise_code(base_currency)

    def convert_to_base(self, amount: Number, from_code: str | CurrencyCode) -> Decimal:
        value = to_decimal(amount)
        source = normalise_code(from_code)
        if source == self.base_currency:
            return value
        return to_money(multiply(value, self._rate_for(source)))

    def convert(
        self,
        amount: Number,
        from_code: str | CurrencyCode,
        to_code: str | CurrencyCode,
    ) -> Decimal:
        value = to_decimal(amount)
        source = normalise_code(from_code)
        target = normalise_code(to_code)
        if source == target:
            return value
        base_amount = self.convert_to_base(value, source)
        if target == self.base_currency:
            return base_amount
        return self._from_base(base_amount, target, self._rate_for(target))

    def convert_detailed(
        self,
        amount: Number,
        from_code: str | CurrencyCode,
        to_code: str | CurrencyCode,
    ) -> ConversionResult:
        """Convert and report the rates that were applied on each leg."""

        value = to_decimal(amount)
        source = normalise_code(from_code)
        target = normalise_code(to_code)
        if source == target:
            return ConversionResult(value, source, target, _ONE, _ONE, value)
        from_rate = _ONE if source == self.base_currency else self._rate_for(source)
        to_rate_value = _ONE if target == self.base_currency else self._rate_for(target)
        base_amount = value if source == self.base_currency else to_money(multiply(value, from_rate))
        if target == self.base_currency:
            result = base_amount
        else:
            result = self._from_base(base_amount, target, to_rate_value)
        return ConversionResult(value, source, target, from_rate, to_rate_value, result)

    def _rate_for(self, code: str) -> Decimal:
        record = self.repository.get(code)
        if record is None:
            raise CurrencyNotFound(code)
        rate = record.rate_to_base
        if rate is None or not rate > 0:
            raise InvalidRateState(code, rate)
        return rate

    @staticmethod
    def _from_base(base_amount: Decimal, target: str, rate: Decimal) -> Decimal:
        if rate == 0:
            raise InvalidRateState(target, rate)
        return to_money(divide(base_amount, rate))


__all__ = ["ConversionEngine", "ConversionResult", "SupportsRateLookup"]
