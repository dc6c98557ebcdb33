"""Fixed-point helpers used for rates and monetary amounts."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, DecimalException, InvalidOperation
from typing import Union

Number = Union[Decimal, int, float, str]

RATE_PLACES = 6
MONEY_PLACES = 2
DIVISION_PLACES = 10

_RATE_QUANTUM = Decimal(1).scaleb(-RATE_PLACES)
_MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_PLACES)
_DIVISION_QUANTUM = Decimal(1).scaleb(-DIVISION_PLACES)


def to_decimal(value: Number) -> Decimal:
    """Coerce ``value`` into a finite :class:`Decimal`.

    Floats are routed through ``str`` so ``0.9`` becomes ``Decimal("0.9")``
    rather than its binary expansion.
    """

    if isinstance(value, bool):
        raise ValueError("booleans are not numeric amounts")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def _quantize(value: Decimal, quantum: Decimal) -> Decimal:
    # Results needing more digits than the context precision cannot be represented.
    try:
        return value.quantize(quantum, rounding=ROUND_HALF_UP)
    except DecimalException as exc:
        raise ValueError(f"{value} is out of range at {-quantum.as_tuple().exponent} places") from exc


def to_rate(value: Number) -> Decimal:
    """Quantize ``value`` to six fractional digits, rounding half-up."""

    return _quantize(to_decimal(value), _RATE_QUANTUM)


def to_money(value: Number) -> Decimal:
    """Quantize ``value`` to two fractional digits, rounding half-up."""

    return _quantize(to_decimal(value), _MONEY_QUANTUM)


def multiply(left: Decimal, right: Decimal) -> Decimal:
    try:
        return left * right
    except DecimalException as exc:
        raise ValueError(f"{left} * {right} is out of range") from exc


def divide(numerator: Decimal, denominator: Decimal, places: int = DIVISION_PLACES) -> Decimal:
    """Divide at ``places`` fractional digits (half-up) before any final rounding."""

    quantum = _DIVISION_QUANTUM if places == DIVISION_PLACES else Decimal(1).scaleb(-places)
    try:
        quotient = numerator / denominator
    except DecimalException as exc:
        raise ValueError(f"{numerator} / {denominator} is out of range") from exc
    return _quantize(quotient, quantum)


__all__ = [
    "Number",
    "RATE_PLACES",
    "MONEY_PLACES",
    "DIVISION_PLACES",
    "to_decimal",
    "to_rate",
    "to_money",
    "multiply",
    "divide",
]
