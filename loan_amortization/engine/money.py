"""Decimal helpers shared by the calculators.

Pure functions. No I/O.
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP

from loan_amortization.exceptions import InvalidArgumentError

TWO_PLACES = Decimal("0.01")
FOUR_PLACES = Decimal("0.0001")
ZERO = Decimal("0")
ONE_CENT = Decimal("0.01")


def to_decimal(value, field: str) -> Decimal:
    """Coerce an int, float, str or Decimal into a finite Decimal."""
    if isinstance(value, bool) or value is None:
        raise InvalidArgumentError(f"{field} must be numeric, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise InvalidArgumentError(f"{field} must be numeric, got {value!r}")
    if not result.is_finite():
        raise InvalidArgumentError(f"{field} must be finite, got {value!r}")
    return result


def positive_amount(value, field: str) -> Decimal:
    """Validate a strictly positive money amount."""
    amount = to_decimal(value, field)
    if amount <= 0:
        raise InvalidArgumentError(f"{field} must be greater than zero", {field: str(amount)})
    return amount


def money(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, ROUND_HALF_UP)


def money_down(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, ROUND_DOWN)


def rate4(value: Decimal) -> Decimal:
    return value.quantize(FOUR_PLACES, ROUND_HALF_UP)
