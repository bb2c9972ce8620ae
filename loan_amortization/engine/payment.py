"""Level payment (annuity) computation.

Pure functions: Decimal in, Decimal out. No I/O.
"""

from decimal import Decimal, ROUND_CEILING

from loan_amortization.engine.money import money, to_decimal
from loan_amortization.exceptions import InvalidArgumentError
from loan_amortization.models.frequency import Frequency, parse_frequency

_NPER_EPSILON = Decimal("1e-9")


def validate_principal(principal) -> Decimal:
    value = to_decimal(principal, "principal")
    if value <= 0:
        raise InvalidArgumentError("Principal must be greater than zero", {"principal": str(value)})
    return value


def validate_count(number_of_payments, field: str = "number_of_payments") -> int:
    if isinstance(number_of_payments, bool) or not isinstance(number_of_payments, int):
        raise InvalidArgumentError(f"{field} must be an integer, got {number_of_payments!r}")
    if number_of_payments <= 0:
        raise InvalidArgumentError(f"{field} must be greater than zero", {field: number_of_payments})
    return number_of_payments


def validate_rate(annual_rate_percent) -> Decimal:
    rate = to_decimal(annual_rate_percent, "annual_rate")
    if rate < 0:
        raise InvalidArgumentError("Annual interest rate cannot be negative", {"rate": str(rate)})
    return rate


def periodic_rate(annual_rate_percent, frequency: Frequency | str) -> Decimal:
    """Per-period rate as a fraction, e.g. 5% monthly -> 0.05 / 12."""
    freq = parse_frequency(frequency)
    return validate_rate(annual_rate_percent) / 100 / freq.periods_per_year


def level_payment(principal: Decimal, rate: Decimal, periods: int) -> Decimal:
    """Unrounded payment that amortizes `principal` over `periods` at `rate` per period."""
    if rate == 0:
        return principal / periods
    # PMT = P * [r(1+r)^n] / [(1+r)^n - 1]
    factor = (1 + rate) ** periods
    return principal * (rate * factor) / (factor - 1)


def calculate_payment(
    principal,
    annual_rate_percent,
    frequency: Frequency | str,
    number_of_payments: int,
) -> Decimal:
    """Fixed payment per period for a fully amortizing loan.

    Args:
        principal: Amount financed, must be positive
        annual_rate_percent: Nominal annual rate in percent (5.0 = 5%)
        frequency: Payment frequency name or Frequency member
        number_of_payments: Total number of payments
    """
    p = validate_principal(principal)
    n = validate_count(number_of_payments)
    r = periodic_rate(annual_rate_percent, frequency)
    return money(level_payment(p, r, n))


def present_value(amount: Decimal, rate: Decimal, periods: int) -> Decimal:
    """Value today of `amount` received after `periods` periods."""
    if rate == 0:
        return amount
    return amount / (1 + rate) ** periods


def balloon_level_payment(principal: Decimal, rate: Decimal, periods: int, balloon: Decimal) -> Decimal:
    """Level payment leaving exactly `balloon` outstanding after `periods` payments."""
    return level_payment(principal - present_value(balloon, rate, periods), rate, periods)


def remaining_periods(balance: Decimal, rate: Decimal, payment: Decimal) -> int:
    """Number of payments of `payment` needed to retire `balance` (NPER, rounded up)."""
    if balance <= 0:
        return 0
    if payment <= 0:
        raise InvalidArgumentError("Payment must be greater than zero", {"payment": str(payment)})
    if rate == 0:
        return int((balance / payment).to_integral_value(rounding=ROUND_CEILING))
    if payment <= balance * rate:
        raise InvalidArgumentError(
            "Payment does not cover periodic interest",
            {"payment": str(payment), "interest": str(money(balance * rate))},
        )
    # n = ln(PMT / (PMT - r*B)) / ln(1 + r)
    n = (payment / (payment - rate * balance)).ln() / (1 + rate).ln()
    return max(1, int((n - _NPER_EPSILON).to_integral_value(rounding=ROUND_CEILING)))
