"""Interest formulas: periodic, simple, compound, daily, accrual, APY and rate conversion.

Pure functions: Decimal in, Decimal out. No I/O.
All rates are annual percentages (5.0 = 5%).
"""

from datetime import date
from decimal import Decimal
from typing import Iterable

from loan_amortization.engine.money import ZERO, money, rate4, to_decimal
from loan_amortization.engine.payment import validate_rate
from loan_amortization.exceptions import InvalidArgumentError
from loan_amortization.models.frequency import Frequency, parse_frequency
from loan_amortization.models.schedule import ScheduleRow

DAYS_PER_YEAR = 365


def _validate_balance(balance, field: str = "balance") -> Decimal:
    value = to_decimal(balance, field)
    if value < 0:
        raise InvalidArgumentError(f"{field} cannot be negative", {field: str(value)})
    return value


def _as_date(value: date | str, field: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"{field} must be an ISO date (YYYY-MM-DD), got {value!r}")


def periodic_interest(balance, annual_rate_percent, frequency: Frequency | str) -> Decimal:
    """Interest for one period: balance * rate / periods per year."""
    b = _validate_balance(balance)
    rate = validate_rate(annual_rate_percent)
    freq = parse_frequency(frequency)
    return money(b * rate / 100 / freq.periods_per_year)


def simple_interest(principal, annual_rate_percent, years) -> Decimal:
    """I = P * R * T."""
    p = _validate_balance(principal, "principal")
    rate = validate_rate(annual_rate_percent)
    t = to_decimal(years, "years")
    if t <= 0:
        raise InvalidArgumentError("Time must be greater than zero", {"years": str(t)})
    return money(p * rate / 100 * t)


def compound_interest(principal, annual_rate_percent, periods: int, frequency: Frequency | str) -> Decimal:
    """Interest earned compounding `periods` times: P(1 + r/n)^periods - P."""
    p = _validate_balance(principal, "principal")
    rate = validate_rate(annual_rate_percent)
    freq = parse_frequency(frequency)
    if isinstance(periods, bool) or not isinstance(periods, int) or periods <= 0:
        raise InvalidArgumentError("Periods must be a positive integer", {"periods": periods})
    r = rate / 100 / freq.periods_per_year
    return money(p * (1 + r) ** periods - p)


def daily_interest(balance, annual_rate_percent) -> Decimal:
    """Interest for a single day on an actual/365 basis."""
    b = _validate_balance(balance)
    rate = validate_rate(annual_rate_percent)
    return money(b * rate / 100 / DAYS_PER_YEAR)


def accrued_interest(balance, annual_rate_percent, start: date | str, end: date | str) -> Decimal:
    """Interest accrued between two dates: rounded daily interest times elapsed days."""
    start_date = _as_date(start, "start")
    end_date = _as_date(end, "end")
    if end_date < start_date:
        raise InvalidArgumentError(
            "End date must not precede start date",
            {"start": start_date.isoformat(), "end": end_date.isoformat()},
        )
    days = (end_date - start_date).days
    return money(daily_interest(balance, annual_rate_percent) * days)


def apy_from_apr(annual_rate_percent, frequency: Frequency | str) -> Decimal:
    """Effective annual yield (percent) of a nominal rate compounded at `frequency`."""
    rate = validate_rate(annual_rate_percent)
    n = parse_frequency(frequency).periods_per_year
    return rate4(((1 + rate / 100 / n) ** n - 1) * 100)


def effective_to_nominal(effective_percent, frequency: Frequency | str) -> Decimal:
    """Nominal annual rate (percent) compounding at `frequency` that yields `effective_percent`."""
    rate = validate_rate(effective_percent)
    n = parse_frequency(frequency).periods_per_year
    growth = 1 + rate / 100
    periodic = growth ** (Decimal(1) / Decimal(n)) - 1
    return rate4(periodic * n * 100)


def convert_rate(rate, from_frequency: Frequency | str, to_frequency: Frequency | str) -> Decimal:
    """Convert a nominal per-period rate between frequencies.

    0.4167 monthly -> 5.0 annual; 1.0 biweekly -> 2.1667 monthly.
    """
    value = validate_rate(rate)
    src = parse_frequency(from_frequency)
    dst = parse_frequency(to_frequency)
    if src == dst:
        return value
    return rate4(value * src.periods_per_year / dst.periods_per_year)


def total_interest(rows: Iterable[ScheduleRow]) -> Decimal:
    return money(sum((r.interest_payment for r in rows), ZERO))
