"""Amortization schedule computation.

Pure functions: Decimal in, dataclass out. No I/O.

Balances are carried in cents, so every row reconciles exactly:
beginning - principal == ending, and ending[i] == beginning[i + 1].
The final row absorbs any residual so the schedule closes at zero.
"""

from datetime import date
from decimal import Decimal

from loan_amortization.engine.calendar import days_between, nth_payment_date
from loan_amortization.engine.interest import DAYS_PER_YEAR
from loan_amortization.engine.money import ZERO, money, money_down
from loan_amortization.engine.payment import (
    level_payment,
    periodic_rate,
    validate_count,
    validate_principal,
    validate_rate,
)
from loan_amortization.exceptions import InvalidArgumentError
from loan_amortization.models.frequency import Frequency, parse_frequency
from loan_amortization.models.schedule import Schedule, ScheduleRow


def parse_start_date(start_date: date | str | None) -> date:
    if start_date is None:
        return date.today()
    if isinstance(start_date, date):
        return start_date
    try:
        return date.fromisoformat(start_date)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"start_date must be an ISO date (YYYY-MM-DD), got {start_date!r}")


class DayCountRate:
    """Per-row rate for interest compounded at a different frequency than payments.

    Interest for a row compounds the nominal rate at `compounding` frequency over
    the actual days elapsed since the previous payment date (actual/365).
    """

    def __init__(self, annual_rate_percent: Decimal, compounding: Frequency):
        self.annual = annual_rate_percent / 100
        self.m = compounding.periods_per_year

    def equivalent_rate(self, payment_frequency: Frequency) -> Decimal:
        """Nominal per-payment rate with the same annual growth as the compounding."""
        if self.annual == 0:
            return ZERO
        exponent = Decimal(self.m) / Decimal(payment_frequency.periods_per_year)
        return (1 + self.annual / self.m) ** exponent - 1

    def for_days(self, days: int) -> Decimal:
        if self.annual == 0 or days <= 0:
            return ZERO
        exponent = Decimal(self.m) * Decimal(days) / Decimal(DAYS_PER_YEAR)
        return (1 + self.annual / self.m) ** exponent - 1


def interest_basis(
    annual_rate_percent: Decimal,
    frequency: Frequency,
    interest_frequency: Frequency | None = None,
) -> tuple[Decimal, DayCountRate | None]:
    """Per-payment rate and, when compounding differs from payments, its day-count rate."""
    if interest_frequency is None or interest_frequency == frequency:
        return periodic_rate(annual_rate_percent, frequency), None
    day_count = DayCountRate(annual_rate_percent, interest_frequency)
    return day_count.equivalent_rate(frequency), day_count


def period_rate(
    anchor: date,
    frequency: Frequency,
    index: int,
    rate: Decimal,
    day_count: DayCountRate | None = None,
) -> Decimal:
    """Rate charged on the row dated `index` periods after `anchor`."""
    if day_count is None:
        return rate
    pay_date = nth_payment_date(anchor, frequency, index)
    prev_date = nth_payment_date(anchor, frequency, index - 1)
    return day_count.for_days(days_between(prev_date, pay_date))


def amortize_balance(
    balance: Decimal,
    rate: Decimal,
    periods: int,
    payment: Decimal,
    *,
    anchor: date,
    frequency: Frequency,
    first_number: int = 1,
    annual_rate_percent: Decimal = ZERO,
    term_number: int = 1,
    day_count: DayCountRate | None = None,
    close_out: bool = True,
    stop_at_payoff: bool = False,
) -> list[ScheduleRow]:
    """Build rows paying `payment` per period against `balance`.

    Row k is numbered `first_number + k` and dated `first_number - 1 + k`
    periods after `anchor`. With `close_out` the last of `periods` rows pays
    off whatever remains; without it the balance carries forward, as between
    rate blocks. With `stop_at_payoff` the rows end once the balance is
    retired, otherwise exactly `periods` rows are returned.
    """
    rows: list[ScheduleRow] = []
    balance = money(balance)
    payment = money(payment)

    for k in range(periods):
        number = first_number + k
        index = number - 1
        pay_date = nth_payment_date(anchor, frequency, index)
        interest = money(balance * period_rate(anchor, frequency, index, rate, day_count))
        principal_paid = payment - interest
        is_last = close_out and k == periods - 1

        # Final payment adjustment
        if is_last or principal_paid >= balance:
            principal_paid = balance
            actual_payment = principal_paid + interest
        else:
            actual_payment = payment

        ending = balance - principal_paid
        rows.append(ScheduleRow(
            payment_number=number,
            payment_date=pay_date,
            beginning_balance=balance,
            payment_amount=actual_payment,
            principal_payment=principal_paid,
            interest_payment=interest,
            ending_balance=ending,
            rate=annual_rate_percent,
            term_number=term_number,
        ))
        balance = ending
        if stop_at_payoff and balance == 0:
            break

    return rows


def generate_schedule(
    principal,
    annual_rate_percent,
    frequency: Frequency | str,
    number_of_payments: int,
    start_date: date | str | None = None,
    interest_frequency: Frequency | str | None = None,
) -> Schedule:
    """Generate a full amortization schedule of exactly `number_of_payments` rows.

    Args:
        principal: Amount financed
        annual_rate_percent: Nominal annual rate (5.0 = 5%)
        frequency: Payment frequency
        number_of_payments: Length of the schedule
        start_date: Date of the first payment (default: today)
        interest_frequency: Compounding frequency when it differs from the payment frequency
    """
    p = validate_principal(principal)
    n = validate_count(number_of_payments)
    rate_pct = validate_rate(annual_rate_percent)
    freq = parse_frequency(frequency)
    start = parse_start_date(start_date)

    compounding = None
    if interest_frequency is not None and parse_frequency(interest_frequency) != freq:
        compounding = parse_frequency(interest_frequency)
    r, day_count = interest_basis(rate_pct, freq, compounding)

    exact = level_payment(p, r, n)
    pmt = money(exact)
    rows = amortize_balance(
        p, r, n, pmt,
        anchor=start,
        frequency=freq,
        annual_rate_percent=rate_pct,
        day_count=day_count,
        stop_at_payoff=True,
    )
    if len(rows) < n:
        # Rounded up, the payment retires small loans early; round down and let the last row settle
        pmt = money_down(exact)
        rows = amortize_balance(
            p, r, n, pmt,
            anchor=start,
            frequency=freq,
            annual_rate_percent=rate_pct,
            day_count=day_count,
        )
    return Schedule(
        rows=tuple(rows),
        frequency=freq,
        interest_frequency=compounding,
        metadata={"principal": p, "annual_rate": rate_pct, "payment": pmt},
    )


def yearly_summary(schedule: Schedule) -> list[dict[str, Decimal]]:
    """Aggregate a schedule by loan year.

    Returns list of dicts with keys: year, principal, interest, payments, ending_balance
    """
    per_year = schedule.frequency.periods_per_year
    yearly: list[dict[str, Decimal]] = []
    year_principal = ZERO
    year_interest = ZERO
    year_payments = ZERO

    for row in schedule:
        year_principal += row.principal_payment + row.prepayment
        year_interest += row.interest_payment
        year_payments += row.payment_amount + row.prepayment

        if row.payment_number % per_year == 0 or row.payment_number == len(schedule):
            yearly.append({
                "year": Decimal((row.payment_number - 1) // per_year + 1),
                "principal": year_principal,
                "interest": year_interest,
                "payments": year_payments,
                "ending_balance": row.ending_balance,
            })
            year_principal = ZERO
            year_interest = ZERO
            year_payments = ZERO

    return yearly
