"""Payment date stepping per frequency.

Month-based frequencies are anchored to the start date (start + k months) so
that end-of-month dates do not drift.
"""

from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from loan_amortization.models.frequency import Frequency

_MONTH_STEPS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.SEMIANNUAL: 6,
    Frequency.ANNUAL: 12,
}

_DAY_STEPS = {
    Frequency.BIWEEKLY: 14,
    Frequency.WEEKLY: 7,
    Frequency.DAILY: 1,
}


def nth_payment_date(start: date, frequency: Frequency, index: int) -> date:
    """Date of the payment `index` periods after `start` (index 0 = start)."""
    if frequency in _MONTH_STEPS:
        return start + relativedelta(months=_MONTH_STEPS[frequency] * index)
    if frequency in _DAY_STEPS:
        return start + timedelta(days=_DAY_STEPS[frequency] * index)
    # Semimonthly: the 1st and 16th-ish of each month relative to the start
    return start + relativedelta(months=index // 2) + timedelta(days=15 * (index % 2))


def days_between(earlier: date, later: date) -> int:
    return (later - earlier).days
