from enum import Enum

from loan_amortization.exceptions import InvalidArgumentError


class Frequency(str, Enum):
    MONTHLY = "monthly"
    BIWEEKLY = "biweekly"
    WEEKLY = "weekly"
    DAILY = "daily"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"
    QUARTERLY = "quarterly"
    SEMIMONTHLY = "semimonthly"

    @property
    def periods_per_year(self) -> int:
        return PERIODS_PER_YEAR[self]


PERIODS_PER_YEAR: dict[Frequency, int] = {
    Frequency.MONTHLY: 12,
    Frequency.BIWEEKLY: 26,
    Frequency.WEEKLY: 52,
    Frequency.DAILY: 365,
    Frequency.SEMIANNUAL: 2,
    Frequency.ANNUAL: 1,
    Frequency.QUARTERLY: 4,
    Frequency.SEMIMONTHLY: 24,
}


def parse_frequency(value: "Frequency | str") -> Frequency:
    """Resolve a frequency name (case-insensitive) or member into a Frequency."""
    if isinstance(value, Frequency):
        return value
    if isinstance(value, str):
        try:
            return Frequency(value.strip().lower())
        except ValueError:
            pass
    raise InvalidArgumentError(
        f"Unknown payment frequency: {value!r}",
        {"allowed": [f.value for f in Frequency]},
    )
