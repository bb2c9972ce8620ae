from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum

from loan_amortization.models.frequency import Frequency


class LoanStatus(Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    DEFAULTED = "defaulted"


@dataclass(frozen=True)
class Loan:
    loan_id: int
    principal: Decimal
    annual_rate: Decimal  # Fraction, e.g. Decimal("0.05")
    term: int  # Number of payment periods
    frequency: Frequency = Frequency.MONTHLY
    start_date: date | None = None
    current_balance: Decimal | None = None  # None = undisbursed principal still owed
    loan_type: str = "standard"
    status: LoanStatus = LoanStatus.ACTIVE

    @property
    def balance(self) -> Decimal:
        return self.principal if self.current_balance is None else self.current_balance

    @property
    def annual_rate_percent(self) -> Decimal:
        return self.annual_rate * 100

    @property
    def periods_per_year(self) -> int:
        return self.frequency.periods_per_year

    @property
    def term_years(self) -> Decimal:
        return Decimal(self.term) / Decimal(self.periods_per_year)

    def with_balance(self, balance: Decimal, term: int | None = None) -> "Loan":
        return replace(self, current_balance=balance, term=self.term if term is None else term)
