"""Amortization schedule value objects.

Schedules are immutable: every mutation in the engine returns a new Schedule.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Iterator, Mapping

from loan_amortization.models.frequency import Frequency

ZERO = Decimal("0")
ONE_CENT = Decimal("0.01")


@dataclass(frozen=True)
class ScheduleRow:
    payment_number: int
    payment_date: date
    beginning_balance: Decimal
    payment_amount: Decimal
    principal_payment: Decimal
    interest_payment: Decimal
    ending_balance: Decimal
    rate: Decimal = ZERO  # Annual %, tags the rate in force for this row
    term_number: int = 1  # Rate block for variable-rate schedules
    skipped: bool = False
    prepayment: Decimal = ZERO
    balloon_payment: Decimal = ZERO
    capitalized_interest: Decimal = ZERO

    @property
    def prepayment_applied(self) -> bool:
        return self.prepayment > 0

    def to_record(self) -> dict:
        """Export the stable row contract consumed by GL posting."""
        return {
            "payment_number": self.payment_number,
            "payment_date": self.payment_date.isoformat(),
            "beginning_balance": self.beginning_balance,
            "payment_amount": self.payment_amount,
            "principal_payment": self.principal_payment,
            "interest_payment": self.interest_payment,
            "ending_balance": self.ending_balance,
            "rate": self.rate,
            "term_number": self.term_number,
            "skipped": self.skipped,
            "prepayment": self.prepayment,
            "balloon_payment": self.balloon_payment,
            "capitalized_interest": self.capitalized_interest,
        }


@dataclass(frozen=True)
class Schedule:
    rows: tuple[ScheduleRow, ...]
    frequency: Frequency = Frequency.MONTHLY
    interest_frequency: Frequency | None = None  # Compounding basis when it differs from payments
    metadata: Mapping = field(default_factory=dict, compare=False)

    def __post_init__(self):
        # Read-only; cached schedules are shared between callers
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[ScheduleRow]:
        return iter(self.rows)

    def __getitem__(self, index):
        return self.rows[index]

    @property
    def total_interest(self) -> Decimal:
        return sum((r.interest_payment for r in self.rows), ZERO)

    @property
    def total_principal(self) -> Decimal:
        return sum((r.principal_payment + r.prepayment for r in self.rows), ZERO)

    @property
    def total_payment(self) -> Decimal:
        """Everything the borrower pays: scheduled payments plus lump sums."""
        return sum((r.payment_amount + r.prepayment for r in self.rows), ZERO)

    @property
    def final_balance(self) -> Decimal:
        return self.rows[-1].ending_balance if self.rows else ZERO

    @property
    def level_payment(self) -> Decimal:
        for row in self.rows:
            if not row.skipped:
                return row.payment_amount
        return ZERO

    def summary(self) -> dict[str, Decimal | int]:
        return {
            "num_payments": len(self.rows),
            "total_interest": self.total_interest,
            "total_payment": self.total_payment,
        }

    def to_records(self) -> list[dict]:
        return [r.to_record() for r in self.rows]

    def verify(self, tolerance: Decimal = ONE_CENT) -> list[str]:
        """Return invariant violations; an empty list means the schedule is sound."""
        problems: list[str] = []
        for i, row in enumerate(self.rows):
            if row.payment_number != i + 1:
                problems.append(f"row {i}: payment_number {row.payment_number} out of sequence")
            expected_end = (
                row.beginning_balance + row.capitalized_interest
                - row.principal_payment - row.prepayment
            )
            if abs(expected_end - row.ending_balance) > tolerance:
                problems.append(f"row {row.payment_number}: balance does not reconcile")
            if i + 1 < len(self.rows):
                nxt = self.rows[i + 1]
                if abs(row.ending_balance - nxt.beginning_balance) > tolerance:
                    problems.append(f"row {row.payment_number}: ending balance != next beginning balance")
        if self.rows and abs(self.final_balance) > tolerance:
            problems.append(f"final balance {self.final_balance} is not zero")
        return problems


@dataclass(frozen=True)
class StoredScheduleRow:
    """A schedule row as persisted by a data provider."""

    row_id: int
    loan_id: int
    row: ScheduleRow
