"""Protocol definitions for loan storage.

Concrete providers (accounting ledgers, CRMs, in-memory) implement this
interface; the event processor only talks to the protocol.
"""

from datetime import date
from typing import Any, Protocol, runtime_checkable

from loan_amortization.models.events import LoanEvent
from loan_amortization.models.loan import Loan
from loan_amortization.models.schedule import ScheduleRow, StoredScheduleRow


@runtime_checkable
class DataProvider(Protocol):
    def insert_loan(self, loan: Loan) -> int:
        """Persist a loan and return its id."""
        ...

    def get_loan(self, loan_id: int) -> Loan | None:
        """Fetch a loan, or None when it does not exist."""
        ...

    def insert_schedule(self, loan_id: int, payment_number: int, row: ScheduleRow) -> int:
        """Store one schedule row and return its row id."""
        ...

    def insert_loan_event(self, loan_id: int, event: LoanEvent) -> int:
        """Record an event against a loan and return its event id."""
        ...

    def get_schedule_rows_after_date(self, loan_id: int, on_or_after: date) -> list[StoredScheduleRow]:
        """Stored rows dated on or after `on_or_after`, in payment order."""
        ...

    def update_schedule_row(self, row_id: int, data: dict[str, Any]) -> None:
        """Overwrite fields of a stored row."""
        ...

    def delete_schedule_after_date(self, loan_id: int, on_or_after: date) -> int:
        """Delete rows dated on or after `on_or_after`. Returns the count removed."""
        ...

    def get_schedule(self, loan_id: int) -> list[StoredScheduleRow]:
        """All stored rows for a loan, in payment order."""
        ...

    def mark_event_processed(self, event_id: int) -> None:
        """Flag an event as applied so it cannot be processed again."""
        ...
