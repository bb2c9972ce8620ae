"""Dict-backed DataProvider for tests and local experiments."""

import logging
from dataclasses import replace
from datetime import date
from typing import Any

from loan_amortization.exceptions import EventAlreadyProcessedError, InvalidArgumentError, LoanNotFoundError
from loan_amortization.models.events import LoanEvent
from loan_amortization.models.loan import Loan
from loan_amortization.models.schedule import ScheduleRow, StoredScheduleRow

logger = logging.getLogger(__name__)


class InMemoryDataProvider:
    def __init__(self):
        self.loans: dict[int, Loan] = {}
        self.rows: dict[int, StoredScheduleRow] = {}
        self.events: dict[int, LoanEvent] = {}
        self._next_loan_id = 1
        self._next_row_id = 1
        self._next_event_id = 1

    def insert_loan(self, loan: Loan) -> int:
        loan_id = loan.loan_id or self._next_loan_id
        self.loans[loan_id] = replace(loan, loan_id=loan_id)
        self._next_loan_id = max(self._next_loan_id, loan_id + 1)
        return loan_id

    def get_loan(self, loan_id: int) -> Loan | None:
        return self.loans.get(loan_id)

    def insert_schedule(self, loan_id: int, payment_number: int, row: ScheduleRow) -> int:
        if loan_id not in self.loans:
            raise LoanNotFoundError(loan_id)
        if row.payment_number != payment_number:
            row = replace(row, payment_number=payment_number)
        row_id = self._next_row_id
        self._next_row_id += 1
        self.rows[row_id] = StoredScheduleRow(row_id=row_id, loan_id=loan_id, row=row)
        return row_id

    def insert_loan_event(self, loan_id: int, event: LoanEvent) -> int:
        if loan_id not in self.loans:
            raise LoanNotFoundError(loan_id)
        existing = self.events.get(event.event_id) if event.event_id is not None else None
        if existing is not None and existing.processed:
            raise EventAlreadyProcessedError(event.event_id)

        event_id = event.event_id if event.event_id is not None else self._next_event_id
        self._next_event_id = max(self._next_event_id, event_id + 1)
        self.events[event_id] = event.model_copy(update={"event_id": event_id})
        return event_id

    def get_schedule(self, loan_id: int) -> list[StoredScheduleRow]:
        stored = [s for s in self.rows.values() if s.loan_id == loan_id]
        return sorted(stored, key=lambda s: s.row.payment_number)

    def get_schedule_rows_after_date(self, loan_id: int, on_or_after: date) -> list[StoredScheduleRow]:
        return [s for s in self.get_schedule(loan_id) if s.row.payment_date >= on_or_after]

    def update_schedule_row(self, row_id: int, data: dict[str, Any]) -> None:
        stored = self.rows.get(row_id)
        if stored is None:
            raise InvalidArgumentError(f"Schedule row not found: {row_id}", {"row_id": row_id})
        self.rows[row_id] = replace(stored, row=replace(stored.row, **data))

    def delete_schedule_after_date(self, loan_id: int, on_or_after: date) -> int:
        doomed = [s.row_id for s in self.get_schedule_rows_after_date(loan_id, on_or_after)]
        for row_id in doomed:
            del self.rows[row_id]
        logger.debug("Deleted %d schedule rows for loan %d from %s", len(doomed), loan_id, on_or_after)
        return len(doomed)

    def mark_event_processed(self, event_id: int) -> None:
        event = self.events.get(event_id)
        if event is None:
            raise InvalidArgumentError(f"Loan event not found: {event_id}", {"event_id": event_id})
        self.events[event_id] = event.mark_processed()
