"""Apply loan events to stored schedules.

Orchestrates a DataProvider and the AdvancedAmortizationService: the stored
schedule is loaded, the event's mutation is applied in memory, and only the
rows from the affected payment onward are rewritten.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from loan_amortization.config import settings
from loan_amortization.data.base import DataProvider
from loan_amortization.engine.advanced import AdvancedAmortizationService
from loan_amortization.engine.schedule import generate_schedule
from loan_amortization.exceptions import EventAlreadyProcessedError, InvalidArgumentError, LoanNotFoundError
from loan_amortization.models.events import (
    ExtraPaymentEvent,
    LoanEvent,
    LoanModificationEvent,
    RateChangeEvent,
    SkipPaymentEvent,
)
from loan_amortization.models.loan import Loan
from loan_amortization.models.schedule import Schedule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventResult:
    loan_id: int
    event_type: str
    affected_from: int  # First rewritten payment number
    rows_written: int
    new_final_date: date
    interest_delta: Decimal  # Negative when the event saves interest


class LoanEventProcessor:
    def __init__(self, provider: DataProvider, service: AdvancedAmortizationService | None = None):
        self.provider = provider
        self.service = service or AdvancedAmortizationService()

    def _load_loan(self, loan_id: int) -> Loan:
        loan = self.provider.get_loan(loan_id)
        if loan is None:
            raise LoanNotFoundError(loan_id)
        return loan

    def generate_and_store(self, loan_id: int, start_date: date | None = None) -> Schedule:
        """Build the loan's schedule from its terms and persist every row."""
        loan = self._load_loan(loan_id)
        schedule = generate_schedule(
            loan.balance,
            loan.annual_rate_percent,
            loan.frequency,
            loan.term,
            start_date or loan.start_date,
        )
        for row in schedule:
            self.provider.insert_schedule(loan_id, row.payment_number, row)
        logger.info("Stored %d schedule rows for loan %d", len(schedule), loan_id)
        return schedule

    def _apply(self, schedule: Schedule, payment_number: int, event: LoanEvent) -> Schedule:
        if isinstance(event, ExtraPaymentEvent):
            return self.service.apply_prepayment(schedule, payment_number, event.amount)
        if isinstance(event, SkipPaymentEvent):
            return self.service.apply_skip_payment(schedule, payment_number, event.capitalize_interest)
        if isinstance(event, RateChangeEvent):
            return self.service.modify_loan_terms(schedule, payment_number, new_rate=event.new_rate)
        if isinstance(event, LoanModificationEvent):
            return self.service.modify_loan_terms(
                schedule,
                payment_number,
                new_rate=event.new_rate,
                new_term=event.new_term,
                new_payment=event.new_payment,
            )
        raise InvalidArgumentError(f"Unsupported loan event: {type(event).__name__}")

    def process(self, event: LoanEvent) -> EventResult:
        """Apply one event to its loan's stored schedule.

        Raises:
            LoanNotFoundError: The event's loan does not exist
            EventAlreadyProcessedError: The event was applied before
            InvalidArgumentError: No stored row on or after the effective date,
                or the mutation itself rejects the event
        """
        loan = self._load_loan(event.loan_id)
        if event.processed:
            raise EventAlreadyProcessedError(event.event_id)

        stored = self.provider.get_schedule(loan.loan_id)
        if not stored:
            raise InvalidArgumentError("Loan has no stored schedule", {"loan_id": loan.loan_id})
        affected = self.provider.get_schedule_rows_after_date(loan.loan_id, event.effective_date)
        if not affected:
            raise InvalidArgumentError(
                "Effective date is after the last scheduled payment",
                {"effective_date": event.effective_date.isoformat(), "last_payment": stored[-1].row.payment_date.isoformat()},
            )

        current = Schedule(rows=tuple(s.row for s in stored), frequency=loan.frequency)
        problems = current.verify(settings.money_tolerance)
        if problems:
            logger.warning("Stored schedule for loan %d does not reconcile: %s", loan.loan_id, problems[0])
        first = affected[0].row
        # Validate before touching storage
        updated = self._apply(current, first.payment_number, event)

        event_id = self.provider.insert_loan_event(loan.loan_id, event)
        self.provider.delete_schedule_after_date(loan.loan_id, first.payment_date)
        tail = updated.rows[first.payment_number - 1:]
        for row in tail:
            self.provider.insert_schedule(loan.loan_id, row.payment_number, row)
        self.provider.mark_event_processed(event_id)

        result = EventResult(
            loan_id=loan.loan_id,
            event_type=event.event_type,
            affected_from=first.payment_number,
            rows_written=len(tail),
            new_final_date=updated.rows[-1].payment_date,
            interest_delta=updated.total_interest - current.total_interest,
        )
        logger.info(
            "Processed %s for loan %d from payment %d (%d rows, interest delta %s)",
            result.event_type, result.loan_id, result.affected_from, result.rows_written, result.interest_delta,
        )
        return result
