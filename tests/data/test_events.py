import logging
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

from loan_amortization.data.base import DataProvider
from loan_amortization.data.events import LoanEventProcessor
from loan_amortization.data.memory import InMemoryDataProvider
from loan_amortization.exceptions import EventAlreadyProcessedError, InvalidArgumentError, LoanNotFoundError
from loan_amortization.models.events import (
    ExtraPaymentEvent,
    LoanModificationEvent,
    RateChangeEvent,
    SkipPaymentEvent,
    parse_event,
)
from loan_amortization.models.loan import Loan
from loan_amortization.models.schedule import Schedule


@pytest.fixture
def provider(start_date) -> InMemoryDataProvider:
    provider = InMemoryDataProvider()
    provider.insert_loan(Loan(
        loan_id=1,
        principal=Decimal("200000"),
        annual_rate=Decimal("0.05"),
        term=360,
        start_date=start_date,
    ))
    return provider


@pytest.fixture
def processor(provider) -> LoanEventProcessor:
    processor = LoanEventProcessor(provider)
    processor.generate_and_store(1)
    return processor


def stored_schedule(provider, loan_id=1) -> Schedule:
    return Schedule(rows=tuple(s.row for s in provider.get_schedule(loan_id)))


class TestProvider:
    def test_satisfies_protocol(self, provider):
        assert isinstance(provider, DataProvider)

    @pytest.mark.parametrize("method", [
        "insert_loan",
        "get_loan",
        "insert_schedule",
        "insert_loan_event",
        "get_schedule_rows_after_date",
        "update_schedule_row",
        "delete_schedule_after_date",
        "get_schedule",
        "mark_event_processed",
    ])
    def test_protocol_methods_documented(self, method):
        assert getattr(DataProvider, method).__doc__

    def test_generate_and_store(self, processor, provider, base_schedule):
        assert len(provider.get_schedule(1)) == 360
        assert stored_schedule(provider).rows == base_schedule.rows

    def test_rows_after_date(self, processor, provider):
        rows = provider.get_schedule_rows_after_date(1, date(2054, 6, 1))
        assert [s.row.payment_number for s in rows] == [354, 355, 356, 357, 358, 359, 360]

    def test_update_row(self, processor, provider):
        row_id = provider.get_schedule(1)[0].row_id
        provider.update_schedule_row(row_id, {"skipped": True})
        assert provider.get_schedule(1)[0].row.skipped

    def test_unknown_loan(self, provider):
        assert provider.get_loan(99) is None
        with pytest.raises(LoanNotFoundError):
            provider.insert_schedule(99, 1, None)

    def test_assigns_loan_ids(self):
        provider = InMemoryDataProvider()
        loan_id = provider.insert_loan(Loan(loan_id=0, principal=Decimal("1000"), annual_rate=Decimal("0.05"), term=12))
        assert loan_id == 1
        assert provider.get_loan(1).loan_id == 1


class TestProcessEvents:
    def test_extra_payment(self, processor, provider):
        event = ExtraPaymentEvent(loan_id=1, effective_date=date(2025, 6, 1), amount=Decimal("10000"))
        result = processor.process(event)

        assert result.event_type == "extra_payment"
        assert result.affected_from == 6
        assert result.interest_delta < 0
        schedule = stored_schedule(provider)
        assert len(schedule) < 360
        assert schedule[5].prepayment == Decimal("10000")
        assert result.rows_written == len(schedule) - 5
        assert result.new_final_date == schedule[-1].payment_date
        assert schedule.verify() == []

    def test_event_marked_processed(self, processor, provider):
        event = ExtraPaymentEvent(loan_id=1, effective_date=date(2025, 6, 1), amount=Decimal("500"))
        processor.process(event)
        assert provider.events[1].processed

    def test_skip_payment(self, processor, provider):
        event = SkipPaymentEvent(loan_id=1, effective_date=date(2025, 3, 15))
        result = processor.process(event)
        schedule = stored_schedule(provider)
        assert len(schedule) == 361
        assert schedule[2].skipped
        assert result.affected_from == 3
        assert result.interest_delta > 0
        assert schedule.verify() == []

    def test_rate_change(self, processor, provider):
        event = RateChangeEvent(loan_id=1, effective_date=date(2026, 1, 15), new_rate=Decimal("3"))
        processor.process(event)
        schedule = stored_schedule(provider)
        assert schedule[11].rate == Decimal("5")
        assert all(row.rate == Decimal("3") for row in schedule.rows[12:])
        assert len(schedule) == 360

    def test_modification(self, processor, provider):
        event = LoanModificationEvent(loan_id=1, effective_date=date(2026, 1, 15), new_term=120)
        processor.process(event)
        schedule = stored_schedule(provider)
        assert len(schedule) == 132
        assert [row.payment_number for row in schedule] == list(range(1, 133))
        assert schedule.final_balance == Decimal("0.00")

    def test_events_stack(self, processor, provider):
        processor.process(ExtraPaymentEvent(loan_id=1, effective_date=date(2025, 6, 1), amount=Decimal("10000")))
        processor.process(SkipPaymentEvent(loan_id=1, effective_date=date(2025, 9, 1)))
        schedule = stored_schedule(provider)
        assert schedule[5].prepayment == Decimal("10000")
        assert schedule[8].skipped
        assert schedule.verify() == []


class TestProcessRejections:
    def test_unknown_loan(self, processor):
        event = ExtraPaymentEvent(loan_id=99, effective_date=date(2025, 6, 1), amount=Decimal("100"))
        with pytest.raises(LoanNotFoundError, match="99"):
            processor.process(event)

    def test_already_processed_flag(self, processor):
        event = SkipPaymentEvent(loan_id=1, effective_date=date(2025, 6, 1), processed=True)
        with pytest.raises(EventAlreadyProcessedError):
            processor.process(event)

    def test_replayed_event(self, processor):
        event = ExtraPaymentEvent(event_id=7, loan_id=1, effective_date=date(2025, 6, 1), amount=Decimal("100"))
        processor.process(event)
        with pytest.raises(EventAlreadyProcessedError):
            processor.process(event)

    def test_date_after_last_payment(self, processor):
        event = SkipPaymentEvent(loan_id=1, effective_date=date(2056, 1, 1))
        with pytest.raises(InvalidArgumentError, match="after the last"):
            processor.process(event)

    def test_no_stored_schedule(self, provider):
        processor = LoanEventProcessor(provider)
        with pytest.raises(InvalidArgumentError, match="no stored schedule"):
            processor.process(SkipPaymentEvent(loan_id=1, effective_date=date(2025, 6, 1)))

    def test_rejected_mutation_leaves_storage_untouched(self, processor, provider):
        event = ExtraPaymentEvent(loan_id=1, effective_date=date(2025, 6, 1), amount=Decimal("500000"))
        with pytest.raises(InvalidArgumentError):
            processor.process(event)
        assert len(provider.get_schedule(1)) == 360
        assert provider.events == {}


class TestParseEvent:
    def test_extra_payment(self):
        event = parse_event({
            "event_type": "extra_payment",
            "loan_id": 1,
            "effective_date": "2025-06-01",
            "amount": "500",
        })
        assert isinstance(event, ExtraPaymentEvent)
        assert event.amount == Decimal("500")
        assert event.effective_date == date(2025, 6, 1)

    def test_skip_defaults_to_capitalizing(self):
        event = parse_event({"event_type": "skip_payment", "loan_id": 1, "effective_date": "2025-06-01"})
        assert event.capitalize_interest is True

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidArgumentError):
            parse_event({"event_type": "extra_payment", "loan_id": 1, "effective_date": "2025-06-01", "amount": "-5"})

    def test_empty_modification_rejected(self):
        with pytest.raises(InvalidArgumentError):
            parse_event({"event_type": "loan_modification", "loan_id": 1, "effective_date": "2025-06-01"})

    def test_unknown_type_rejected(self):
        with pytest.raises(InvalidArgumentError):
            parse_event({"event_type": "refinance", "loan_id": 1, "effective_date": "2025-06-01"})


class TestProviderCollaboration:
    def test_rewrites_from_affected_date(self, processor, provider):
        spy = MagicMock(wraps=provider)
        LoanEventProcessor(spy).process(
            ExtraPaymentEvent(loan_id=1, effective_date=date(2025, 6, 1), amount=Decimal("1000"))
        )
        spy.delete_schedule_after_date.assert_called_once_with(1, date(2025, 6, 15))
        spy.mark_event_processed.assert_called_once_with(1)

    def test_unreconciled_storage_logged(self, processor, provider, caplog):
        row_id = provider.get_schedule(1)[3].row_id
        provider.update_schedule_row(row_id, {"ending_balance": Decimal("1")})
        with caplog.at_level(logging.WARNING, logger="loan_amortization.data.events"):
            processor.process(SkipPaymentEvent(loan_id=1, effective_date=date(2025, 6, 1)))
        assert "does not reconcile" in caplog.text
