"""Pydantic models for loan events consumed by the schedule mutation layer."""

from datetime import date
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, model_validator

from loan_amortization.exceptions import InvalidArgumentError


class _LoanEventBase(BaseModel):
    model_config = {"frozen": True}

    event_id: int | None = None
    loan_id: int = Field(gt=0)
    effective_date: date
    processed: bool = False

    def mark_processed(self):
        return self.model_copy(update={"processed": True})


class ExtraPaymentEvent(_LoanEventBase):
    event_type: Literal["extra_payment"] = "extra_payment"
    amount: Decimal = Field(gt=0)


class SkipPaymentEvent(_LoanEventBase):
    event_type: Literal["skip_payment"] = "skip_payment"
    capitalize_interest: bool = True


class RateChangeEvent(_LoanEventBase):
    event_type: Literal["rate_change"] = "rate_change"
    new_rate: Decimal = Field(ge=0)  # Annual %


class LoanModificationEvent(_LoanEventBase):
    event_type: Literal["loan_modification"] = "loan_modification"
    new_rate: Decimal | None = Field(default=None, ge=0)
    new_term: int | None = Field(default=None, gt=0)
    new_payment: Decimal | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _at_least_one_change(self):
        if self.new_rate is None and self.new_term is None and self.new_payment is None:
            raise ValueError("loan_modification requires new_rate, new_term or new_payment")
        return self


LoanEvent = Annotated[
    Union[ExtraPaymentEvent, SkipPaymentEvent, RateChangeEvent, LoanModificationEvent],
    Field(discriminator="event_type"),
]

_event_adapter = TypeAdapter(LoanEvent)


def parse_event(data: dict) -> LoanEvent:
    """Validate a raw mapping into the matching LoanEvent class."""
    try:
        return _event_adapter.validate_python(data)
    except ValidationError as e:
        raise InvalidArgumentError(
            "Invalid loan event",
            {"errors": [err["msg"] for err in e.errors()]},
        ) from e
