"""Exceptions raised by the amortization library."""


class AmortizationError(Exception):
    """Base exception for all amortization errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class InvalidArgumentError(AmortizationError, ValueError):
    """Raised when a calculation input fails validation."""


class LoanNotFoundError(AmortizationError, LookupError):
    """Raised when a loan cannot be found in the data provider."""

    def __init__(self, loan_id: int):
        super().__init__(f"Loan not found: {loan_id}", {"loan_id": loan_id})
        self.loan_id = loan_id


class EventAlreadyProcessedError(InvalidArgumentError):
    """Raised when a loan event has already been applied."""

    def __init__(self, event_id: int | None):
        super().__init__("Loan event already processed", {"event_id": event_id})
