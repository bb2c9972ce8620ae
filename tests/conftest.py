"""Canonical test fixtures used across engine and data tests.

Fixture: $200K loan, 5% nominal, 30yr monthly, first payment 2025-01-15.
Portfolio: four loans from $75K to $250K at 4-8%, 48-120 months.
"""

import pytest
from datetime import date
from decimal import Decimal

from loan_amortization.data.cache import CacheManager
from loan_amortization.engine.schedule import generate_schedule
from loan_amortization.models.loan import Loan
from loan_amortization.models.schedule import Schedule

START = date(2025, 1, 15)


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def start_date() -> date:
    return START


@pytest.fixture
def base_schedule() -> Schedule:
    """$200K at 5% for 360 monthly payments."""
    return generate_schedule(Decimal("200000"), Decimal("5"), "monthly", 360, START)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> CacheManager:
    return CacheManager(default_ttl=3600, clock=clock)


@pytest.fixture
def portfolio_loans() -> list[Loan]:
    return [
        Loan(loan_id=1, principal=Decimal("100000"), annual_rate=Decimal("0.05"), term=60),
        Loan(loan_id=2, principal=Decimal("250000"), annual_rate=Decimal("0.06"), term=120),
        Loan(loan_id=3, principal=Decimal("75000"), annual_rate=Decimal("0.04"), term=48),
        Loan(loan_id=4, principal=Decimal("150000"), annual_rate=Decimal("0.08"), term=84),
    ]


@pytest.fixture
def mortgage_loans() -> list[Loan]:
    return [
        Loan(loan_id=1, principal=Decimal("200000"), annual_rate=Decimal("0.05"), term=360),
        Loan(loan_id=2, principal=Decimal("150000"), annual_rate=Decimal("0.06"), term=300),
    ]
