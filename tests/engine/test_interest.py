import pytest
from datetime import date
from decimal import Decimal

from loan_amortization.engine.interest import (
    accrued_interest,
    apy_from_apr,
    compound_interest,
    convert_rate,
    daily_interest,
    effective_to_nominal,
    periodic_interest,
    simple_interest,
    total_interest,
)
from loan_amortization.exceptions import InvalidArgumentError


class TestPeriodicInterest:
    def test_monthly(self):
        """$100K at 6%: 100000 * 0.06 / 12."""
        assert periodic_interest(Decimal("100000"), Decimal("6"), "monthly") == Decimal("500.00")

    def test_zero_balance(self):
        assert periodic_interest(0, 6, "monthly") == Decimal("0.00")

    def test_negative_balance_rejected(self):
        with pytest.raises(InvalidArgumentError):
            periodic_interest(-1, 6, "monthly")


class TestSimpleInterest:
    def test_three_years(self):
        assert simple_interest(Decimal("10000"), Decimal("5"), 3) == Decimal("1500.00")

    def test_fractional_years(self):
        assert simple_interest(10000, 5, "0.5") == Decimal("250.00")

    def test_zero_time_rejected(self):
        with pytest.raises(InvalidArgumentError, match="Time"):
            simple_interest(10000, 5, 0)


class TestCompoundInterest:
    def test_one_year_monthly(self):
        interest = compound_interest(Decimal("100000"), Decimal("5"), 12, "monthly")
        assert abs(interest - Decimal("5116.19")) <= Decimal("0.01")

    def test_exceeds_simple_interest(self):
        assert compound_interest(100000, 5, 12, "monthly") > simple_interest(100000, 5, 1)

    def test_zero_periods_rejected(self):
        with pytest.raises(InvalidArgumentError):
            compound_interest(100000, 5, 0, "monthly")


class TestDailyInterest:
    def test_single_day(self):
        """100000 * 0.05 / 365 = 13.6986."""
        assert daily_interest(Decimal("100000"), Decimal("5")) == Decimal("13.70")

    def test_accrued_thirty_days(self):
        accrued = accrued_interest(Decimal("100000"), Decimal("5"), date(2025, 1, 1), date(2025, 1, 31))
        assert accrued == Decimal("411.00")

    def test_accrued_accepts_iso_strings(self):
        assert accrued_interest(100000, 5, "2025-01-01", "2025-01-31") == Decimal("411.00")

    def test_same_day_accrues_nothing(self):
        assert accrued_interest(100000, 5, date(2025, 1, 1), date(2025, 1, 1)) == Decimal("0.00")

    def test_end_before_start_rejected(self):
        with pytest.raises(InvalidArgumentError):
            accrued_interest(100000, 5, date(2025, 2, 1), date(2025, 1, 1))

    def test_bad_date_rejected(self):
        with pytest.raises(InvalidArgumentError):
            accrued_interest(100000, 5, "01/01/2025", "2025-01-31")


class TestRateConversion:
    def test_apy_monthly(self):
        apy = apy_from_apr(Decimal("5"), "monthly")
        assert abs(apy - Decimal("5.116")) < Decimal("0.001")

    def test_apy_annual_equals_apr(self):
        assert apy_from_apr(5, "annual") == Decimal("5.0000")

    def test_effective_to_nominal_inverts_apy(self):
        nominal = effective_to_nominal(apy_from_apr(5, "monthly"), "monthly")
        assert abs(nominal - Decimal("5")) < Decimal("0.001")

    def test_monthly_to_annual(self):
        annual = convert_rate(Decimal("0.4167"), "monthly", "annual")
        assert abs(annual - Decimal("5.0")) < Decimal("0.01")

    def test_biweekly_to_monthly(self):
        assert convert_rate(Decimal("1.0"), "biweekly", "monthly") == Decimal("2.1667")

    def test_same_frequency_unchanged(self):
        assert convert_rate(Decimal("0.5"), "monthly", "monthly") == Decimal("0.5")

    def test_negative_rate_rejected(self):
        with pytest.raises(InvalidArgumentError, match="rate"):
            convert_rate(-1, "monthly", "annual")


class TestTotalInterest:
    def test_matches_schedule_total(self, base_schedule):
        assert total_interest(base_schedule.rows) == base_schedule.total_interest

    def test_empty(self):
        assert total_interest([]) == Decimal("0.00")
