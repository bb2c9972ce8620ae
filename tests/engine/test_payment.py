import pytest
from decimal import Decimal

from loan_amortization.engine.payment import (
    calculate_payment,
    balloon_level_payment,
    level_payment,
    present_value,
    remaining_periods,
)
from loan_amortization.exceptions import InvalidArgumentError
from loan_amortization.models.frequency import Frequency, parse_frequency


class TestCalculatePayment:
    def test_small_loan_thirty_years(self):
        """$10K at 5% for 360 months."""
        assert calculate_payment(Decimal("10000"), Decimal("5"), "monthly", 360) == Decimal("53.68")

    def test_standard_mortgage(self):
        assert calculate_payment(Decimal("200000"), Decimal("5"), Frequency.MONTHLY, 360) == Decimal("1073.64")

    def test_zero_rate_is_straight_line(self):
        assert calculate_payment(Decimal("12000"), Decimal("0"), "monthly", 12) == Decimal("1000.00")

    def test_accepts_ints_and_strings(self):
        assert calculate_payment(10000, "5", "monthly", 360) == Decimal("53.68")

    def test_frequency_name_is_case_insensitive(self):
        assert calculate_payment(10000, 5, " Monthly ", 360) == Decimal("53.68")

    def test_biweekly_payment_smaller_than_monthly(self):
        monthly = calculate_payment(100000, 5, "monthly", 360)
        biweekly = calculate_payment(100000, 5, "biweekly", 780)
        assert biweekly < monthly

    def test_rounded_to_cents(self):
        pmt = calculate_payment(Decimal("12345.67"), Decimal("7.25"), "weekly", 150)
        assert pmt == pmt.quantize(Decimal("0.01"))


class TestPaymentValidation:
    def test_negative_rate_rejected(self):
        with pytest.raises(InvalidArgumentError, match="rate"):
            calculate_payment(10000, -1, "monthly", 12)

    def test_zero_principal_rejected(self):
        with pytest.raises(InvalidArgumentError):
            calculate_payment(0, 5, "monthly", 12)

    def test_zero_payments_rejected(self):
        with pytest.raises(InvalidArgumentError):
            calculate_payment(10000, 5, "monthly", 0)

    def test_fractional_payment_count_rejected(self):
        with pytest.raises(InvalidArgumentError):
            calculate_payment(10000, 5, "monthly", 12.5)

    def test_bool_rejected_as_number(self):
        with pytest.raises(InvalidArgumentError):
            calculate_payment(True, 5, "monthly", 12)

    def test_unknown_frequency_rejected(self):
        with pytest.raises(InvalidArgumentError, match="frequency"):
            calculate_payment(10000, 5, "fortnightly", 12)

    def test_non_numeric_principal_rejected(self):
        with pytest.raises(InvalidArgumentError):
            calculate_payment("lots", 5, "monthly", 12)

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            calculate_payment(10000, 5, "monthly", -3)


class TestFrequency:
    def test_periods_per_year(self):
        assert Frequency.MONTHLY.periods_per_year == 12
        assert Frequency.BIWEEKLY.periods_per_year == 26
        assert Frequency.WEEKLY.periods_per_year == 52
        assert Frequency.DAILY.periods_per_year == 365
        assert Frequency.QUARTERLY.periods_per_year == 4
        assert Frequency.SEMIMONTHLY.periods_per_year == 24

    def test_parse_member_passthrough(self):
        assert parse_frequency(Frequency.ANNUAL) is Frequency.ANNUAL

    def test_parse_non_string_rejected(self):
        with pytest.raises(InvalidArgumentError):
            parse_frequency(12)


class TestHelpers:
    def test_present_value_zero_rate(self):
        assert present_value(Decimal("1000"), Decimal("0"), 5) == Decimal("1000")

    def test_present_value_discounts(self):
        assert present_value(Decimal("1100"), Decimal("0.1"), 1) == Decimal("1000")

    def test_balloon_payment_lower_than_level(self):
        r = Decimal("0.05") / 12
        full = level_payment(Decimal("200000"), r, 360)
        balloon = balloon_level_payment(Decimal("200000"), r, 360, Decimal("50000"))
        assert balloon < full

    def test_remaining_periods_zero_rate(self):
        assert remaining_periods(Decimal("10000"), Decimal("0"), Decimal("1000")) == 10

    def test_remaining_periods_matches_term(self):
        r = Decimal("0.05") / 12
        assert remaining_periods(Decimal("200000"), r, Decimal("1073.65")) == 360

    def test_remaining_periods_paid_off(self):
        assert remaining_periods(Decimal("0"), Decimal("0.01"), Decimal("100")) == 0

    def test_payment_below_interest_rejected(self):
        with pytest.raises(InvalidArgumentError, match="interest"):
            remaining_periods(Decimal("100000"), Decimal("0.005"), Decimal("400"))
