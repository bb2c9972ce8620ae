from decimal import Decimal

from loan_amortization.config import Settings
from loan_amortization.exceptions import AmortizationError, InvalidArgumentError, LoanNotFoundError


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.default_cache_ttl == 3600
        assert s.balloon_scenario_pct == Decimal("0.20")
        assert s.variable_rate_blocks == 3

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("AMORTIZATION_DEFAULT_CACHE_TTL", "60")
        monkeypatch.setenv("AMORTIZATION_VARIABLE_RATE_STEP", "0.25")
        s = Settings()
        assert s.default_cache_ttl == 60
        assert s.variable_rate_step == Decimal("0.25")


class TestExceptions:
    def test_details_in_message(self):
        err = InvalidArgumentError("Principal must be greater than zero", {"principal": "0"})
        assert str(err) == "Principal must be greater than zero - {'principal': '0'}"
        assert isinstance(err, ValueError)
        assert isinstance(err, AmortizationError)

    def test_plain_message(self):
        assert str(AmortizationError("boom")) == "boom"

    def test_loan_not_found(self):
        err = LoanNotFoundError(42)
        assert err.loan_id == 42
        assert isinstance(err, LookupError)
        assert "Loan not found: 42" in str(err)
