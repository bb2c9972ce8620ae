"""Portfolio analytics over a collection of loans.

Pure functions: Loan in, dict/Decimal out. No I/O.
Rates are fractions here (0.05 = 5%), matching Loan.annual_rate.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Sequence

from dateutil.relativedelta import relativedelta

from loan_amortization.engine.money import ZERO, money, to_decimal
from loan_amortization.engine.schedule import generate_schedule
from loan_amortization.exceptions import InvalidArgumentError
from loan_amortization.models.loan import Loan, LoanStatus

SIX_PLACES = Decimal("0.000001")

# Risk score thresholds (0-100 scale)
HIGH_RISK_SCORE = Decimal("70")
MEDIUM_RISK_SCORE = Decimal("40")


def _ratio(value: Decimal) -> Decimal:
    return value.quantize(SIX_PLACES, ROUND_HALF_UP)


def _total_principal(loans: Sequence[Loan]) -> Decimal:
    return sum((loan.principal for loan in loans), ZERO)


def loan_total_interest(loan: Loan) -> Decimal:
    """Interest paid over the full life of the loan's schedule."""
    schedule = generate_schedule(
        loan.principal, loan.annual_rate_percent, loan.frequency, loan.term, loan.start_date,
    )
    return schedule.total_interest


# ── Grouping ────────────────────────────────────────────────────


def group_loans_by_status(loans: Sequence[Loan]) -> dict[str, list[Loan]]:
    grouped: dict[str, list[Loan]] = {status.value: [] for status in LoanStatus}
    for loan in loans:
        grouped[loan.status.value].append(loan)
    return grouped


def group_loans_by_type(loans: Sequence[Loan]) -> dict[str, list[Loan]]:
    grouped: dict[str, list[Loan]] = defaultdict(list)
    for loan in loans:
        grouped[loan.loan_type].append(loan)
    return dict(grouped)


def group_loans_by_rate(loans: Sequence[Loan], bucket=Decimal("0.01")) -> dict[Decimal, list[Loan]]:
    """Group loans into rate bands of width `bucket`, keyed by the band's lower bound."""
    width = to_decimal(bucket, "bucket")
    if width <= 0:
        raise InvalidArgumentError("Rate bucket must be greater than zero", {"bucket": str(width)})
    grouped: dict[Decimal, list[Loan]] = defaultdict(list)
    for loan in loans:
        band = (loan.annual_rate / width).to_integral_value(rounding=ROUND_FLOOR) * width
        grouped[band].append(loan)
    return dict(sorted(grouped.items()))


# ── Rates and yield ─────────────────────────────────────────────


def portfolio_yield(loans: Sequence[Loan]) -> Decimal:
    """Principal-weighted average annual rate. 0 for an empty portfolio."""
    total = _total_principal(loans)
    if total == 0:
        return ZERO
    weighted = sum((loan.annual_rate * loan.principal for loan in loans), ZERO)
    return _ratio(weighted / total)


def average_rate(loans: Sequence[Loan]) -> Decimal:
    if not loans:
        return ZERO
    return _ratio(sum((loan.annual_rate for loan in loans), ZERO) / len(loans))


def default_rate(loans: Sequence[Loan]) -> Decimal:
    """Share of loans in default, 0-1."""
    if not loans:
        return ZERO
    defaulted = sum(1 for loan in loans if loan.status == LoanStatus.DEFAULTED)
    return _ratio(Decimal(defaulted) / len(loans))


def profitability(loans: Sequence[Loan]) -> dict[str, Decimal]:
    """Lifetime interest earned relative to principal lent."""
    total_principal = _total_principal(loans)
    total_interest = sum((loan_total_interest(loan) for loan in loans), ZERO)
    return {
        "total_principal": money(total_principal),
        "total_interest": money(total_interest),
        "total_cost": money(total_principal + total_interest),
        "profitability_ratio": _ratio(total_interest / total_principal) if total_principal else ZERO,
    }


# ── Concentration and risk ──────────────────────────────────────


def _herfindahl(weights: dict, total: Decimal) -> Decimal:
    """Herfindahl-Hirschman index of principal shares: 1 = fully concentrated."""
    if total == 0:
        return ZERO
    return _ratio(sum(((w / total) ** 2 for w in weights.values()), ZERO))


def diversification(loans: Sequence[Loan], rate_bucket=Decimal("0.01")) -> dict[str, Decimal]:
    """Rate and term concentration (HHI) plus a 0-1 diversification score."""
    total = _total_principal(loans)
    if total == 0:
        return {"rate_concentration": ZERO, "term_concentration": ZERO, "diversification_score": ZERO}

    by_rate = {
        band: _total_principal(group)
        for band, group in group_loans_by_rate(loans, rate_bucket).items()
    }
    by_term: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for loan in loans:
        by_term[loan.term] += loan.principal

    rate_hhi = _herfindahl(by_rate, total)
    term_hhi = _herfindahl(by_term, total)
    return {
        "rate_concentration": rate_hhi,
        "term_concentration": term_hhi,
        "diversification_score": _ratio(1 - (rate_hhi + term_hhi) / 2),
    }


def loan_risk_score(loan: Loan) -> Decimal:
    """0-100 score rising with rate and remaining term; defaulted loans score 100."""
    if loan.status == LoanStatus.DEFAULTED:
        return Decimal("100")
    score = loan.annual_rate_percent * 8 + loan.term_years * 2
    return min(Decimal("100"), score).quantize(Decimal("0.01"), ROUND_HALF_UP)


def _risk_level(score: Decimal) -> str:
    if score >= HIGH_RISK_SCORE:
        return "high"
    if score >= MEDIUM_RISK_SCORE:
        return "medium"
    return "low"


def risk_profile(loans: Sequence[Loan]) -> dict:
    scores = [loan_risk_score(loan) for loan in loans]
    levels = [_risk_level(s) for s in scores]
    average = (sum(scores, ZERO) / len(scores)).quantize(Decimal("0.01"), ROUND_HALF_UP) if scores else ZERO
    return {
        "average_risk_score": average,
        "high_risk_count": levels.count("high"),
        "medium_risk_count": levels.count("medium"),
        "low_risk_count": levels.count("low"),
        "portfolio_risk_level": _risk_level(average),
    }


def rank_loans(loans: Sequence[Loan]) -> list[dict]:
    """Loans ordered by yield, highest first."""
    ranked = sorted(loans, key=lambda loan: loan.annual_rate, reverse=True)
    return [
        {
            "rank": i + 1,
            "loan_id": loan.loan_id,
            "yield": loan.annual_rate,
            "principal": loan.principal,
            "risk_score": loan_risk_score(loan),
        }
        for i, loan in enumerate(ranked)
    ]


def maturity_buckets(loans: Sequence[Loan], as_of: date | None = None) -> dict[str, int]:
    """Count loans by time remaining until their final payment.

    Loans without a start date are treated as starting on `as_of`.
    """
    as_of = as_of or date.today()
    buckets = {"current": 0, "less_than_12_months": 0, "less_than_5_years": 0, "five_plus_years": 0}
    for loan in loans:
        start = loan.start_date or as_of
        term_months = int((Decimal(loan.term) * 12 / loan.periods_per_year).to_integral_value(ROUND_HALF_UP))
        maturity = start + relativedelta(months=term_months)
        remaining = relativedelta(maturity, as_of)
        months_left = remaining.years * 12 + remaining.months

        if loan.status == LoanStatus.CLOSED or maturity <= as_of:
            buckets["current"] += 1
        elif months_left < 12:
            buckets["less_than_12_months"] += 1
        elif months_left < 60:
            buckets["less_than_5_years"] += 1
        else:
            buckets["five_plus_years"] += 1
    return buckets


# ── Reports ─────────────────────────────────────────────────────


def portfolio_report(loans: Sequence[Loan]) -> dict:
    return {
        "total_loans": len(loans),
        "total_principal": money(_total_principal(loans)),
        "portfolio_yield": portfolio_yield(loans),
        "average_rate": average_rate(loans),
        "default_rate": default_rate(loans),
        "profitability": profitability(loans),
        "diversification": diversification(loans),
    }


def aggregate_portfolios(portfolios: Sequence[Sequence[Loan]]) -> dict:
    """Combined metrics across several portfolios."""
    combined = [loan for portfolio in portfolios for loan in portfolio]
    return {
        "portfolio_count": len(portfolios),
        "total_loans": len(combined),
        "total_principal": money(_total_principal(combined)),
        "portfolio_yield": portfolio_yield(combined),
        "default_rate": default_rate(combined),
        "by_portfolio": [
            {"total_loans": len(p), "total_principal": money(_total_principal(p))}
            for p in portfolios
        ],
    }
