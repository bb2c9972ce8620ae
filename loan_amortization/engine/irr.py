"""Effective annual cost of a schedule using scipy.

Pure functions. No I/O.
"""

import math
from decimal import Decimal

from scipy.optimize import brentq

from loan_amortization.engine.money import ZERO, rate4, to_decimal
from loan_amortization.models.schedule import Schedule


def schedule_cash_flows(schedule: Schedule, principal: Decimal | None = None) -> list[Decimal]:
    """Borrower view: amount financed at t=0, then each period's outlay."""
    if not schedule.rows:
        return []
    financed = schedule.rows[0].beginning_balance if principal is None else principal
    flows = [-financed]
    flows.extend(row.payment_amount + row.prepayment for row in schedule.rows)
    return flows


def periodic_irr(cash_flows: list[Decimal]) -> float | None:
    """Per-period IRR of evenly spaced cash flows, or None when no root exists."""
    if len(cash_flows) < 2:
        return None

    cf_float = [float(cf) for cf in cash_flows]

    # exp/log1p keeps long daily schedules from overflowing float pow
    def npv(rate: float) -> float:
        log_growth = math.log1p(rate)
        return sum(cf * math.exp(-t * log_growth) for t, cf in enumerate(cf_float))

    try:
        return brentq(npv, -0.01, 1.0, xtol=1e-12, maxiter=1000)
    except ValueError:
        return None


def schedule_irr(principal, schedule: Schedule, periods_per_year: int | None = None) -> Decimal:
    """Annualized effective cost of a schedule, in percent (four places).

    Compounds the periodic IRR over `periods_per_year` (default: the schedule's
    frequency), so prepayments and balloons are priced in. Returns 0 when no
    IRR exists.
    """
    irr = periodic_irr(schedule_cash_flows(schedule, to_decimal(principal, "principal")))
    if irr is None:
        return ZERO
    periods = periods_per_year or schedule.frequency.periods_per_year
    annual = (1 + irr) ** periods - 1
    return rate4(Decimal(str(annual)) * 100)


def effective_annual_rate(schedule: Schedule) -> Decimal:
    if not schedule.rows:
        return ZERO
    return schedule_irr(schedule.rows[0].beginning_balance, schedule)
