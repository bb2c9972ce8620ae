"""Schedule mutations: balloon, variable rate, prepayment, skip payment, term changes.

Every operation takes an immutable Schedule and returns a new one; inputs are
never modified. Validation happens before any rows are built, so a rejected
call leaves nothing half-applied. Generated schedules are cached when the
service owns a CacheManager.

Variable-rate schedules are runs of rows sharing one rate (RateBlocks).
Mutations rebuild the rows after the affected payment block by block, so
later rate blocks and the schedule's interest basis survive.
"""

import hashlib
import json
import logging
import math
from dataclasses import replace
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Callable, Mapping, NamedTuple, Sequence

from loan_amortization.config import settings
from loan_amortization.data.cache import CacheManager
from loan_amortization.engine.irr import effective_annual_rate
from loan_amortization.engine.money import ONE_CENT, ZERO, money, positive_amount, to_decimal
from loan_amortization.engine.payment import (
    balloon_level_payment,
    level_payment,
    periodic_rate,
    remaining_periods,
    validate_count,
    validate_principal,
    validate_rate,
)
from loan_amortization.engine.schedule import (
    amortize_balance,
    generate_schedule,
    interest_basis,
    parse_start_date,
    period_rate,
)
from loan_amortization.exceptions import InvalidArgumentError
from loan_amortization.models.frequency import Frequency, parse_frequency
from loan_amortization.models.schedule import Schedule, ScheduleRow

logger = logging.getLogger(__name__)

SCENARIO_NAMES = ("standard", "balloon_20pct", "biweekly", "variable_stepped")

# Short skip flags accepted alongside skip_<scenario name>
_SKIP_ALIASES = {
    "skip_balloon": "balloon_20pct",
    "skip_variable": "variable_stepped",
}


class RateBlock(NamedTuple):
    rate: Decimal  # Annual %
    term_number: int
    length: int
    payment: Decimal = ZERO  # Scheduled payment, from the block's first paid row


def rate_blocks(rows: Sequence[ScheduleRow]) -> list[RateBlock]:
    """Group consecutive rows by (rate, term_number)."""
    blocks: list[RateBlock] = []
    for row in rows:
        paid = ZERO if row.skipped else row.payment_amount
        if blocks and (blocks[-1].rate, blocks[-1].term_number) == (row.rate, row.term_number):
            last = blocks[-1]
            blocks[-1] = last._replace(length=last.length + 1, payment=last.payment or paid)
        else:
            blocks.append(RateBlock(row.rate, row.term_number, 1, paid))
    return blocks


def fit_blocks(blocks: list[RateBlock], periods: int) -> list[RateBlock]:
    """Trim trailing blocks, or extend the last one, so the blocks span `periods` rows."""
    fitted: list[RateBlock] = []
    left = periods
    for block in blocks:
        if left == 0:
            break
        take = min(block.length, left)
        fitted.append(block._replace(length=take))
        left -= take
    if left:
        fitted[-1] = fitted[-1]._replace(length=fitted[-1].length + left)
    return fitted


def amortize_blocks(
    balance: Decimal,
    blocks: Sequence[RateBlock],
    *,
    anchor: date,
    frequency: Frequency,
    first_number: int = 1,
    interest_frequency: Frequency | None = None,
    payment: Decimal | None = None,
    keep_block_payments: bool = False,
    open_ended: bool = False,
    stop_at_payoff: bool = False,
) -> list[ScheduleRow]:
    """Amortize `balance` through consecutive rate blocks.

    At each block boundary the payment is re-levelled over every remaining
    period at that block's rate. A fixed `payment` overrides this, as does
    `keep_block_payments`, which carries each block's own scheduled payment.
    Only the final block closes the balance out; with `open_ended` (fixed
    payment only) it runs for as many periods as the payment needs.
    """
    rows: list[ScheduleRow] = []
    total = sum(block.length for block in blocks)
    number = first_number
    for i, block in enumerate(blocks):
        is_final_block = i == len(blocks) - 1
        r, day_count = interest_basis(block.rate, frequency, interest_frequency)
        if payment is not None:
            pmt = payment
        elif keep_block_payments:
            pmt = block.payment
        else:
            pmt = money(level_payment(balance, r, total - (number - first_number)))
        length = block.length
        if open_ended and is_final_block:
            length = remaining_periods(balance, r, pmt)
        rows.extend(amortize_balance(
            balance, r, length, pmt,
            anchor=anchor,
            frequency=frequency,
            first_number=number,
            annual_rate_percent=block.rate,
            term_number=block.term_number,
            day_count=day_count,
            close_out=is_final_block,
            stop_at_payoff=stop_at_payoff,
        ))
        balance = rows[-1].ending_balance
        number += length
        if stop_at_payoff and balance == 0:
            break
    return rows


def _cache_key(prefix: str, *args: Any) -> str:
    """Generate a deterministic cache key from call arguments."""
    raw = json.dumps([str(a) for a in args])
    h = hashlib.sha256(raw.encode()).hexdigest()[:16]
    return f"amortization:{prefix}:{h}"


def _row_index(schedule: Schedule, payment_number: int) -> int:
    if isinstance(payment_number, bool) or not isinstance(payment_number, int):
        raise InvalidArgumentError(f"payment_number must be an integer, got {payment_number!r}")
    if not 1 <= payment_number <= len(schedule):
        raise InvalidArgumentError(
            "payment_number out of range",
            {"payment_number": payment_number, "schedule_length": len(schedule)},
        )
    return payment_number - 1


def _anchor(schedule: Schedule) -> date:
    """Date of payment #1; every row date is derived from it."""
    return schedule.rows[0].payment_date


class AdvancedAmortizationService:
    def __init__(self, cache: CacheManager | None = None):
        self.cache = cache

    def _cached(self, key: str, compute: Callable[[], Any]) -> Any:
        if self.cache is None:
            return compute()
        return self.cache.remember(key, compute)

    # ── Schedule generators ─────────────────────────────────────

    def generate_balloon_schedule(
        self,
        principal,
        annual_rate_percent,
        number_of_payments: int,
        balloon,
        frequency: Frequency | str = Frequency.MONTHLY,
        start_date: date | str | None = None,
    ) -> Schedule:
        """Schedule whose level payments leave `balloon` due with the final payment.

        The payment amortizes principal - PV(balloon); the last row pays the
        balloon plus its regular installment.
        """
        p = validate_principal(principal)
        n = validate_count(number_of_payments)
        rate_pct = validate_rate(annual_rate_percent)
        freq = parse_frequency(frequency)
        start = parse_start_date(start_date)
        b = to_decimal(balloon, "balloon")
        if b < 0:
            raise InvalidArgumentError("Balloon payment cannot be negative", {"balloon": str(b)})
        if b >= p:
            raise InvalidArgumentError(
                "Balloon payment must be less than principal",
                {"balloon": str(b), "principal": str(p)},
            )

        def build() -> Schedule:
            if b == 0:
                return generate_schedule(p, rate_pct, freq, n, start)
            r = periodic_rate(rate_pct, freq)
            pmt = money(balloon_level_payment(p, r, n, b))
            rows = amortize_balance(
                p, r, n, pmt,
                anchor=start,
                frequency=freq,
                annual_rate_percent=rate_pct,
            )
            rows[-1] = replace(rows[-1], balloon_payment=b)
            return Schedule(
                rows=tuple(rows),
                frequency=freq,
                metadata={"principal": p, "annual_rate": rate_pct, "payment": pmt, "balloon": b},
            )

        return self._cached(_cache_key("balloon", p, rate_pct, n, b, freq.value, start), build)

    def generate_variable_rate_schedule(
        self,
        principal,
        rates: list,
        periods_per_term: int,
        frequency: Frequency | str = Frequency.MONTHLY,
        start_date: date | str | None = None,
    ) -> Schedule:
        """Schedule re-amortized at the start of each rate block.

        The loan runs len(rates) * periods_per_term periods. Each block levels
        its payment over the whole remaining term at that block's rate, so the
        balance carries across blocks and closes at zero.
        """
        p = validate_principal(principal)
        if not rates:
            raise InvalidArgumentError("Rate schedule cannot be empty")
        block_rates = [validate_rate(rate) for rate in rates]
        per_term = validate_count(periods_per_term, "periods_per_term")
        return self._variable_schedule(
            p, block_rates, [per_term] * len(block_rates), parse_frequency(frequency), parse_start_date(start_date),
        )

    def _variable_schedule(
        self, principal: Decimal, block_rates: list[Decimal], lengths: list[int], freq: Frequency, start: date
    ) -> Schedule:
        blocks = [
            RateBlock(rate_pct, term_number, length)
            for term_number, (rate_pct, length) in enumerate(zip(block_rates, lengths), start=1)
        ]

        def build() -> Schedule:
            rows = amortize_blocks(principal, blocks, anchor=start, frequency=freq)
            return Schedule(
                rows=tuple(rows),
                frequency=freq,
                metadata={"principal": principal, "rates": tuple(block_rates), "block_lengths": tuple(lengths)},
            )

        key = _cache_key("variable", principal, *block_rates, *lengths, freq.value, start)
        return self._cached(key, build)

    # ── Mutations ───────────────────────────────────────────────

    def apply_prepayment(
        self,
        schedule: Schedule,
        payment_number: int,
        amount,
        recompute_term: bool = False,
    ) -> Schedule:
        """Apply a lump-sum principal payment after the given payment.

        By default every remaining rate block keeps its scheduled payment, so
        the loan pays off early. With `recompute_term` the shortened term is
        computed up front at the current rate and the payment is re-levelled
        over it.
        """
        idx = _row_index(schedule, payment_number)
        amt = positive_amount(amount, "prepayment")
        row = schedule[idx]
        if amt >= row.ending_balance:
            raise InvalidArgumentError(
                "Prepayment must be less than the outstanding balance",
                {"prepayment": str(amt), "balance": str(row.ending_balance)},
            )

        prepaid_row = replace(row, prepayment=row.prepayment + amt, ending_balance=row.ending_balance - amt)
        balance = prepaid_row.ending_balance
        blocks = [
            block if block.payment else block._replace(payment=schedule.level_payment)
            for block in rate_blocks(schedule.rows[idx + 1:])
        ]

        if recompute_term:
            r, _ = interest_basis(blocks[0].rate, schedule.frequency, schedule.interest_frequency)
            periods = min(len(schedule) - payment_number, remaining_periods(balance, r, blocks[0].payment))
            tail = self._rebuild(
                schedule, balance, payment_number + 1, fit_blocks(blocks, periods), stop_at_payoff=True,
            )
        else:
            tail = self._rebuild(
                schedule, balance, payment_number + 1, blocks, keep_block_payments=True, stop_at_payoff=True,
            )
        logger.info(
            "Prepayment of %s at payment %d: %d -> %d payments",
            amt, payment_number, len(schedule), idx + 1 + len(tail),
        )
        return replace(schedule, rows=schedule.rows[:idx] + (prepaid_row,) + tuple(tail))

    def apply_skip_payment(
        self,
        schedule: Schedule,
        payment_number: int,
        capitalize_interest: bool = True,
    ) -> Schedule:
        """Skip one payment and extend the loan by one period.

        The skipped row stays in place with a zero payment. Its interest is
        added to the balance when `capitalize_interest` is set, otherwise it is
        waived and the balance stays flat. The extra period joins the last
        rate block.
        """
        idx = _row_index(schedule, payment_number)
        row = schedule[idx]
        if row.beginning_balance <= 0:
            raise InvalidArgumentError("Cannot skip a payment on a paid-off loan", {"payment_number": payment_number})

        accrued = ZERO
        if capitalize_interest:
            r, day_count = interest_basis(row.rate, schedule.frequency, schedule.interest_frequency)
            row_rate = period_rate(_anchor(schedule), schedule.frequency, idx, r, day_count)
            accrued = money(row.beginning_balance * row_rate)
        skipped_row = replace(
            row,
            payment_amount=ZERO,
            principal_payment=ZERO,
            interest_payment=ZERO,
            prepayment=ZERO,
            balloon_payment=ZERO,
            capitalized_interest=accrued,
            ending_balance=row.beginning_balance + accrued,
            skipped=True,
        )

        blocks = rate_blocks(schedule.rows[idx + 1:]) or [RateBlock(row.rate, row.term_number, 0)]
        blocks[-1] = blocks[-1]._replace(length=blocks[-1].length + 1)
        tail = self._rebuild(schedule, skipped_row.ending_balance, payment_number + 1, blocks)
        logger.info(
            "Skipped payment %d (capitalized %s): %d -> %d payments",
            payment_number, accrued, len(schedule), idx + 1 + len(tail),
        )
        return replace(schedule, rows=schedule.rows[:idx] + (skipped_row,) + tuple(tail))

    def modify_loan_terms(
        self,
        schedule: Schedule,
        payment_number: int,
        new_rate=None,
        new_term: int | None = None,
        new_payment=None,
    ) -> Schedule:
        """Re-amortize from `payment_number` onward under new terms.

        A new rate replaces every remaining rate block; without one the
        remaining blocks keep their rates.

        Args:
            new_rate: Annual % from this payment on (default: the rates in force)
            new_term: Payments remaining, counting this one (default: unchanged)
            new_payment: Fixed payment; without new_term it runs until paid off
        """
        idx = _row_index(schedule, payment_number)
        if new_rate is None and new_term is None and new_payment is None:
            raise InvalidArgumentError("Provide at least one of new_rate, new_term or new_payment")
        row = schedule[idx]
        balance = row.beginning_balance
        if balance <= ONE_CENT:
            raise InvalidArgumentError(
                "Loan is already paid off at this payment",
                {"payment_number": payment_number},
            )

        if new_rate is None:
            blocks = rate_blocks(schedule.rows[idx:])
        else:
            blocks = [RateBlock(validate_rate(new_rate), row.term_number, len(schedule) - idx)]
        term = None if new_term is None else validate_count(new_term, "new_term")
        if term is not None:
            blocks = fit_blocks(blocks, term)
        r, _ = interest_basis(blocks[0].rate, schedule.frequency, schedule.interest_frequency)

        if new_payment is not None:
            pmt = positive_amount(new_payment, "new_payment")
            if pmt <= money(balance * r):
                raise InvalidArgumentError(
                    "New payment does not cover periodic interest",
                    {"payment": str(pmt), "interest": str(money(balance * r))},
                )
            tail = self._rebuild(
                schedule, balance, payment_number, blocks,
                payment=pmt, open_ended=term is None, stop_at_payoff=True,
            )
        else:
            tail = self._rebuild(schedule, balance, payment_number, blocks)
        logger.info(
            "Modified terms at payment %d: rate=%s payment=%s, %d -> %d payments",
            payment_number, blocks[0].rate, tail[0].payment_amount, len(schedule), idx + len(tail),
        )
        return replace(schedule, rows=schedule.rows[:idx] + tuple(tail))

    @staticmethod
    def _rebuild(
        schedule: Schedule, balance: Decimal, first_number: int, blocks: list[RateBlock], **options
    ) -> list[ScheduleRow]:
        return amortize_blocks(
            balance, blocks,
            anchor=_anchor(schedule),
            frequency=schedule.frequency,
            first_number=first_number,
            interest_frequency=schedule.interest_frequency,
            **options,
        )

    # ── Scenarios ───────────────────────────────────────────────

    def generate_alternative_scenarios(
        self,
        principal,
        annual_rate_percent,
        number_of_payments: int,
        options: dict | None = None,
        frequency: Frequency | str = Frequency.MONTHLY,
        start_date: date | str | None = None,
    ) -> Mapping[str, Mapping]:
        """Standard, 20% balloon, biweekly and stepped-rate versions of one loan.

        Pass {"skip_<scenario>": True} in `options` to omit a scenario.

        Returns a read-only {"scenarios": {name: Schedule}, "summary": {name:
        {num_payments, total_interest, total_payment}}}
        """
        p = validate_principal(principal)
        rate_pct = validate_rate(annual_rate_percent)
        n = validate_count(number_of_payments)
        freq = parse_frequency(frequency)
        start = parse_start_date(start_date)
        options = options or {}

        skipped = {name for name in SCENARIO_NAMES if options.get(f"skip_{name}")}
        skipped |= {name for flag, name in _SKIP_ALIASES.items() if options.get(flag)}
        wanted = [name for name in SCENARIO_NAMES if name not in skipped]

        builders: dict[str, Callable[[], Schedule]] = {
            "standard": lambda: self._cached(
                _cache_key("standard", p, rate_pct, n, freq.value, start),
                lambda: generate_schedule(p, rate_pct, freq, n, start),
            ),
            "balloon_20pct": lambda: self.generate_balloon_schedule(
                p, rate_pct, n, money(p * settings.balloon_scenario_pct), freq, start,
            ),
            "biweekly": lambda: self._cached(
                _cache_key("biweekly", p, rate_pct, n, freq.value, start),
                lambda: generate_schedule(
                    p, rate_pct, Frequency.BIWEEKLY,
                    math.ceil(n * Frequency.BIWEEKLY.periods_per_year / freq.periods_per_year),
                    start,
                ),
            ),
            "variable_stepped": lambda: self._stepped_rate_schedule(p, rate_pct, n, freq, start),
        }

        def build() -> Mapping[str, Mapping]:
            scenarios = {name: builders[name]() for name in wanted}
            summary = {name: MappingProxyType(sched.summary()) for name, sched in scenarios.items()}
            return MappingProxyType({
                "scenarios": MappingProxyType(scenarios),
                "summary": MappingProxyType(summary),
            })

        key = _cache_key("scenarios", p, rate_pct, n, freq.value, start, *sorted(wanted))
        return self._cached(key, build)

    def _stepped_rate_schedule(
        self, principal: Decimal, rate_pct: Decimal, n: int, freq: Frequency, start: date
    ) -> Schedule:
        """Rates rising by `variable_rate_step` per block; the last block takes the leftover periods."""
        blocks = max(1, min(settings.variable_rate_blocks, n))
        rates = [rate_pct + settings.variable_rate_step * i for i in range(blocks)]
        per_block = n // blocks
        lengths = [per_block] * (blocks - 1) + [n - per_block * (blocks - 1)]
        return self._variable_schedule(principal, rates, lengths, freq, start)

    def compare_scenario_costs(self, scenarios: Mapping[str, Schedule]) -> list[dict]:
        """Rank schedules by total cost (everything the borrower pays), cheapest first."""
        comparison = [
            {
                "scenario": name,
                "total_cost": sched.total_payment,
                "total_interest": sched.total_interest,
                "num_payments": len(sched),
                "effective_annual_rate": effective_annual_rate(sched),
            }
            for name, sched in scenarios.items()
        ]
        return sorted(comparison, key=lambda c: c["total_cost"])

    # ── Reporting helpers ───────────────────────────────────────

    @staticmethod
    def interest_savings(original: Schedule, modified: Schedule) -> Decimal:
        return original.total_interest - modified.total_interest

    @staticmethod
    def payoff_summary(original: Schedule, modified: Schedule) -> dict:
        """Payments and interest saved by a mutation, with both payoff dates."""
        return {
            "payments_saved": len(original) - len(modified),
            "interest_saved": original.total_interest - modified.total_interest,
            "original_payoff_date": original.rows[-1].payment_date if original.rows else None,
            "new_payoff_date": modified.rows[-1].payment_date if modified.rows else None,
        }
