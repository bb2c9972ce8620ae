"""Cached portfolio analytics.

Each metric is stored under portfolio:<metric>:<digest>, where the digest
identifies the exact set of loans, so different portfolios never share an entry.
"""

import copy
import hashlib
import json
import logging
from typing import Any, Callable, Sequence

from loan_amortization.data.cache import CacheManager
from loan_amortization.engine import portfolio
from loan_amortization.models.cache import CacheStats
from loan_amortization.models.loan import Loan

logger = logging.getLogger(__name__)

KEY_PREFIX = "portfolio"

_METRICS: dict[str, Callable[[Sequence[Loan]], Any]] = {
    "report": portfolio.portfolio_report,
    "risk_profile": portfolio.risk_profile,
    "yield": portfolio.portfolio_yield,
    "profitability": portfolio.profitability,
    "diversification": portfolio.diversification,
    "ranking": portfolio.rank_loans,
}


def portfolio_digest(loans: Sequence[Loan]) -> str:
    """Order-independent SHA-256 of the loan terms that drive every metric."""
    parts = sorted(
        (
            loan.loan_id,
            str(loan.principal),
            str(loan.annual_rate),
            loan.term,
            loan.frequency.value,
            loan.status.value,
        )
        for loan in loans
    )
    return hashlib.sha256(json.dumps(parts).encode()).hexdigest()


def portfolio_key(metric: str, loans: Sequence[Loan]) -> str:
    return f"{KEY_PREFIX}:{metric}:{portfolio_digest(loans)}"


class PortfolioCache:
    def __init__(self, cache: CacheManager | None = None):
        self._cache = cache if cache is not None else CacheManager()

    @property
    def cache_manager(self) -> CacheManager:
        return self._cache

    def _get(self, metric: str, loans: Sequence[Loan], ttl: int | None) -> Any:
        value = self._cache.remember(portfolio_key(metric, loans), lambda: _METRICS[metric](loans), ttl)
        # Callers get their own copy; the cached value stays as computed
        return copy.deepcopy(value)

    # ── Metrics ─────────────────────────────────────────────────

    def get_cached_portfolio_report(self, loans: Sequence[Loan], ttl: int | None = None) -> dict:
        return self._get("report", loans, ttl)

    def get_cached_risk_profile(self, loans: Sequence[Loan], ttl: int | None = None) -> dict:
        return self._get("risk_profile", loans, ttl)

    def get_cached_yield(self, loans: Sequence[Loan], ttl: int | None = None):
        return self._get("yield", loans, ttl)

    def get_cached_profitability(self, loans: Sequence[Loan], ttl: int | None = None) -> dict:
        return self._get("profitability", loans, ttl)

    def get_cached_diversification(self, loans: Sequence[Loan], ttl: int | None = None) -> dict:
        return self._get("diversification", loans, ttl)

    def get_cached_ranking(self, loans: Sequence[Loan], ttl: int | None = None) -> list[dict]:
        return self._get("ranking", loans, ttl)

    # ── Maintenance ─────────────────────────────────────────────

    def invalidate_portfolio_cache(self) -> int:
        """Drop every cached portfolio metric. Returns the number of entries removed."""
        deleted = self._cache.delete_by_pattern(rf"^{KEY_PREFIX}:")
        logger.info("Invalidated %d portfolio cache entries", deleted)
        return deleted

    def invalidate_loans(self, loans: Sequence[Loan]) -> int:
        """Drop cached metrics for one loan set only."""
        return self._cache.delete_by_pattern(rf"^{KEY_PREFIX}:[a-z_]+:{portfolio_digest(loans)}$")

    def warm_cache(self, loans: Sequence[Loan], ttl: int | None = None) -> int:
        """Compute and store every metric for `loans`. Returns the number of entries written."""
        values = {portfolio_key(metric, loans): compute(loans) for metric, compute in _METRICS.items()}
        return self._cache.warm(values, ttl)

    def get_cache_stats(self) -> CacheStats:
        return self._cache.get_stats()

    def set_default_ttl(self, ttl: int) -> None:
        self._cache.set_default_ttl(ttl)

    def get_cache_size(self) -> int:
        return self._cache.get_size()

    def clear_cache(self) -> None:
        self._cache.clear()
