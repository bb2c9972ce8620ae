"""In-process key/value cache with TTLs and hit/miss accounting.

Entries expire lazily: a read past the expiry counts as a miss and drops the
entry; purge_expired() sweeps the rest. One instance per owner (service or
request scope). Not thread-safe: callers sharing an instance across threads
must lock around it.
"""

import logging
import re
import sys
import time
from typing import Any, Callable

from loan_amortization.config import settings
from loan_amortization.exceptions import InvalidArgumentError
from loan_amortization.models.cache import CacheEntry, CacheEntryMetadata, CacheStats

logger = logging.getLogger(__name__)

_MISSING = object()


def _validate_ttl(ttl: int) -> int:
    if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl <= 0:
        raise InvalidArgumentError("TTL must be a positive number of seconds", {"ttl": ttl})
    return ttl


class CacheManager:
    def __init__(self, default_ttl: int | None = None, clock: Callable[[], float] = time.time):
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock
        self._default_ttl = _validate_ttl(default_ttl if default_ttl is not None else settings.default_cache_ttl)
        self.reset_stats()

    # ── Configuration ────────────────────────────────────────────

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    def set_default_ttl(self, ttl: int) -> None:
        self._default_ttl = _validate_ttl(ttl)

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

    # ── Core operations ──────────────────────────────────────────

    def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        if not isinstance(key, str) or not key:
            raise InvalidArgumentError("Cache key must be a non-empty string", {"key": key})
        ttl = self._default_ttl if ttl is None else _validate_ttl(ttl)
        self._entries[key] = CacheEntry(key=key, value=value, ttl=ttl, created_at=self._clock())
        self._sets += 1
        return True

    def _live_entry(self, key: str, evict: bool = False) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            if evict:
                del self._entries[key]
                logger.debug("Cache entry expired: %s", key)
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._live_entry(key, evict=True)
        if entry is None:
            self._misses += 1
            logger.debug("Cache miss: %s", key)
            return default
        entry.hits += 1
        self._hits += 1
        logger.debug("Cache hit: %s", key)
        return entry.value

    def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def delete(self, key: str) -> bool:
        if self._entries.pop(key, None) is None:
            return False
        self._deletes += 1
        return True

    def clear(self) -> None:
        self._entries.clear()

    def remember(self, key: str, compute: Callable[[], Any], ttl: int | None = None) -> Any:
        """Return the cached value for `key`, computing and caching it on a miss."""
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = compute()
            self.set(key, value, ttl)
        return value

    # ── Bulk operations ──────────────────────────────────────────

    def delete_by_pattern(self, pattern: str | re.Pattern) -> int:
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        matched = [key for key in self._entries if regex.search(key)]
        for key in matched:
            self.delete(key)
        return len(matched)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)

    def warm(self, values: dict[str, Any], ttl: int | None = None) -> int:
        for key, value in values.items():
            self.set(key, value, ttl)
        return len(values)

    # ── Introspection ────────────────────────────────────────────

    def get_keys(self) -> list[str]:
        return list(self._entries)

    def get_metadata(self, key: str) -> CacheEntryMetadata | None:
        entry = self._live_entry(key)
        if entry is None:
            return None
        return CacheEntryMetadata(
            key=entry.key,
            ttl=entry.ttl,
            created_at=entry.created_at,
            expires_at=entry.expires_at,
            hits=entry.hits,
        )

    def get_expiring_entries(self, within_seconds: float) -> dict[str, dict[str, float]]:
        """Live entries that expire within the given window, with seconds remaining."""
        now = self._clock()
        return {
            key: {"expires_in_seconds": entry.expires_in(now)}
            for key, entry in self._entries.items()
            if not entry.is_expired(now) and entry.expires_in(now) <= within_seconds
        }

    def get_size(self) -> int:
        """Approximate memory held by keys and values, in bytes."""
        return sum(sys.getsizeof(key) + sys.getsizeof(entry.value) for key, entry in self._entries.items())

    def get_stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            sets=self._sets,
            deletes=self._deletes,
            total_requests=total,
            hit_rate=round(self._hits / total * 100, 2) if total > 0 else 0.0,
            current_size=len(self._entries),
        )
