from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel


@dataclass
class CacheEntry:
    key: str
    value: Any
    ttl: int  # Seconds
    created_at: float  # Epoch seconds
    hits: int = 0

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def expires_in(self, now: float) -> float:
        return max(0.0, self.expires_at - now)


class CacheEntryMetadata(BaseModel):
    key: str
    ttl: int
    created_at: float
    expires_at: float
    hits: int


class CacheStats(BaseModel):
    hits: int
    misses: int
    sets: int
    deletes: int
    total_requests: int
    hit_rate: float  # Percent, 0-100
    current_size: int
