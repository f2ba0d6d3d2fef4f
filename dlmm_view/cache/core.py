"""
Core cache data structures.
"""
from dataclasses import dataclass
from typing import Any, Optional
from enum import Enum


class DataCategory(Enum):
    """Freshness classes for pool data, each with its own TTL."""
    POOL_METADATA = "pool_metadata"     # token identities, decimals, static config
    PAIR_STATE = "pair_state"           # active bin, bin step, bin arrays
    PRICE_QUOTE = "price_quote"         # moves with every trade
    USER_POSITIONS = "user_positions"   # near-real-time


@dataclass
class CacheEntry:
    """
    A cached value plus the moment it was stored and how long it stays live.

    ``stored_at`` is read from the owning cache's clock (seconds), ``ttl_ms``
    is fixed at write time.
    """
    value: Any
    stored_at: float
    ttl_ms: int
    category: Optional[DataCategory] = None

    def age_ms(self, now: float) -> float:
        """Milliseconds since the value was stored."""
        return (now - self.stored_at) * 1000

    def is_live(self, now: float) -> bool:
        """Live while strictly younger than its TTL."""
        return self.age_ms(now) < self.ttl_ms

    def expires_at(self) -> float:
        """Clock reading at which the entry stops being live."""
        return self.stored_at + self.ttl_ms / 1000
