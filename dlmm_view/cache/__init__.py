"""
Tiered TTL cache with per-category expiry and request coalescing.
"""
from .core import CacheEntry, DataCategory
from .ttl_policies import (
    TTL_CONFIG,
    get_ttl_for_category,
    get_category_for_operation,
    make_cache_key,
)
from .coalescer import RequestCoalescer
from .manager import TieredCache

__all__ = [
    # Core types
    "CacheEntry",
    "DataCategory",
    # TTL policies
    "TTL_CONFIG",
    "get_ttl_for_category",
    "get_category_for_operation",
    "make_cache_key",
    # Coalescing
    "RequestCoalescer",
    # Store
    "TieredCache",
]
