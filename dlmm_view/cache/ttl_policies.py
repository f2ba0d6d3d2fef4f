"""
TTL configuration and cache key construction.
"""
from typing import Dict, Any

from .core import DataCategory


# TTL by category (in milliseconds)
TTL_CONFIG: Dict[DataCategory, int] = {
    DataCategory.POOL_METADATA: 120_000,    # 2 minutes, rarely changes
    DataCategory.PAIR_STATE: 60_000,        # 1 minute, moves with trading
    DataCategory.PRICE_QUOTE: 30_000,       # 30 seconds
    DataCategory.USER_POSITIONS: 15_000,    # 15 seconds
}

# Which category each data-access operation caches under
OPERATION_CATEGORIES: Dict[str, DataCategory] = {
    "pool_addresses": DataCategory.POOL_METADATA,
    "pool_metadata": DataCategory.POOL_METADATA,
    "pair_state": DataCategory.PAIR_STATE,
    "bin_array": DataCategory.PAIR_STATE,
    "quote": DataCategory.PRICE_QUOTE,
    "user_positions": DataCategory.USER_POSITIONS,
}


def get_ttl_for_category(category: DataCategory) -> int:
    """
    Get the TTL for a data category.

    Args:
        category: The data category

    Returns:
        TTL in milliseconds
    """
    return TTL_CONFIG[category]


def get_category_for_operation(operation: str) -> DataCategory:
    """
    Map a data-access operation name to its freshness class.

    Raises:
        KeyError: If the operation has no registered category
    """
    return OPERATION_CATEGORIES[operation]


def _format_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    return str(value)


def make_cache_key(operation: str, **params: Any) -> str:
    """
    Build a deterministic cache key from an operation name and its parameters.

    Parameters are sorted by name and ``None`` values are dropped, so the same
    call always yields the same key and any changed argument yields a new one.

    Example:
        make_cache_key("quote", pool="9P3N...", amount=1000000, slippage=0.005)
        -> "quote:amount=1000000,pool=9P3N...,slippage=0.005"
    """
    parts = [
        f"{name}={_format_param(value)}"
        for name, value in sorted(params.items())
        if value is not None
    ]
    return f"{operation}:{','.join(parts)}"
