"""
Pool data providers.

HTTPPoolDataProvider lives in ``dlmm_view.providers.http_provider``; it is
not re-exported here because it depends on ``dlmm_view.models``, which in
turn imports the error types below.
"""
from .base import (
    PoolDataProvider,
    ProviderError,
    ProviderTimeoutError,
    PoolNotFoundError,
    MalformedResponseError,
)

__all__ = [
    "PoolDataProvider",
    "ProviderError",
    "ProviderTimeoutError",
    "PoolNotFoundError",
    "MalformedResponseError",
]
