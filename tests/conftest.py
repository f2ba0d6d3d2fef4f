"""
Shared fixtures: a controllable clock and a call-counting in-memory provider.
"""
import threading
from collections import Counter
from typing import Dict, List, Optional, Tuple

import pytest

from dlmm_view.cache import TieredCache
from dlmm_view.models import (
    PoolMetadata,
    TokenInfo,
    QuoteResult,
    PairState,
    BinArray,
    BinReserve,
    UserPosition,
)
from dlmm_view.pool_data import PoolDataService
from dlmm_view.providers.base import PoolNotFoundError, ProviderError


POOL_A = "9P3N4QxjMumpTNNdvaNNskXu2t7VHMMXtePQB72kkSAk"
POOL_B = "So11111111111111111111111111111111111111112"
POOL_C = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USER = "4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T"


class FakeClock:
    """Monotonic clock that only moves when told to (kept in whole milliseconds)."""

    def __init__(self, start_ms: int = 1_000_000):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms / 1000

    def advance(self, ms: int) -> None:
        self.now_ms += ms


def make_metadata(pool: str, base_symbol: Optional[str] = "SOL", quote_symbol: Optional[str] = "USDC") -> PoolMetadata:
    return PoolMetadata(
        pool_address=pool,
        base=TokenInfo(mint="So11111111111111111111111111111111111111112", decimals=6, symbol=base_symbol),
        quote=TokenInfo(mint="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", decimals=6, symbol=quote_symbol),
        base_reserve=5_000_000_000.0,
        quote_reserve=7_500_000_000.0,
    )


def make_position(pool: str, position_id: str, fees_x: float = 0.0, fees_y: float = 0.0) -> UserPosition:
    return UserPosition(
        position_id=position_id,
        pool_address=pool,
        lower_bin_id=90,
        upper_bin_id=110,
        token_x_amount=1.0,
        token_y_amount=1.5,
        fees_x=fees_x,
        fees_y=fees_y,
    )


class FakeProvider:
    """
    In-memory PoolDataProvider that counts calls per operation.

    - ``fail[op] = exc`` makes every call to ``op`` raise ``exc``
    - ``failing_pools`` makes position lookups for those pools raise
    - ``gate`` (an Event) blocks every call until set
    """

    def __init__(self):
        self.calls: Counter = Counter()
        self.fail: Dict[str, Exception] = {}
        self.failing_pools = set()
        self.gate: Optional[threading.Event] = None
        self.price = 1.5
        self.pools: List[str] = [POOL_A, POOL_B]
        self.metadata: Dict[str, PoolMetadata] = {POOL_A: make_metadata(POOL_A)}
        self.pairs: Dict[str, PairState] = {POOL_A: PairState(active_bin=100, bin_step=25)}
        self.positions: Dict[Tuple[str, str], List[UserPosition]] = {}
        self.bin_array_requests: List[Tuple[str, int]] = []
        self.quote_requests: List[dict] = []

    def _enter(self, op: str) -> None:
        self.calls[op] += 1
        if self.gate is not None:
            self.gate.wait(5)
        if op in self.fail:
            raise self.fail[op]

    def fetch_pool_addresses(self) -> List[str]:
        self._enter("pool_addresses")
        return list(self.pools)

    def fetch_metadata(self, pool_address: str) -> PoolMetadata:
        self._enter("metadata")
        if pool_address not in self.metadata:
            raise PoolNotFoundError(f"Unknown pool {pool_address}")
        return self.metadata[pool_address]

    def fetch_quote(self, amount, metadata, is_exact_input, swap_for_y, slippage) -> QuoteResult:
        self._enter("quote")
        self.quote_requests.append({
            "amount": amount,
            "pool": metadata.pool_address,
            "is_exact_input": is_exact_input,
            "swap_for_y": swap_for_y,
            "slippage": slippage,
        })
        return QuoteResult(amount_in=amount, amount_out=int(amount * self.price))

    def fetch_pair_state(self, pool_address: str) -> PairState:
        self._enter("pair_state")
        if pool_address not in self.pairs:
            raise PoolNotFoundError(f"Unknown pair {pool_address}")
        return self.pairs[pool_address]

    def fetch_bin_array(self, pool_address: str, bin_array_index: int) -> BinArray:
        self._enter("bin_array")
        self.bin_array_requests.append((pool_address, bin_array_index))
        return BinArray(
            result_index=bin_array_index,
            bins=[BinReserve(reserve_x=1_000_000.0, reserve_y=2_000_000.0) for _ in range(256)],
        )

    def fetch_user_positions(self, user_address: str, pool_address: str) -> List[UserPosition]:
        self._enter("user_positions")
        if pool_address in self.failing_pools:
            raise ProviderError(f"RPC node error for {pool_address}")
        return list(self.positions.get((user_address, pool_address), []))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TieredCache(clock=clock)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def service(provider, cache):
    """Service calling the provider inline (no timeout thread)."""
    svc = PoolDataService(provider, cache, timeout_seconds=None)
    yield svc
    svc.close()
