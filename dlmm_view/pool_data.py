"""
Pool data access layer.

Every read goes through the tiered cache first (cache-aside):

    key -> cache.get -> hit: return, no provider call
                     -> miss: provider call (with timeout) -> cache.set(category TTL) -> return

Provider failures propagate to the caller and are never cached. Composite
reads (pool info, bin liquidity, fee distribution, portfolio) are not cached
as a unit; only their constituent calls are, so their fields may differ in age.
"""
import logging
from dataclasses import replace
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from datetime import datetime
from typing import Optional, List, Dict, Any, Callable, Tuple

from dlmm_view.cache import (
    TieredCache,
    RequestCoalescer,
    get_ttl_for_category,
    get_category_for_operation,
    make_cache_key,
)
from dlmm_view.models import (
    PoolMetadata,
    QuoteResult,
    PairState,
    BinArray,
    BinReserve,
    UserPosition,
    PoolInfo,
    BinLiquidity,
    FeeShare,
    PortfolioSummary,
)
from dlmm_view.pool_math import (
    CHART_COLORS,
    bin_array_index,
    bin_offset,
    bin_price,
    price_from_bin_id,
    bin_ids_around,
    to_ui_amount,
    aggregate_fee_shares,
)
from dlmm_view.providers.base import PoolDataProvider, ProviderTimeoutError
from dlmm_view.utils.helpers import normalize_address, short_address

logger = logging.getLogger("pool_data")

# Default quote parameters for price discovery
DEFAULT_SLIPPAGE = 0.005  # 0.5%


class PoolDataService:
    """
    Cache-aside reads over a PoolDataProvider.

    Usage:
        service = PoolDataService(provider, TieredCache(), RequestCoalescer())
        info = service.get_pool_info("9P3N4QxjMumpTNNdvaNNskXu2t7VHMMXtePQB72kkSAk")
    """

    def __init__(
        self,
        provider: PoolDataProvider,
        cache: TieredCache,
        coalescer: Optional[RequestCoalescer] = None,
        timeout_seconds: Optional[float] = 10.0,
        pool_scan_limit: int = 5,
        max_workers: int = 8,
    ):
        """
        Args:
            provider: Upstream pool data source
            cache: Cache instance owned by this service
            coalescer: Shares one provider call among concurrent misses on a key
            timeout_seconds: Budget per provider call, ``None`` to call inline without one
            pool_scan_limit: Pools scanned when no explicit pool list is given
            max_workers: Threads available for timed provider calls
        """
        self._provider = provider
        self._cache = cache
        self._coalescer = coalescer
        self._timeout = timeout_seconds
        self._pool_scan_limit = pool_scan_limit
        self._executor = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="provider-call")
            if timeout_seconds is not None
            else None
        )

    @property
    def cache(self) -> TieredCache:
        return self._cache

    # =========================================================================
    # Cache-aside core
    # =========================================================================

    def _call_provider(self, key: str, fetch_fn: Callable[[], Any]) -> Any:
        """Run one provider call under the configured timeout."""
        if self._executor is None:
            return fetch_fn()

        future = self._executor.submit(fetch_fn)
        try:
            return future.result(timeout=self._timeout)
        except FuturesTimeoutError:
            if future.done():
                # the provider itself raised a TimeoutError
                raise
            future.cancel()
            logger.warning(f"Provider call timed out after {self._timeout}s: {key}")
            raise ProviderTimeoutError(f"Provider call for {key} timed out after {self._timeout}s")

    def _cached(self, operation: str, fetch_fn: Callable[[], Any], **params: Any) -> Any:
        key = make_cache_key(operation, **params)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        category = get_category_for_operation(operation)
        ttl_ms = get_ttl_for_category(category)

        def load():
            try:
                value = self._call_provider(key, fetch_fn)
            except Exception as e:
                logger.warning(f"Provider call failed for {key}: {type(e).__name__}: {e}")
                raise
            if value is not None:
                self._cache.set(key, value, ttl_ms, category)
            logger.info(f"CACHE MISS: {key} -> stored for {ttl_ms}ms")
            return value

        if self._coalescer is not None:
            return self._coalescer.run(key, load, recheck=lambda: self._cache.peek(key))
        return load()

    # =========================================================================
    # Per-category reads
    # =========================================================================

    def get_pool_addresses(self) -> List[str]:
        """All pool addresses known to the provider (cached as pool metadata)."""
        addresses = self._cached("pool_addresses", lambda: tuple(self._provider.fetch_pool_addresses()))
        return list(addresses)

    def get_pool_metadata(self, pool_address: str) -> PoolMetadata:
        pool = normalize_address(pool_address, "pool address")
        return self._cached(
            "pool_metadata",
            lambda: self._provider.fetch_metadata(pool),
            pool=pool,
        )

    def get_quote(
        self,
        pool_address: str,
        amount: int,
        is_exact_input: bool = True,
        swap_for_y: bool = False,
        slippage: float = DEFAULT_SLIPPAGE,
    ) -> QuoteResult:
        """
        Quote a swap of ``amount`` raw units.

        Metadata needed by the provider is read through the cache first.

        Raises:
            ValueError: If amount is not positive integer or slippage is outside [0, 1]
        """
        pool = normalize_address(pool_address, "pool address")
        amount = _whole_number(amount, "Quote amount")
        if amount <= 0:
            raise ValueError(f"Quote amount must be positive, got {amount}")
        if not 0 <= slippage <= 1:
            raise ValueError(f"Slippage must be within [0, 1], got {slippage}")

        metadata = self.get_pool_metadata(pool)
        return self._cached(
            "quote",
            lambda: self._provider.fetch_quote(amount, metadata, is_exact_input, swap_for_y, slippage),
            pool=pool,
            amount=amount,
            exact_input=is_exact_input,
            swap_for_y=swap_for_y,
            slippage=float(slippage),
        )

    def get_pair_state(self, pool_address: str) -> PairState:
        pool = normalize_address(pool_address, "pool address")
        return self._cached(
            "pair_state",
            lambda: self._provider.fetch_pair_state(pool),
            pool=pool,
        )

    def get_bin_array(self, pool_address: str, index: int) -> BinArray:
        pool = normalize_address(pool_address, "pool address")
        index = _whole_number(index, "Bin array index")
        return self._cached(
            "bin_array",
            lambda: self._provider.fetch_bin_array(pool, index),
            pool=pool,
            index=index,
        )

    def get_user_positions(self, user_address: str, pool_address: str) -> List[UserPosition]:
        user = normalize_address(user_address, "wallet address")
        pool = normalize_address(pool_address, "pool address")
        positions = self._cached(
            "user_positions",
            lambda: tuple(self._provider.fetch_user_positions(user, pool)),
            user=user,
            pool=pool,
        )
        return list(positions)

    # =========================================================================
    # Composite reads
    # =========================================================================

    def get_pool_info(self, pool_address: str) -> PoolInfo:
        """
        Assemble a pool snapshot from metadata, a price quote, pair state and
        the active bin's bin array.

        A failed quote leaves ``current_price`` as None; any other failure
        propagates.
        """
        pool = normalize_address(pool_address, "pool address")
        metadata = self.get_pool_metadata(pool)
        current_price = self._quote_price(pool, metadata)
        pair = self.get_pair_state(pool)

        array_index = bin_array_index(pair.active_bin)
        bin_array = self.get_bin_array(pool, array_index)
        active_reserve = _bin_at(bin_array, pair.active_bin)

        return PoolInfo(
            pool_address=pool,
            base=metadata.base,
            quote=metadata.quote,
            base_reserve=to_ui_amount(metadata.base_reserve, metadata.base.decimals),
            quote_reserve=to_ui_amount(metadata.quote_reserve, metadata.quote.decimals),
            active_bin=pair.active_bin,
            bin_step=pair.bin_step,
            current_price=current_price,
            active_bin_reserve=active_reserve,
        )

    def _quote_price(self, pool: str, metadata: PoolMetadata) -> Optional[float]:
        """Quote-token price of one whole base token, or None if quoting fails."""
        one_token = 10 ** metadata.base.decimals
        try:
            quote = self.get_quote(pool, one_token)
        except Exception as e:
            logger.warning(f"Failed to get quote for price of {pool}: {e}")
            return None
        return to_ui_amount(quote.amount_out, metadata.quote.decimals) / to_ui_amount(
            quote.amount_in or one_token, metadata.base.decimals
        )

    def get_bin_liquidity(self, pool_address: str, bin_range: int = 50) -> List[BinLiquidity]:
        """
        Liquidity per bin around the active bin, for the distribution chart.

        Bins outside the fetched arrays report zero reserves. Without a quote
        the active-bin price is derived from the bin id itself.
        """
        if bin_range < 0:
            raise ValueError(f"bin_range must not be negative, got {bin_range}")

        info = self.get_pool_info(pool_address)
        price_at_active = info.current_price
        if price_at_active is None:
            try:
                price_at_active = price_from_bin_id(
                    info.active_bin, info.bin_step, info.base.decimals, info.quote.decimals
                )
            except OverflowError:
                logger.warning(f"Bin {info.active_bin} of {info.pool_address} cannot be priced; using relative prices")
                price_at_active = 1.0

        bin_ids = bin_ids_around(info.active_bin, bin_range)
        arrays: Dict[int, BinArray] = {}
        for index in sorted({bin_array_index(b) for b in bin_ids}):
            arrays[index] = self.get_bin_array(info.pool_address, index)

        result = []
        for bin_id in bin_ids:
            reserve = _bin_at(arrays[bin_array_index(bin_id)], bin_id) or BinReserve(0.0, 0.0)
            price = bin_price(price_at_active, bin_id, info.active_bin, info.bin_step)
            reserve_x = to_ui_amount(reserve.reserve_x, info.base.decimals)
            reserve_y = to_ui_amount(reserve.reserve_y, info.quote.decimals)
            result.append(
                BinLiquidity(
                    bin_id=bin_id,
                    price=price,
                    reserve_x=reserve_x,
                    reserve_y=reserve_y,
                    total_liquidity=reserve_x * price + reserve_y,
                    is_active=bin_id == info.active_bin,
                )
            )
        return result

    def _collect_positions(
        self,
        user_address: str,
        pool_addresses: Optional[List[str]],
    ) -> Tuple[List[str], Dict[str, List[UserPosition]], List[str]]:
        """
        Positions per pool, skipping pools whose fetch fails.

        Returns:
            (scanned_pools, positions_by_pool, failed_pools)
        """
        user = normalize_address(user_address, "wallet address")
        if pool_addresses is None:
            pool_addresses = self.get_pool_addresses()[: self._pool_scan_limit]
        else:
            # a pool listed twice is scanned once
            pool_addresses = list(dict.fromkeys(pool_addresses))

        by_pool: Dict[str, List[UserPosition]] = {}
        failed: List[str] = []
        for pool in pool_addresses:
            try:
                by_pool[pool] = self.get_user_positions(user, pool)
            except Exception as e:
                logger.warning(f"Failed to get positions for pool {pool}: {e}")
                failed.append(pool)
        return list(pool_addresses), by_pool, failed

    def _pool_name(self, pool_address: str) -> str:
        try:
            metadata = self.get_pool_metadata(pool_address)
        except Exception as e:
            logger.debug(f"No metadata for pool name {pool_address}: {e}")
            return f"Pool {short_address(pool_address)}"
        if metadata.base.symbol and metadata.quote.symbol:
            return f"{metadata.base.symbol}/{metadata.quote.symbol}"
        return f"Pool {short_address(pool_address)}"

    def get_fee_distribution(
        self,
        user_address: str,
        pool_addresses: Optional[List[str]] = None,
    ) -> List[FeeShare]:
        """
        Fees earned per pool and each pool's share of the wallet's total.

        Pools where the wallet holds positions are included even at zero
        fees; if every pool is at zero, every share is 0.
        """
        scanned, by_pool, _ = self._collect_positions(user_address, pool_addresses)
        # attribute each position to the pool it was fetched for
        positions = [
            p if p.pool_address == pool else replace(p, pool_address=pool)
            for pool in scanned
            for p in by_pool.get(pool, [])
        ]
        totals, shares = aggregate_fee_shares(positions)

        result = []
        for i, pool in enumerate(scanned):
            if not by_pool.get(pool):
                continue
            result.append(
                FeeShare(
                    pool_address=pool,
                    pool_name=self._pool_name(pool),
                    fees_earned=totals[pool],
                    share=shares[pool],
                    color=CHART_COLORS[i % len(CHART_COLORS)],
                )
            )
        return result

    def get_portfolio_summary(
        self,
        user_address: str,
        pool_addresses: Optional[List[str]] = None,
    ) -> PortfolioSummary:
        """Position counts and unpriced fee totals across pools."""
        scanned, by_pool, failed = self._collect_positions(user_address, pool_addresses)
        positions_by_pool = {pool: len(by_pool[pool]) for pool in scanned if by_pool.get(pool)}
        all_positions = [p for pool in scanned for p in by_pool.get(pool, [])]

        return PortfolioSummary(
            user_address=normalize_address(user_address, "wallet address"),
            active_positions=len(all_positions),
            total_fees_earned=sum(p.fees_total for p in all_positions),
            positions_by_pool=positions_by_pool,
            failed_pools=failed,
            last_updated=datetime.utcnow(),
        )

    def get_stats(self) -> Dict[str, Any]:
        stats = {"cache": self._cache.get_stats()}
        if self._coalescer is not None:
            stats["coalescer"] = self._coalescer.get_stats()
        return stats

    def close(self) -> None:
        """Release the provider-call thread pool."""
        if self._executor is not None:
            self._executor.shutdown(wait=False)


def _whole_number(value: Any, label: str) -> int:
    # bools are ints in Python; reject them with the other non-integers
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{label} must be an integer, got {value!r}")
    return value


def _bin_at(bin_array: BinArray, bin_id: int) -> Optional[BinReserve]:
    offset = bin_offset(bin_id, bin_array.result_index)
    if 0 <= offset < len(bin_array.bins):
        return bin_array.bins[offset]
    return None
