"""
Pure numeric helpers for DLMM pools: bin pricing, bin-array indexing,
token amount scaling and fee-share aggregation.
"""
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Tuple

from dlmm_view.models import UserPosition

# Bins per on-chain bin array
BINS_PER_ARRAY = 256

# Basis-point denominator for bin steps (25 bps = 0.25%)
BASIS_POINTS = 10_000

# On-chain bin ids are offset so that bin 2^23 prices at exactly 1 (raw units)
BIN_ID_OFFSET = 2 ** 23

# Chart palette for fee distribution, cycled by pool order
CHART_COLORS = [
    "#8884d8", "#82ca9d", "#ffc658", "#ff7c7c", "#8dd1e1",
    "#d084d0", "#ffb347", "#87ceeb", "#dda0dd", "#98fb98",
]


def bin_price_multiplier(bin_id: int, active_bin: int, bin_step: int) -> float:
    """
    Price ratio between ``bin_id`` and the active bin.

    ``(1 + bin_step / 10000) ** (bin_id - active_bin)``; a zero bin step
    prices every bin the same.
    """
    if bin_step == 0:
        return 1.0
    return (1 + bin_step / BASIS_POINTS) ** (bin_id - active_bin)


def bin_price(current_price: float, bin_id: int, active_bin: int, bin_step: int) -> float:
    """Price of ``bin_id`` given the market price at the active bin."""
    return current_price * bin_price_multiplier(bin_id, active_bin, bin_step)


def price_from_bin_id(bin_id: int, bin_step: int, base_decimals: int, quote_decimals: int) -> float:
    """
    Quote-per-base price implied by a bin id alone, in token units.

    Raises:
        OverflowError: If the id sits too far from the offset to price
    """
    raw = bin_price_multiplier(bin_id, BIN_ID_OFFSET, bin_step)
    return raw * 10 ** (base_decimals - quote_decimals)


def bin_array_index(bin_id: int) -> int:
    """Index of the bin array holding ``bin_id`` (floors for negative ids)."""
    return bin_id // BINS_PER_ARRAY


def bin_offset(bin_id: int, array_index: int) -> int:
    """Position of ``bin_id`` inside bin array ``array_index``."""
    return bin_id - array_index * BINS_PER_ARRAY


def to_ui_amount(raw_amount: float, decimals: int) -> float:
    """Convert a raw on-chain amount to token units (1_000_000 @ 6 decimals -> 1.0)."""
    return raw_amount / (10 ** decimals)


def aggregate_fee_shares(
    positions: Iterable[UserPosition],
    value_fn: Callable[[UserPosition], float] = lambda p: p.fees_total,
) -> Tuple[Dict[str, float], Dict[str, float]]:
    """
    Group positions by pool, sum ``value_fn`` per pool and compute shares.

    Args:
        positions: Positions across any number of pools
        value_fn: Numeric field to sum per position

    Returns:
        (totals_by_pool, share_by_pool); shares are fractions in [0, 1] and
        are all 0 when the grand total is 0. Pool order follows first
        appearance.
    """
    totals: Dict[str, float] = defaultdict(float)
    for position in positions:
        totals[position.pool_address] += value_fn(position)

    grand_total = sum(totals.values())
    shares = {
        pool: (pool_sum / grand_total) if grand_total != 0 else 0.0
        for pool, pool_sum in totals.items()
    }
    return dict(totals), shares


def bin_ids_around(active_bin: int, bin_range: int) -> List[int]:
    """Bin ids from ``active_bin - bin_range`` to ``active_bin + bin_range`` inclusive."""
    return list(range(active_bin - bin_range, active_bin + bin_range + 1))
