"""
Data models for DLMM pool data.

One dataclass per data category, so every cache namespace holds a known
shape. ``from_dict`` parses the provider's JSON and raises
MalformedResponseError when a required field is missing or ill-typed.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any

from dlmm_view.providers.base import MalformedResponseError
from dlmm_view.utils.helpers import safe_float


def _require(data: Any, key: str, kind: str) -> Any:
    if not isinstance(data, dict):
        raise MalformedResponseError(f"Expected an object while reading {kind}, got {type(data).__name__}")
    if key not in data or data[key] is None:
        raise MalformedResponseError(f"Missing '{key}' in {kind}")
    return data[key]


def _require_int(data: Any, key: str, kind: str) -> int:
    value = _require(data, key, kind)
    # bools are ints in Python; reject them explicitly
    if isinstance(value, bool):
        raise MalformedResponseError(f"'{key}' in {kind} must be an integer")
    try:
        return int(value)
    except (ValueError, TypeError):
        raise MalformedResponseError(f"'{key}' in {kind} must be an integer, got {value!r}")


def _require_float(data: Any, key: str, kind: str) -> float:
    value = _require(data, key, kind)
    if isinstance(value, bool):
        raise MalformedResponseError(f"'{key}' in {kind} must be numeric")
    try:
        return float(value)
    except (ValueError, TypeError):
        raise MalformedResponseError(f"'{key}' in {kind} must be numeric, got {value!r}")


# =============================================================================
# Provider payloads
# =============================================================================

@dataclass(frozen=True)
class TokenInfo:
    """One side of a pool."""
    mint: str
    decimals: int
    symbol: Optional[str] = None


@dataclass(frozen=True)
class PoolMetadata:
    """Static pool configuration plus current reserves (raw units)."""
    pool_address: str
    base: TokenInfo
    quote: TokenInfo
    base_reserve: float
    quote_reserve: float
    trade_fee: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolMetadata":
        kind = "pool metadata"
        extra = _require(data, "extra", kind)
        return cls(
            pool_address=str(_require(data, "poolAddress", kind)),
            base=TokenInfo(
                mint=str(_require(data, "baseMint", kind)),
                decimals=_require_int(extra, "tokenBaseDecimal", kind),
                symbol=data.get("baseSymbol"),
            ),
            quote=TokenInfo(
                mint=str(_require(data, "quoteMint", kind)),
                decimals=_require_int(extra, "tokenQuoteDecimal", kind),
                symbol=data.get("quoteSymbol"),
            ),
            base_reserve=_require_float(data, "baseReserve", kind),
            quote_reserve=_require_float(data, "quoteReserve", kind),
            trade_fee=safe_float(data.get("tradeFee"), None),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Provider-shaped payload, the inverse of ``from_dict``."""
        return {
            "poolAddress": self.pool_address,
            "baseMint": self.base.mint,
            "quoteMint": self.quote.mint,
            "baseSymbol": self.base.symbol,
            "quoteSymbol": self.quote.symbol,
            "baseReserve": self.base_reserve,
            "quoteReserve": self.quote_reserve,
            "tradeFee": self.trade_fee,
            "extra": {
                "tokenBaseDecimal": self.base.decimals,
                "tokenQuoteDecimal": self.quote.decimals,
            },
        }


@dataclass(frozen=True)
class QuoteResult:
    """Swap quote in raw token units."""
    amount_in: int
    amount_out: int
    price_impact: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuoteResult":
        kind = "quote"
        return cls(
            amount_in=_require_int(data, "amountIn", kind),
            amount_out=_require_int(data, "amountOut", kind),
            price_impact=safe_float(data.get("priceImpact"), None),
        )


@dataclass(frozen=True)
class PairState:
    """Live pair account state."""
    active_bin: int
    bin_step: int  # basis points, 25 = 0.25%

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PairState":
        kind = "pair state"
        bin_step = _require_int(data, "binStep", kind)
        if bin_step < 0:
            raise MalformedResponseError(f"'binStep' in {kind} must not be negative, got {bin_step}")
        return cls(
            active_bin=_require_int(data, "activeBin", kind),
            bin_step=bin_step,
        )


@dataclass(frozen=True)
class BinReserve:
    """Reserves held in one bin (raw units)."""
    reserve_x: float
    reserve_y: float


@dataclass(frozen=True)
class BinArray:
    """A block of consecutive bins; bin ``result_index * 256 + i`` is ``bins[i]``."""
    result_index: int
    bins: List[BinReserve]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BinArray":
        kind = "bin array"
        raw_bins = _require(data, "bins", kind)
        if not isinstance(raw_bins, list):
            raise MalformedResponseError(f"'bins' in {kind} must be a list")
        return cls(
            result_index=_require_int(data, "resultIndex", kind),
            bins=[
                BinReserve(
                    reserve_x=_require_float(b, "reserveX", "bin"),
                    reserve_y=_require_float(b, "reserveY", "bin"),
                )
                for b in raw_bins
            ],
        )


@dataclass(frozen=True)
class UserPosition:
    """A wallet's liquidity position in one pool (human-readable amounts)."""
    position_id: str
    pool_address: str
    lower_bin_id: int
    upper_bin_id: int
    token_x_amount: float = 0.0
    token_y_amount: float = 0.0
    fees_x: float = 0.0
    fees_y: float = 0.0

    @property
    def fees_total(self) -> float:
        """Unpriced sum of both fee legs."""
        return self.fees_x + self.fees_y

    @classmethod
    def from_dict(cls, data: Dict[str, Any], pool_address: Optional[str] = None) -> "UserPosition":
        kind = "position"
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Expected an object while reading {kind}, got {type(data).__name__}")
        fees = data.get("feesEarned") or {}
        if not isinstance(fees, dict):
            raise MalformedResponseError(f"'feesEarned' in {kind} must be an object, got {fees!r}")
        pool = data.get("pair") or pool_address
        if not pool:
            raise MalformedResponseError(f"Missing 'pair' in {kind}")
        return cls(
            position_id=str(_require(data, "positionMint", kind)),
            pool_address=str(pool),
            lower_bin_id=_require_int(data, "lowerBinId", kind),
            upper_bin_id=_require_int(data, "upperBinId", kind),
            token_x_amount=safe_float(data.get("tokenXAmount"), None) or 0.0,
            token_y_amount=safe_float(data.get("tokenYAmount"), None) or 0.0,
            fees_x=safe_float(fees.get("tokenX"), None) or 0.0,
            fees_y=safe_float(fees.get("tokenY"), None) or 0.0,
        )


# =============================================================================
# Derived views
# =============================================================================

@dataclass
class PoolInfo:
    """
    Composite pool snapshot.

    Each field comes from its own cache entry, so fields may differ in age.
    """
    pool_address: str
    base: TokenInfo
    quote: TokenInfo
    base_reserve: float
    quote_reserve: float
    active_bin: int
    bin_step: int
    current_price: Optional[float]
    active_bin_reserve: Optional[BinReserve] = None


@dataclass
class BinLiquidity:
    """One bar of the liquidity distribution chart."""
    bin_id: int
    price: float
    reserve_x: float
    reserve_y: float
    total_liquidity: float  # quote-token terms
    is_active: bool


@dataclass
class FeeShare:
    """Fees earned in one pool and that pool's share of the total."""
    pool_address: str
    pool_name: str
    fees_earned: float
    share: float
    color: str

    @property
    def percentage(self) -> float:
        return self.share * 100


@dataclass
class PortfolioSummary:
    """Position counts and fee totals across pools for one wallet."""
    user_address: str
    active_positions: int
    total_fees_earned: float
    positions_by_pool: Dict[str, int] = field(default_factory=dict)
    failed_pools: List[str] = field(default_factory=list)
    last_updated: datetime = field(default_factory=datetime.utcnow)
