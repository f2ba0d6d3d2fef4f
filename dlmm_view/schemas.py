"""
Pydantic schemas for API responses.

Every route answers with the same envelope: ``success``, ``data`` and, on
failure, ``message``.
"""
from pydantic import BaseModel
from typing import Optional, List, Dict, Any, Generic, TypeVar
from datetime import datetime

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Response envelope shared by all /api routes"""
    success: bool
    data: Optional[T] = None
    message: Optional[str] = None


# ===== POOL SCHEMAS =====

class TokenOut(BaseModel):
    """One side of a pool"""
    mint: str
    decimals: int
    symbol: Optional[str] = None

    class Config:
        from_attributes = True


class ReservesOut(BaseModel):
    """Pool reserves in token units"""
    token_x: float
    token_y: float


class PoolMetricsOut(BaseModel):
    """Pool snapshot"""
    pool_address: str
    token_x: TokenOut
    token_y: TokenOut
    current_price: Optional[float] = None
    active_bin: int
    bin_step: int
    reserves: ReservesOut

    @classmethod
    def from_pool_info(cls, info) -> "PoolMetricsOut":
        return cls(
            pool_address=info.pool_address,
            token_x=TokenOut.model_validate(info.base),
            token_y=TokenOut.model_validate(info.quote),
            current_price=info.current_price,
            active_bin=info.active_bin,
            bin_step=info.bin_step,
            reserves=ReservesOut(token_x=info.base_reserve, token_y=info.quote_reserve),
        )


class BinLiquidityOut(BaseModel):
    """One bin of the liquidity distribution"""
    bin_id: int
    price: float
    reserve_x: float
    reserve_y: float
    total_liquidity: float
    is_active: bool

    class Config:
        from_attributes = True


# ===== WALLET SCHEMAS =====

class FeeDistributionOut(BaseModel):
    """Fees earned in one pool"""
    pool_address: str
    pool_name: str
    fees_earned: float
    percentage: float
    color: str

    class Config:
        from_attributes = True


class PortfolioOut(BaseModel):
    """Wallet-wide position summary"""
    user_address: str
    active_positions: int
    total_fees_earned: float
    positions_by_pool: Dict[str, int]
    failed_pools: List[str]
    last_updated: datetime

    class Config:
        from_attributes = True


class CacheStatsOut(BaseModel):
    """Cache and coalescer counters"""
    cache: Dict[str, Any]
    coalescer: Optional[Dict[str, Any]] = None
