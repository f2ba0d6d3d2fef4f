"""
DLMM View - Main FastAPI Application
Pool, bin, portfolio and fee data served through a tiered TTL cache
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from dlmm_view.cache import TieredCache, RequestCoalescer
from dlmm_view.pool_data import PoolDataService
from dlmm_view.providers.base import ProviderError, PoolNotFoundError
from dlmm_view.providers.http_provider import HTTPPoolDataProvider
from dlmm_view.schemas import (
    ApiResponse,
    PoolMetricsOut,
    BinLiquidityOut,
    FeeDistributionOut,
    PortfolioOut,
    CacheStatsOut,
)
from dlmm_view.utils.helpers import InvalidAddressError

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger("api")

# Version tracking
APP_VERSION = "v0.1.0"
APP_NAME = "DLMM View"


def build_service() -> PoolDataService:
    """Wire the HTTP provider, cache and coalescer from settings."""
    provider = HTTPPoolDataProvider(
        base_url=settings.provider_base_url,
        rpc_url=settings.rpc_url,
        timeout=settings.provider_timeout_seconds,
        max_retries=settings.provider_max_retries,
        backoff_factor=settings.provider_backoff_factor,
    )
    return PoolDataService(
        provider=provider,
        cache=TieredCache(max_entries=settings.cache_max_entries),
        coalescer=RequestCoalescer(timeout=settings.coalesce_timeout_seconds),
        timeout_seconds=settings.provider_call_budget_seconds or provider.call_budget_seconds(),
        pool_scan_limit=settings.pool_scan_limit,
        max_workers=settings.provider_max_workers,
    )


def _error_response(e: Exception, what: str) -> JSONResponse:
    """Map a failure onto a status code inside the standard envelope."""
    if isinstance(e, InvalidAddressError):
        status = 400
    elif isinstance(e, PoolNotFoundError):
        status = 404
    elif isinstance(e, TimeoutError):
        status = 504
    elif isinstance(e, ProviderError):
        status = 502
    elif isinstance(e, ValueError):
        status = 400
    else:
        status = 500

    if status >= 500:
        logger.error(f"{what} failed: {type(e).__name__}: {e}", exc_info=status == 500)
    message = str(e) or f"Failed to fetch {what}"
    body = ApiResponse(success=False, data=None, message=message)
    return JSONResponse(status_code=status, content=body.model_dump())


def create_app(service: Optional[PoolDataService] = None) -> FastAPI:
    """
    Build the application around one PoolDataService.

    The service (and the cache it owns) lives as long as the app; pass one
    in to control the provider and cache, e.g. in tests.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        app.state.pool_data.close()

    app = FastAPI(
        title=APP_NAME,
        description="Saros DLMM pool analytics backed by a tiered TTL cache",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.pool_data = service or build_service()

    def pool_data(request: Request) -> PoolDataService:
        return request.app.state.pool_data

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok", "source": "dlmm-gateway"}

    @app.get("/version")
    def version_info():
        """Version information endpoint."""
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "full": f"{APP_NAME} {APP_VERSION}",
        }

    @app.get("/cache/stats", response_model=CacheStatsOut)
    def cache_stats(request: Request):
        """Get cache statistics."""
        return pool_data(request).get_stats()

    @app.post("/cache/clear")
    def cache_clear(request: Request):
        """Drop every cached entry."""
        return {"cleared": pool_data(request).cache.clear()}

    # ===== POOLS =====

    @app.get("/api/pool/{pool_address}", response_model=ApiResponse[PoolMetricsOut])
    def get_pool(pool_address: str, request: Request):
        """Pool snapshot: tokens, reserves, active bin, bin step and current price."""
        logger.info(f"Pool API called for: {pool_address}")
        try:
            info = pool_data(request).get_pool_info(pool_address)
        except Exception as e:
            return _error_response(e, "pool data")
        return ApiResponse(success=True, data=PoolMetricsOut.from_pool_info(info))

    @app.get("/api/pool/{pool_address}/bins", response_model=ApiResponse[list[BinLiquidityOut]])
    def get_pool_bins(
        pool_address: str,
        request: Request,
        bin_range: int = Query(default=settings.bin_range, alias="range", ge=0, le=500),
    ):
        """
        Liquidity per bin around the active bin.

        Provider failures degrade to an empty list so the chart renders empty
        instead of erroring; a malformed address is still a 400.
        """
        try:
            bins = pool_data(request).get_bin_liquidity(pool_address, bin_range=bin_range)
        except InvalidAddressError as e:
            return _error_response(e, "bin liquidity")
        except Exception as e:
            logger.warning(f"Failed to fetch bin liquidity for {pool_address}: {e}")
            return ApiResponse(success=True, data=[], message="Bin liquidity unavailable")
        return ApiResponse(success=True, data=[BinLiquidityOut.model_validate(b) for b in bins])

    # ===== WALLETS =====

    @app.get("/api/portfolio/{pubkey}", response_model=ApiResponse[PortfolioOut])
    def get_portfolio(pubkey: str, request: Request):
        """Position counts and fee totals across the scanned pools."""
        logger.info(f"Portfolio API called for: {pubkey}")
        try:
            summary = pool_data(request).get_portfolio_summary(pubkey)
        except Exception as e:
            return _error_response(e, "portfolio data")
        return ApiResponse(success=True, data=PortfolioOut.model_validate(summary))

    @app.get("/api/fees/{pubkey}", response_model=ApiResponse[list[FeeDistributionOut]])
    def get_fees(pubkey: str, request: Request):
        """Fee distribution across pools for a wallet."""
        logger.info(f"Fees API called for: {pubkey}")
        try:
            shares = pool_data(request).get_fee_distribution(pubkey)
        except Exception as e:
            return _error_response(e, "fee data")
        return ApiResponse(
            success=True,
            data=[FeeDistributionOut.model_validate(s) for s in shares],
        )

    return app


app = create_app()
