"""
HTTP pool data provider.

Talks to a JSON gateway that wraps the DLMM SDK (pool metadata, quotes,
pair accounts, bin arrays, user positions) and maps transport failures
onto the provider error taxonomy.
"""
import logging
from typing import Optional, List, Dict, Any

import requests
from tenacity import (
    Retrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from dlmm_view.models import PoolMetadata, QuoteResult, PairState, BinArray, UserPosition
from .base import ProviderError, ProviderTimeoutError, PoolNotFoundError, MalformedResponseError

logger = logging.getLogger("providers.http")


# Gateway statuses worth another attempt
RETRYABLE_STATUSES = (429, 500, 502, 503, 504)

# Ceiling on a single backoff wait, in seconds
MAX_BACKOFF_SECONDS = 5


class GatewayUnavailableError(ProviderError):
    """Transient gateway failure (connection error, 429 or 5xx); retried with backoff."""


class HTTPPoolDataProvider:
    """
    PoolDataProvider backed by a DLMM data gateway.

    Every endpoint is a read, so all of them (the quote POST included) are
    retried with exponential backoff on timeouts and transient gateway errors.

    Endpoints:
        GET  /pools
        GET  /pools/{pool}/metadata
        POST /pools/{pool}/quote
        GET  /pools/{pool}/pair
        GET  /pools/{pool}/bin-arrays/{index}
        GET  /users/{user}/positions?pair={pool}
    """

    def __init__(
        self,
        base_url: str,
        rpc_url: Optional[str] = None,
        timeout: float = 10.0,
        max_retries: int = 2,
        backoff_factor: float = 0.2,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            base_url: Gateway root URL
            rpc_url: Solana RPC endpoint the gateway should use, forwarded as a header
            timeout: Per-request timeout in seconds
            max_retries: Extra attempts after the first for transient failures
            backoff_factor: Multiplier for the exponential wait between attempts
            session: Preconfigured session (defaults to a new requests.Session)
        """
        self._base_url = base_url.rstrip("/")
        self._rpc_url = rpc_url
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff_factor = backoff_factor
        self._session = session or requests.Session()
        self._retrying = Retrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_exponential(multiplier=backoff_factor, max=MAX_BACKOFF_SECONDS),
            retry=retry_if_exception_type((ProviderTimeoutError, GatewayUnavailableError)),
            reraise=True,
        )

    def call_budget_seconds(self) -> float:
        """
        Longest one fetch can take: every attempt running to its timeout plus
        every backoff wait in between. Callers that bound a fetch should allow
        at least this much, or retries are cut off.
        """
        attempts = self._max_retries + 1
        waits = sum(
            min(self._backoff_factor * 2 ** n, MAX_BACKOFF_SECONDS)
            for n in range(self._max_retries)
        )
        return attempts * self._timeout + waits

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._rpc_url:
            headers["x-rpc-url"] = self._rpc_url
        return headers

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        # copy() gives each call its own retry state
        return self._retrying.copy()(self._send, method, path, **kwargs)

    def _send(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(
                method,
                url,
                headers=self._headers(),
                timeout=self._timeout,
                **kwargs,
            )
        except requests.Timeout as e:
            logger.warning(f"Gateway timeout: {method} {path}")
            raise ProviderTimeoutError(f"{method} {path} timed out after {self._timeout}s") from e
        except requests.RequestException as e:
            logger.warning(f"Gateway request failed: {method} {path} - {e}")
            raise GatewayUnavailableError(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            raise PoolNotFoundError(f"Not found: {path}")
        if response.status_code in RETRYABLE_STATUSES:
            logger.warning(f"Gateway unavailable {response.status_code}: {method} {path}")
            raise GatewayUnavailableError(f"{method} {path} returned HTTP {response.status_code}")
        if response.status_code >= 400:
            logger.warning(f"Gateway error {response.status_code}: {method} {path}")
            raise ProviderError(f"{method} {path} returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"{method} {path} returned non-JSON body") from e

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("GET", path, params=params)

    # ===== PoolDataProvider =====

    def fetch_pool_addresses(self) -> List[str]:
        data = self._get("/pools")
        if not isinstance(data, list):
            raise MalformedResponseError("Pool list must be a JSON array")
        return [str(address) for address in data]

    def fetch_metadata(self, pool_address: str) -> PoolMetadata:
        return PoolMetadata.from_dict(self._get(f"/pools/{pool_address}/metadata"))

    def fetch_quote(
        self,
        amount: int,
        metadata: PoolMetadata,
        is_exact_input: bool,
        swap_for_y: bool,
        slippage: float,
    ) -> QuoteResult:
        body = {
            "amount": amount,
            "metadata": metadata.to_dict(),
            "optional": {
                "isExactInput": is_exact_input,
                "swapForY": swap_for_y,
                "slippage": slippage,
            },
        }
        data = self._request("POST", f"/pools/{metadata.pool_address}/quote", json=body)
        return QuoteResult.from_dict(data)

    def fetch_pair_state(self, pool_address: str) -> PairState:
        return PairState.from_dict(self._get(f"/pools/{pool_address}/pair"))

    def fetch_bin_array(self, pool_address: str, bin_array_index: int) -> BinArray:
        return BinArray.from_dict(self._get(f"/pools/{pool_address}/bin-arrays/{bin_array_index}"))

    def fetch_user_positions(self, user_address: str, pool_address: str) -> List[UserPosition]:
        data = self._get(f"/users/{user_address}/positions", params={"pair": pool_address})
        if not isinstance(data, list):
            raise MalformedResponseError("Position list must be a JSON array")
        return [UserPosition.from_dict(item, pool_address=pool_address) for item in data]

    def close(self) -> None:
        self._session.close()
