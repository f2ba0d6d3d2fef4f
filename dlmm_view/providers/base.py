"""
Pool data provider interface and error taxonomy.

The provider is the only thing in the data path that does network I/O. All
of its operations are read-only, so callers may retry them freely.
"""
from typing import Protocol, List, TYPE_CHECKING

if TYPE_CHECKING:
    from dlmm_view.models import PoolMetadata, QuoteResult, PairState, BinArray, UserPosition


class ProviderError(Exception):
    """The upstream pool data source failed (network, node or gateway error)."""


class ProviderTimeoutError(ProviderError, TimeoutError):
    """A provider call did not finish within its time budget."""


class PoolNotFoundError(ProviderError):
    """The provider does not know the requested pool or account."""


class MalformedResponseError(ProviderError):
    """The provider answered, but not in the expected shape."""


class PoolDataProvider(Protocol):
    """
    Interface for DLMM pool data sources.

    Implementations:
    - HTTPPoolDataProvider: JSON gateway in front of the DLMM SDK (current)
    - Test fakes: in-memory, call-counting
    """

    def fetch_pool_addresses(self) -> List[str]:
        """List known pool addresses."""
        ...

    def fetch_metadata(self, pool_address: str) -> "PoolMetadata":
        """
        Get static pool configuration.

        Raises:
            PoolNotFoundError: If the address is not a known pool
        """
        ...

    def fetch_quote(
        self,
        amount: int,
        metadata: "PoolMetadata",
        is_exact_input: bool,
        swap_for_y: bool,
        slippage: float,
    ) -> "QuoteResult":
        """Quote a swap of ``amount`` raw units against the pool described by ``metadata``."""
        ...

    def fetch_pair_state(self, pool_address: str) -> "PairState":
        """Get the pair's active bin and bin step."""
        ...

    def fetch_bin_array(self, pool_address: str, bin_array_index: int) -> "BinArray":
        """Get reserves for the 256 bins in one bin array."""
        ...

    def fetch_user_positions(self, user_address: str, pool_address: str) -> List["UserPosition"]:
        """Get a wallet's liquidity positions in one pool."""
        ...
