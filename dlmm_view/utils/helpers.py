"""
Utility helper functions for safe data handling.
"""
import re
from typing import Any, Optional

# Solana public keys: 32 bytes, base58 (no 0, O, I or l), 32-44 characters
_BASE58_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


class InvalidAddressError(ValueError):
    """Raised when a pool or wallet address is not a valid base58 public key."""


def safe_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """Safely convert value to float, handling None and invalid values."""
    if value is None:
        return default
    try:
        return float(value)
    except (ValueError, TypeError):
        return default


def normalize_address(value: Any, label: str = "address") -> str:
    """
    Validate and normalize a base58 public key string.

    Surrounding whitespace is stripped; case is preserved since base58 is
    case-sensitive.

    Args:
        value: Raw address from the caller
        label: Name used in the error message ("pool address", "wallet", ...)

    Returns:
        The normalized address

    Raises:
        InvalidAddressError: If the value is not a plausible public key
    """
    if value is None:
        raise InvalidAddressError(f"{label} is required")
    text = str(value).strip()
    if not _BASE58_ADDRESS.match(text):
        raise InvalidAddressError(f"Invalid {label}: {text!r}")
    return text


def short_address(address: str, length: int = 8) -> str:
    """Abbreviate an address for display, e.g. 'Pool 9P3N4Qxj...'."""
    if len(address) <= length:
        return address
    return f"{address[:length]}..."
