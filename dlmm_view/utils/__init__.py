from .helpers import InvalidAddressError, normalize_address, safe_float, short_address

__all__ = ["InvalidAddressError", "normalize_address", "safe_float", "short_address"]
