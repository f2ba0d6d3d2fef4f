"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # DLMM data gateway (wraps the pool SDK)
    provider_base_url: str = "http://localhost:8787"
    rpc_url: str = "https://api.mainnet-beta.solana.com"

    # Provider calls
    provider_timeout_seconds: float = 10.0
    provider_max_retries: int = 2
    provider_backoff_factor: float = 0.2
    provider_max_workers: int = 8
    # Bound on a whole provider call, retries included; None derives it from the timeout and retry settings
    provider_call_budget_seconds: Optional[float] = None

    # Cache settings
    coalesce_timeout_seconds: float = 30.0
    cache_max_entries: Optional[int] = None  # None = unbounded

    # Dashboard defaults
    bin_range: int = 50
    pool_scan_limit: int = 5

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
