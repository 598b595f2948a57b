"""
Shared configuration management for the worker cache layer.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkerCacheConfig(BaseSettings):
    """Base configuration with common settings.

    Every field can be overridden from the environment with the
    ``WORKER_CACHE_`` prefix, e.g. ``WORKER_CACHE_API_BASE_URL``.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKER_CACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Companion API
    api_base_url: str = Field(default="http://localhost:8080")
    request_timeout: float = Field(default=10.0, gt=0)

    # Revalidation defaults (milliseconds)
    revalidate_interval_ms: int = Field(default=5 * 60 * 1000, ge=0)
    revalidate_on_focus: bool = Field(default=True)
    deduping_interval_ms: int = Field(default=2000, ge=0)
    max_age_ms: int = Field(default=5 * 60 * 1000, ge=0)

    # Branch data cache TTLs (milliseconds)
    payment_cache_ttl_ms: int = Field(default=5 * 60 * 1000, ge=0)
    worker_cache_ttl_ms: int = Field(default=10 * 60 * 1000, ge=0)
    timezone_cache_ttl_ms: int = Field(default=24 * 60 * 60 * 1000, ge=0)

    # Observability
    enable_metrics: bool = Field(default=False)


def get_config(**overrides) -> WorkerCacheConfig:
    """Build configuration from the environment plus explicit overrides."""
    return WorkerCacheConfig(**overrides)
