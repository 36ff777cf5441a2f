"""
Shared configuration management for the catalog cache service.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DAY = 24 * 60 * 60
HOUR = 60 * 60
MINUTE = 60


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CATALOG_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    key_prefix: str = Field(default="catalog")

    # Observability
    metrics_port: Optional[int] = Field(default=None)


class CatalogCacheConfig(BaseConfig):
    """Settings for the catalog warming pipeline and cache-aside reads."""

    # Origin catalog API
    origin_base_url: str = Field(default="https://phimapi.com")
    origin_timeout_seconds: float = Field(default=10.0)
    origin_sort_field: str = Field(default="_id")
    origin_sort_type: str = Field(default="asc")

    # Discovery
    discovery_page_size: int = Field(default=100)
    discovery_page_delay_seconds: float = Field(default=0.3)

    # Batch warming
    warm_batch_size: int = Field(default=10)
    warm_concurrency: int = Field(default=10)
    warm_batch_delay_seconds: float = Field(default=0.3)

    # Retry policy (linear: attempt x base delay)
    retry_attempts: int = Field(default=3)
    retry_base_delay_seconds: float = Field(default=1.0)

    # TTLs (seconds)
    ttl_taxonomy_seconds: int = Field(default=30 * DAY)
    ttl_new_entries_seconds: int = Field(default=6 * HOUR)
    ttl_series_seconds: int = Field(default=1 * HOUR)
    ttl_listing_seconds: int = Field(default=6 * HOUR)
    ttl_search_seconds: int = Field(default=15 * MINUTE)
    ttl_suggest_seconds: int = Field(default=15 * MINUTE)
    ttl_detail_seconds: int = Field(default=30 * DAY)
    ttl_ongoing_seconds: int = Field(default=1 * HOUR)
    ttl_discovery_page_seconds: int = Field(default=24 * HOUR)
    watermark_ttl_seconds: Optional[int] = Field(default=None)

    @property
    def origin_default_params(self) -> dict:
        """Query parameters sent with every origin request."""
        return {"sort_field": self.origin_sort_field, "sort_type": self.origin_sort_type}


def get_config(**overrides) -> CatalogCacheConfig:
    """Get configuration for the catalog cache service."""
    return CatalogCacheConfig(**overrides)
