"""
Shared configuration management for the catalog access layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


MANIFEST_PATH = "/api/static-data/manifest"

PRODUCTION_MANIFEST_TTL_MS = 60 * 60 * 1000
DEVELOPMENT_MANIFEST_TTL_MS = 60 * 1000


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CATALOG_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Primary datastore
    postgres_dsn: str = Field(default="postgres://localhost:5432/catalog")
    datastore_timeout_seconds: float = Field(default=30.0)

    # Remote manifest
    site_base_url: Optional[str] = Field(default=None)
    manifest_ttl_ms: Optional[int] = Field(default=None, ge=0)
    manifest_fetch_timeout_seconds: float = Field(default=10.0)
    manifest_fetch_attempts: int = Field(default=2, ge=1)

    # Manifest endpoint CDN headers
    manifest_cdn_max_age: int = Field(default=3600)
    manifest_cdn_s_maxage: int = Field(default=86400)

    # Object storage (string construction only)
    storage_base_url: str = Field(default="http://localhost:54321")
    storage_bucket: str = Field(default="product-images")

    @property
    def is_production(self) -> bool:
        return self.env.lower() in ("production", "prod")

    @property
    def effective_manifest_ttl_ms(self) -> int:
        """Manifest TTL, defaulting to a longer window in production."""
        if self.manifest_ttl_ms is not None:
            return self.manifest_ttl_ms
        if self.is_production:
            return PRODUCTION_MANIFEST_TTL_MS
        return DEVELOPMENT_MANIFEST_TTL_MS

    @property
    def manifest_url(self) -> str:
        """Absolute manifest URL when a site base URL is known, else the relative path."""
        if self.site_base_url:
            return f"{self.site_base_url.rstrip('/')}{MANIFEST_PATH}"
        return MANIFEST_PATH


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
