"""
Shared configuration management for the analytics query proxy.
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="PROXY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Cache store
    mongo_uri: str = Field(default="mongodb://localhost:27017/analytics-cache")
    mongo_database: str = Field(default="analytics-cache")
    cache_collection: str = Field(default="cache")
    cache_ttl_seconds: int = Field(default=600, gt=0)
    mongo_timeout_ms: int = Field(default=5000, gt=0)

    # Upstream analytics API
    upstream_url: str = Field(default="https://api.keen.io")
    upstream_timeout_seconds: float = Field(default=30.0, gt=0)

    # Browser origins allowed to query the proxy
    allowed_origins: List[str] = Field(default_factory=list)

    # Scoped key secrets
    public_key: str = Field(default="")
    master_key: str = Field(default="")

    @field_validator("upstream_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int = 5000
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, **kwargs):
        super().__init__(service_name=service_name, **kwargs)


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service.

    Keyword overrides take precedence over ``PROXY_*`` environment variables.
    """
    return ServiceConfig(service_name=service_name, **overrides)
