"""
Shared configuration management for the edge gateway.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigurationError


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="EDGE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment name")
    log_level: str = Field(default="info", description="Log level for structlog and stdlib logging")

    # Bind address
    host: str = "0.0.0.0"
    port: int = 8000


class EdgeSettings(BaseConfig):
    """Edge gateway settings.

    Instances are immutable; request handlers receive them through a
    per-request context rather than reading module globals.
    """

    # Admin API
    admin_key: Optional[str] = Field(default=None, description="Bearer secret for /admin/api")

    # Backing stores
    redis_url: str = Field(default="redis://localhost:6379/0", description="DecisionCache")
    postgres_dsn: str = Field(default="postgres://localhost:5432/edge", description="RecordStore")

    # Admission cache TTLs
    valid_ttl_floor_seconds: int = Field(default=60, ge=1)
    invalid_ttl_seconds: int = Field(default=3600, ge=1)

    # Cache invalidation after admin mutations
    invalidation_attempts: int = Field(default=3, ge=1)
    invalidation_base_delay: float = Field(default=0.05, ge=0.0)

    # Passthrough upstreams
    doh_upstream_url: str = "https://1.1.1.1/dns-query"
    fallback_domain: str = "www.google.com"
    geolocation_url: str = "http://ip-api.com/json/{ip}"
    upstream_timeout_seconds: float = Field(default=10.0, gt=0)

    # Tunnel
    proxy_ip: Optional[str] = Field(default=None, description="Tunnel-exit identity shown on /info")
    tunnel_upstream_url: str = "ws://localhost:10000"

    def missing_required(self) -> List[str]:
        """Names of required settings that are unset or blank."""
        missing = []
        if not (self.admin_key or "").strip():
            missing.append("admin_key")
        return missing

    def ensure_complete(self) -> "EdgeSettings":
        """Raise ConfigurationError when a required setting is missing."""
        missing = self.missing_required()
        if missing:
            raise ConfigurationError(
                f"Missing required settings: {', '.join(missing)}",
                details={"missing": missing, "env_prefix": "EDGE_"},
            )
        return self


def get_config(**overrides) -> EdgeSettings:
    """Load settings from the environment, applying explicit overrides."""
    return EdgeSettings(**overrides)
