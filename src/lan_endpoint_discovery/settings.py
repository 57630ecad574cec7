"""Discovery settings loaded from environment variables using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import DiscoveryConfig


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class DiscoverySettings(BaseSettings):
    """
    Settings read from LAN_DISCOVERY_* environment variables.

    List values are comma-separated, e.g.
    LAN_DISCOVERY_SUBNET_PREFIXES="192.168.10,192.168.1".
    """

    model_config = SettingsConfigDict(
        env_prefix="LAN_DISCOVERY_",
        case_sensitive=False,
        env_file=None,  # Use system env only
    )

    ENVIRONMENT: str = "development"

    # Backend service
    PORT: int = 4000
    GRAPHQL_PATH: str = "/graphql"

    # Discovery
    PROBE_TIMEOUT_SECONDS: float = 0.8
    CACHE_TTL_SECONDS: float = 300.0
    SUBNET_PREFIXES: str = ""
    SCAN_CONCURRENCY: int = 8
    ROUTER_POLICY: str = "accept"

    # Fallback list
    FALLBACK_ADDRESSES: Optional[str] = None
    FALLBACK_CAP: int = 5
    FALLBACK_POLICY: str = "promote"
    FALLBACK_FILE: Optional[str] = None

    # Last resort
    IS_SIMULATOR: bool = False
    SIMULATOR_ADDRESS: str = "localhost"
    LAST_RESORT_ADDRESS: str = "192.168.1.100"

    # Production
    PRODUCTION_GRAPHQL_URL: str = "https://your-production-server.com/graphql"
    PRODUCTION_WEBSOCKET_URL: str = "wss://your-production-server.com/graphql"
    PRODUCTION_REST_URL: str = "https://your-production-server.com"

    @field_validator("ENVIRONMENT", "ROUTER_POLICY", "FALLBACK_POLICY")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return value.strip().lower()

    def to_config(self) -> DiscoveryConfig:
        """Build the DiscoveryConfig these settings describe"""
        return DiscoveryConfig(
            environment=self.ENVIRONMENT,  # type: ignore[arg-type]
            port=self.PORT,
            graphql_path=self.GRAPHQL_PATH,
            probe_timeout_seconds=self.PROBE_TIMEOUT_SECONDS,
            cache_ttl_seconds=self.CACHE_TTL_SECONDS,
            subnet_prefixes=_split_csv(self.SUBNET_PREFIXES),
            scan_concurrency=self.SCAN_CONCURRENCY,
            router_policy=self.ROUTER_POLICY,  # type: ignore[arg-type]
            fallback_addresses=(
                _split_csv(self.FALLBACK_ADDRESSES)
                if self.FALLBACK_ADDRESSES is not None
                else None
            ),
            fallback_cap=self.FALLBACK_CAP,
            fallback_policy=self.FALLBACK_POLICY,  # type: ignore[arg-type]
            fallback_file=self.FALLBACK_FILE,
            is_simulator=self.IS_SIMULATOR,
            simulator_address=self.SIMULATOR_ADDRESS,
            last_resort_address=self.LAST_RESORT_ADDRESS,
            production_graphql_url=self.PRODUCTION_GRAPHQL_URL,
            production_websocket_url=self.PRODUCTION_WEBSOCKET_URL,
            production_rest_url=self.PRODUCTION_REST_URL,
        )


@lru_cache()
def get_settings() -> DiscoverySettings:
    """Get cached settings instance."""
    return DiscoverySettings()
