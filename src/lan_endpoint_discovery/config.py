"""
Configuration utilities for lan_endpoint_discovery
"""
import re
from dataclasses import replace
from typing import Iterable, Optional

from .errors import InvalidAddressError
from .types import DiscoveryConfig


LOCALHOST = "localhost"

# Most recently used network first
DEFAULT_SUBNET_PREFIXES = [
    "192.168.10",
    "192.168.1",
    "192.168.0",
    "10.0.0",
    "172.16.0",
]

DEFAULT_SHORTLIST_SUFFIXES = list(range(100, 121))

DEFAULT_FALLBACK_ADDRESSES = [
    "192.168.10.116",
    "192.168.1.100",
    "192.168.0.100",
    "10.0.0.100",
    "172.16.0.100",
]

DEFAULT_PROBE_QUERY = "{ __typename }"

ROUTER_POLICIES = ("accept", "confirm")
FALLBACK_POLICIES = ("promote", "keep")
ENVIRONMENTS = ("development", "production")

_OCTET = r"(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)"
_ADDRESS_RE = re.compile(rf"^{_OCTET}(\.{_OCTET}){{3}}$")
_PREFIX_RE = re.compile(rf"^{_OCTET}(\.{_OCTET}){{2}}$")


def is_valid_address(address: object) -> bool:
    """Check that a value is a dotted-quad IPv4 address or 'localhost'"""
    if not isinstance(address, str):
        return False
    return address == LOCALHOST or _ADDRESS_RE.match(address) is not None


def validate_address(address: object) -> str:
    """Return the address unchanged, or raise InvalidAddressError"""
    if not is_valid_address(address):
        raise InvalidAddressError(address)
    return address  # type: ignore[return-value]


def is_valid_prefix(prefix: object) -> bool:
    """Check that a value is a three-octet subnet prefix like '192.168.1'"""
    return isinstance(prefix, str) and _PREFIX_RE.match(prefix) is not None


def is_valid_suffix(suffix: object) -> bool:
    """Check that a value is a usable host suffix (1-254)"""
    return isinstance(suffix, int) and not isinstance(suffix, bool) and 1 <= suffix <= 254


def build_address(prefix: str, suffix: int) -> str:
    """Join a subnet prefix and a host suffix"""
    return f"{prefix}.{suffix}"


def dedupe(values: Iterable[str]) -> list[str]:
    """Drop repeated values, keeping first occurrences in order"""
    seen: set[str] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def is_expired(resolved_at: float, ttl_seconds: float, now: float) -> bool:
    """An entry is valid while now - resolved_at < ttl"""
    return now - resolved_at >= ttl_seconds


def merge_config(config: Optional[DiscoveryConfig] = None) -> DiscoveryConfig:
    """
    Merge user config with defaults and validate it.

    Returns a new DiscoveryConfig; the argument is not modified.

    Raises:
        ValueError: if a value is out of range or a policy name is unknown
    """
    config = config or DiscoveryConfig()

    merged = replace(
        config,
        subnet_prefixes=dedupe(config.subnet_prefixes or DEFAULT_SUBNET_PREFIXES),
        shortlist_suffixes=list(dict.fromkeys(
            config.shortlist_suffixes or DEFAULT_SHORTLIST_SUFFIXES
        )),
        fallback_addresses=list(
            DEFAULT_FALLBACK_ADDRESSES
            if config.fallback_addresses is None
            else config.fallback_addresses
        ),
    )

    if merged.environment not in ENVIRONMENTS:
        raise ValueError(f"Unknown environment: {merged.environment!r}")
    if merged.router_policy not in ROUTER_POLICIES:
        raise ValueError(f"Unknown router policy: {merged.router_policy!r}")
    if merged.fallback_policy not in FALLBACK_POLICIES:
        raise ValueError(f"Unknown fallback policy: {merged.fallback_policy!r}")

    for prefix in merged.subnet_prefixes:
        if not is_valid_prefix(prefix):
            raise ValueError(f"Invalid subnet prefix: {prefix!r}")
    for suffix in [merged.router_suffix, *merged.shortlist_suffixes]:
        if not is_valid_suffix(suffix):
            raise ValueError(f"Invalid host suffix: {suffix!r}")
    if not (1 <= merged.sweep_start <= merged.sweep_end <= 254):
        raise ValueError(
            f"Invalid sweep range: {merged.sweep_start}-{merged.sweep_end}"
        )

    if not 0 < merged.port < 65536:
        raise ValueError(f"Invalid port: {merged.port}")
    if not merged.graphql_path.startswith("/"):
        raise ValueError(f"GraphQL path must start with '/': {merged.graphql_path!r}")
    if merged.probe_timeout_seconds <= 0:
        raise ValueError("probe_timeout_seconds must be positive")
    if merged.cache_ttl_seconds <= 0:
        raise ValueError("cache_ttl_seconds must be positive")
    if merged.scan_concurrency < 1:
        raise ValueError("scan_concurrency must be at least 1")
    if merged.fallback_cap < 1:
        raise ValueError("fallback_cap must be at least 1")

    validate_address(merged.simulator_address)
    validate_address(merged.last_resort_address)

    return merged
