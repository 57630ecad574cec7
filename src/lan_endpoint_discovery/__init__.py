"""
Local-network endpoint discovery: finds the development backend's address,
caches it, and derives GraphQL/WebSocket/REST URLs from it.
"""
from .types import (
    AddressSource,
    CacheEntry,
    DetectorState,
    DiscoveryConfig,
    DiscoveryEvent,
    DiscoveryEventListener,
    DiscoveryResult,
    ProbeResult,
    ResolvedEndpoint,
    ScanCandidate,
    ScanResult,
    ScanStage,
)
from .errors import (
    DiscoveryError,
    InvalidAddressError,
    ResolverNotInitializedError,
)
from .config import (
    DEFAULT_FALLBACK_ADDRESSES,
    DEFAULT_SHORTLIST_SUFFIXES,
    DEFAULT_SUBNET_PREFIXES,
    LOCALHOST,
    build_address,
    is_valid_address,
    merge_config,
    validate_address,
)
from .prober import ReachabilityProber, build_probe_url
from .cache import AddressCache
from .fallback import FallbackList
from .scanner import SubnetScanner
from .singleflight import Singleflight, SingleflightResult
from .detector import IpDetector
from .resolver import EndpointResolver, build_endpoint
from .context import DiscoveryContext, create_discovery_context
from .settings import DiscoverySettings, get_settings


__all__ = [
    # Types
    "AddressSource",
    "CacheEntry",
    "DetectorState",
    "DiscoveryConfig",
    "DiscoveryEvent",
    "DiscoveryEventListener",
    "DiscoveryResult",
    "ProbeResult",
    "ResolvedEndpoint",
    "ScanCandidate",
    "ScanResult",
    "ScanStage",
    # Errors
    "DiscoveryError",
    "InvalidAddressError",
    "ResolverNotInitializedError",
    # Config
    "DEFAULT_FALLBACK_ADDRESSES",
    "DEFAULT_SHORTLIST_SUFFIXES",
    "DEFAULT_SUBNET_PREFIXES",
    "LOCALHOST",
    "build_address",
    "is_valid_address",
    "merge_config",
    "validate_address",
    # Components
    "ReachabilityProber",
    "build_probe_url",
    "AddressCache",
    "FallbackList",
    "SubnetScanner",
    "Singleflight",
    "SingleflightResult",
    "IpDetector",
    "EndpointResolver",
    "build_endpoint",
    # Context
    "DiscoveryContext",
    "create_discovery_context",
    # Settings
    "DiscoverySettings",
    "get_settings",
]


__version__ = "1.0.0"
