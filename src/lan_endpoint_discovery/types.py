"""
Type definitions for lan_endpoint_discovery
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Literal, Optional


Environment = Literal["development", "production"]

# "accept": a reachable router address is the answer.
# "confirm": a reachable router only marks its subnet live for the shortlist.
RouterPolicy = Literal["accept", "confirm"]

# "promote": re-confirming a known address moves it to the front.
# "keep": re-confirming a known address leaves the order untouched.
FallbackPolicy = Literal["promote", "keep"]


class ScanStage(str, Enum):
    """Subnet scanner stages, in the order they run."""

    ROUTER = "router"
    SHORTLIST = "shortlist"
    SWEEP = "sweep"


class DetectorState(str, Enum):
    """States of the IP detector."""

    CACHED = "cached"
    DISCOVERING = "discovering"
    EXHAUSTED = "exhausted"


class AddressSource(str, Enum):
    """Where a resolved address came from."""

    CACHE = "cache"
    SCAN = "scan"
    FALLBACK = "fallback"
    SIMULATOR = "simulator"
    LAST_RESORT = "last_resort"
    MANUAL = "manual"


@dataclass(frozen=True)
class CacheEntry:
    """A cached address. Replaced wholesale, never mutated."""

    address: str
    """The resolved address"""

    resolved_at: float
    """Clock reading when the address was resolved"""


@dataclass(frozen=True)
class ScanCandidate:
    """An address the scanner will probe"""

    address: str
    """Candidate address"""

    rank: int
    """Probe order across the whole scan (lower runs first)"""

    stage: ScanStage
    """Stage that produced this candidate"""


@dataclass
class ProbeResult:
    """Outcome of a single reachability probe"""

    address: str
    reachable: bool
    elapsed_ms: float
    status_code: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "address": self.address,
            "reachable": self.reachable,
            "elapsed_ms": round(self.elapsed_ms, 2),
            "status_code": self.status_code,
            "error": self.error,
        }


@dataclass
class ScanResult:
    """A successful subnet scan"""

    address: str
    """The reachable address that won"""

    stage: ScanStage
    """Stage in which it was found"""

    probes: int
    """Number of probes that completed during the scan"""

    duration_seconds: float
    """Wall time of the scan"""


@dataclass
class DiscoveryResult:
    """Result of one IP detector resolution"""

    address: str
    source: AddressSource
    from_cache: bool
    duration_seconds: float = 0.0


@dataclass(frozen=True)
class ResolvedEndpoint:
    """Fully-qualified URLs derived from a resolved address"""

    graphql_url: str
    websocket_url: str
    rest_url: str
    address: Optional[str] = None
    """Address the URLs were built from, None for static production URLs"""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "address": self.address,
            "graphql_url": self.graphql_url,
            "websocket_url": self.websocket_url,
            "rest_url": self.rest_url,
        }


@dataclass
class DiscoveryConfig:
    """Configuration for endpoint discovery"""

    environment: Environment = "development"
    """Build environment. Production uses the static URLs below."""

    port: int = 4000
    """Port the backend service listens on"""

    graphql_path: str = "/graphql"
    """Path of the GraphQL endpoint (also probed for reachability)"""

    probe_timeout_seconds: float = 0.8
    """Deadline for a single probe"""

    cache_ttl_seconds: float = 300.0
    """Lifetime of a cached address. Default: 300.0 (5 minutes)"""

    subnet_prefixes: list[str] = field(default_factory=list)
    """Ordered subnet prefixes to scan, e.g. "192.168.1". Empty: defaults"""

    router_suffix: int = 1
    """Host suffix of the presumed gateway"""

    shortlist_suffixes: list[int] = field(default_factory=list)
    """Common developer host suffixes. Empty: defaults (100-120)"""

    sweep_start: int = 1
    sweep_end: int = 254
    """Inclusive host range of the full sweep"""

    scan_concurrency: int = 8
    """Probes in flight per stage. 1 probes strictly sequentially"""

    router_policy: RouterPolicy = "accept"

    fallback_addresses: Optional[list[str]] = None
    """Seed for the fallback list. None: defaults"""

    fallback_cap: int = 5
    fallback_policy: FallbackPolicy = "promote"

    fallback_file: Optional[str] = None
    """YAML/JSON file the fallback list is loaded from and saved to"""

    is_simulator: bool = False
    """Running in a simulator/emulator on the developer machine"""

    simulator_address: str = "localhost"
    last_resort_address: str = "192.168.1.100"

    production_graphql_url: str = "https://your-production-server.com/graphql"
    production_websocket_url: str = "wss://your-production-server.com/graphql"
    production_rest_url: str = "https://your-production-server.com"


EventType = Literal[
    "cache:hit",
    "cache:miss",
    "scan:start",
    "scan:found",
    "scan:exhausted",
    "fallback:found",
    "discovery:exhausted",
    "discovery:error",
    "resolve:memo",
    "resolve:refresh",
]


@dataclass
class DiscoveryEvent:
    """Event emitted by the detector and resolver"""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


DiscoveryEventListener = Callable[[DiscoveryEvent], None]

Clock = Callable[[], float]
