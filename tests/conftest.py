"""Pytest configuration and fixtures for lan_endpoint_discovery tests."""
import asyncio
import time
from typing import Dict, Iterable, List, Optional

import pytest

from lan_endpoint_discovery import (
    AddressCache,
    DiscoveryConfig,
    FallbackList,
    IpDetector,
    ProbeResult,
    SubnetScanner,
)


class FakeProber:
    """
    Scripted prober: addresses in `reachable` answer, everything else fails.

    `delays` maps an address to the seconds its probe takes; cancelled
    probes are recorded in `cancelled`.
    """

    def __init__(
        self,
        reachable: Iterable[str] = (),
        delays: Optional[Dict[str, float]] = None,
        default_delay: float = 0.0,
    ) -> None:
        self.reachable = set(reachable)
        self.delays = delays or {}
        self.default_delay = default_delay
        self.calls: List[str] = []
        self.cancelled: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def probe(self, address: str) -> ProbeResult:
        self.calls.append(address)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        start = time.monotonic()
        try:
            delay = self.delays.get(address, self.default_delay)
            if delay:
                await asyncio.sleep(delay)
            else:
                await asyncio.sleep(0)
        except asyncio.CancelledError:
            self.cancelled.append(address)
            raise
        finally:
            self.in_flight -= 1
        return ProbeResult(
            address=address,
            reachable=address in self.reachable,
            elapsed_ms=(time.monotonic() - start) * 1000,
            status_code=200 if address in self.reachable else None,
        )


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def create_test_config(**overrides) -> DiscoveryConfig:
    """Create a small test config with defaults"""
    defaults = {
        "subnet_prefixes": ["192.168.10", "192.168.1"],
        "fallback_addresses": [],
        "scan_concurrency": 8,
        "probe_timeout_seconds": 0.8,
    }
    defaults.update(overrides)
    return DiscoveryConfig(**defaults)


def build_detector(
    prober: FakeProber,
    config: Optional[DiscoveryConfig] = None,
    clock: Optional[ManualClock] = None,
) -> IpDetector:
    """Detector wired to a fake prober"""
    config = config or create_test_config()
    cache = AddressCache(config.cache_ttl_seconds, clock=clock or ManualClock())
    fallback = FallbackList(
        config.fallback_addresses or (),
        cap=config.fallback_cap,
        policy=config.fallback_policy,
    )
    scanner = SubnetScanner(prober, config)
    return IpDetector(config, scanner, cache, fallback, prober)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def config() -> DiscoveryConfig:
    return create_test_config()
