"""
IP detector - resolves the backend address.

Order of precedence:
1. Cache (fast path)
2. Subnet scan
3. Fallback list, probed in order
4. 'localhost' in a simulator, otherwise a fixed last-resort address

Resolution never raises for network conditions; the worst case is the
last-resort address.
"""
import logging
import time
from typing import Callable, Optional

from .cache import AddressCache
from .config import merge_config, validate_address
from .fallback import FallbackList
from .scanner import Prober, SubnetScanner
from .singleflight import Singleflight
from .types import (
    AddressSource,
    DetectorState,
    DiscoveryConfig,
    DiscoveryEvent,
    DiscoveryEventListener,
    DiscoveryResult,
)

logger = logging.getLogger(__name__)


_DISCOVERY_KEY = "discovery"


class IpDetector:
    """
    Orchestrates cache, scanner and fallback list.

    Example:
        detector = IpDetector(config, scanner, cache, fallback, prober)
        address = await detector.detect()
        address = await detector.force_refresh()  # after a Wi-Fi change
    """

    def __init__(
        self,
        config: Optional[DiscoveryConfig],
        scanner: SubnetScanner,
        cache: AddressCache,
        fallback: FallbackList,
        prober: Prober,
    ) -> None:
        self._config = merge_config(config)
        self._scanner = scanner
        self._cache = cache
        self._fallback = fallback
        self._prober = prober
        self._singleflight = Singleflight()
        self._listeners: set[DiscoveryEventListener] = set()
        self._state = DetectorState.DISCOVERING
        self._last_result: Optional[DiscoveryResult] = None

    @property
    def state(self) -> DetectorState:
        """Cached while a valid cache entry exists, else the last pass outcome"""
        if self._cache.is_valid():
            return DetectorState.CACHED
        if self._state == DetectorState.CACHED:
            return DetectorState.DISCOVERING
        return self._state

    @property
    def cache(self) -> AddressCache:
        return self._cache

    @property
    def fallback(self) -> FallbackList:
        return self._fallback

    @property
    def last_result(self) -> Optional[DiscoveryResult]:
        return self._last_result

    async def detect(self) -> str:
        """Resolve the backend address"""
        result = await self.detect_result()
        return result.address

    async def detect_result(self) -> DiscoveryResult:
        """Resolve the backend address, reporting where it came from"""
        cached = self._cache.get()
        if cached is not None:
            logger.debug(f"Using cached address {cached}")
            self._emit(DiscoveryEvent(
                type="cache:hit",
                data={"address": cached, "ttl_remaining_seconds": self._cache.remaining_seconds()},
            ))
            return DiscoveryResult(address=cached, source=AddressSource.CACHE, from_cache=True)

        self._emit(DiscoveryEvent(type="cache:miss"))
        flight = await self._singleflight.do(_DISCOVERY_KEY, self._discover)
        return flight.value

    async def force_refresh(self) -> str:
        """Drop the cached address and discover again"""
        logger.info("Forcing address refresh")
        self._cache.clear()
        return await self.detect()

    def cached_address(self) -> Optional[str]:
        """The cached address if still valid"""
        return self._cache.get()

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Cleared cached address")

    def set_manual_address(self, address: str) -> None:
        """
        Pin an address in the cache, bypassing discovery until it expires.

        Raises:
            InvalidAddressError: if the address is malformed
        """
        validate_address(address)
        self._cache.set(address)
        self._state = DetectorState.CACHED
        self._last_result = DiscoveryResult(
            address=address, source=AddressSource.MANUAL, from_cache=False
        )
        logger.info(f"Manually set address {address}")

    async def _discover(self) -> DiscoveryResult:
        self._state = DetectorState.DISCOVERING
        start = time.monotonic()
        try:
            result = await self._discover_live(start)
        except Exception as e:
            # Covers bugs in injected collaborators; never fatal to callers
            logger.error(f"Address discovery failed unexpectedly: {e!r}")
            self._emit(DiscoveryEvent(type="discovery:error", data={"error": str(e)}))
            result = None

        if result is None:
            result = self._exhausted(start)
        self._last_result = result
        return result

    async def _discover_live(self, start: float) -> Optional[DiscoveryResult]:
        self._emit(DiscoveryEvent(
            type="scan:start",
            data={"prefixes": self._scanner.prefixes},
        ))
        scan = await self._scanner.scan()
        if scan is not None:
            self._emit(DiscoveryEvent(
                type="scan:found",
                data={"address": scan.address, "stage": scan.stage.value, "probes": scan.probes},
            ))
            return self._confirmed(scan.address, AddressSource.SCAN, start)

        self._emit(DiscoveryEvent(type="scan:exhausted"))

        for address in self._fallback.list():
            logger.debug(f"Trying fallback address {address}")
            probe = await self._prober.probe(address)
            if probe.reachable:
                logger.info(f"Using fallback address {address}")
                self._emit(DiscoveryEvent(type="fallback:found", data={"address": address}))
                return self._confirmed(address, AddressSource.FALLBACK, start)

        return None

    def _confirmed(self, address: str, source: AddressSource, start: float) -> DiscoveryResult:
        """Write-through for an address that answered a probe"""
        self._cache.set(address)
        self._fallback.record_success(address)
        self._state = DetectorState.CACHED
        return DiscoveryResult(
            address=address,
            source=source,
            from_cache=False,
            duration_seconds=time.monotonic() - start,
        )

    def _exhausted(self, start: float) -> DiscoveryResult:
        self._state = DetectorState.EXHAUSTED
        if self._config.is_simulator:
            address = self._config.simulator_address
            source = AddressSource.SIMULATOR
        else:
            address = self._config.last_resort_address
            source = AddressSource.LAST_RESORT

        logger.warning(
            f"No reachable backend found on {', '.join(self._scanner.prefixes)} "
            f"or in the fallback list, defaulting to {address}"
        )
        self._emit(DiscoveryEvent(
            type="discovery:exhausted",
            data={"address": address, "source": source.value},
        ))
        return DiscoveryResult(
            address=address,
            source=source,
            from_cache=False,
            duration_seconds=time.monotonic() - start,
        )

    def on(self, listener: DiscoveryEventListener) -> Callable[[], None]:
        """Subscribe to events"""
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def off(self, listener: DiscoveryEventListener) -> None:
        """Unsubscribe from events"""
        self._listeners.discard(listener)

    def _emit(self, event: DiscoveryEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # Ignore listener errors
                pass
