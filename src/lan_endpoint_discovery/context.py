"""
Discovery context - owns the discovery state with an explicit lifecycle.

The cache, fallback list and resolver memo live on a context object instead
of module globals, so tests and multiple backends each get their own.
"""
import logging
import time
from typing import Optional

import httpx

from .cache import AddressCache
from .config import merge_config
from .detector import IpDetector
from .errors import ResolverNotInitializedError
from .fallback import FallbackList
from .prober import ReachabilityProber
from .resolver import EndpointResolver
from .scanner import Prober, SubnetScanner
from .types import Clock, DiscoveryConfig, ResolvedEndpoint

logger = logging.getLogger(__name__)


class DiscoveryContext:
    """
    Wires prober, cache, fallback list, scanner, detector and resolver.

    Lifecycle: init() -> resolve()/force_refresh() -> teardown()

    Example:
        async with DiscoveryContext(DiscoveryConfig(is_simulator=True)) as ctx:
            endpoint = await ctx.resolve()
            print(endpoint.graphql_url)
    """

    def __init__(
        self,
        config: Optional[DiscoveryConfig] = None,
        *,
        prober: Optional[Prober] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = merge_config(config)

        self._owns_prober = prober is None
        self._prober: Prober = prober or ReachabilityProber(self._config, client=client)

        self._cache = AddressCache(
            self._config.cache_ttl_seconds, clock=clock or time.monotonic
        )

        self._fallback = FallbackList(
            self._config.fallback_addresses or (),
            cap=self._config.fallback_cap,
            policy=self._config.fallback_policy,
        )
        self._scanner = SubnetScanner(self._prober, self._config)
        self._detector = IpDetector(
            self._config, self._scanner, self._cache, self._fallback, self._prober
        )
        self._resolver = EndpointResolver(self._config, self._detector)
        self._initialized = False
        self._closed = False

    @property
    def config(self) -> DiscoveryConfig:
        return self._config

    @property
    def detector(self) -> IpDetector:
        return self._detector

    @property
    def resolver(self) -> EndpointResolver:
        return self._resolver

    @property
    def scanner(self) -> SubnetScanner:
        return self._scanner

    @property
    def fallback(self) -> FallbackList:
        return self._fallback

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def init(self) -> ResolvedEndpoint:
        """Load persisted fallback addresses and perform the first resolution"""
        if self._closed:
            raise ResolverNotInitializedError("Discovery context has been torn down")

        if self._config.fallback_file and not self._initialized:
            loaded = FallbackList.load(
                self._config.fallback_file,
                cap=self._config.fallback_cap,
                policy=self._config.fallback_policy,
                default=self._fallback.list(),
            )
            self._fallback.replace(loaded.list(), path=loaded.path)

        self._initialized = True
        endpoint = await self._resolver.resolve()
        logger.info(f"Discovery context ready: {endpoint.graphql_url}")
        return endpoint

    async def resolve(self) -> ResolvedEndpoint:
        """
        Resolve the endpoint (memoized for the context lifetime).

        Raises:
            ResolverNotInitializedError: before init() or after teardown()
        """
        self._check_ready()
        return await self._resolver.resolve()

    async def force_refresh(self) -> ResolvedEndpoint:
        """Discard cached state and resolve again, e.g. after a network change"""
        self._check_ready()
        return await self._resolver.refresh()

    async def teardown(self) -> None:
        """Persist the fallback list and release network resources"""
        if self._closed:
            return
        self._closed = True
        self._initialized = False
        if self._fallback.path is not None:
            try:
                self._fallback.save()
            except OSError as e:
                logger.warning(f"Could not save fallback list to {self._fallback.path}: {e}")
        self._resolver.reset()
        self._cache.clear()
        if self._owns_prober and isinstance(self._prober, ReachabilityProber):
            await self._prober.aclose()

    def _check_ready(self) -> None:
        if self._closed:
            raise ResolverNotInitializedError("Discovery context has been torn down")
        if not self._initialized:
            raise ResolverNotInitializedError(
                "Discovery context not initialized. Await init() first."
            )

    async def __aenter__(self) -> "DiscoveryContext":
        await self.init()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.teardown()


def create_discovery_context(
    config: Optional[DiscoveryConfig] = None,
    *,
    prober: Optional[Prober] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> DiscoveryContext:
    """Factory function to create a discovery context"""
    return DiscoveryContext(config, prober=prober, client=client)
