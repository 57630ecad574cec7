"""
Endpoint resolver - turns the detected address into GraphQL, WebSocket and
REST URLs.

Production builds return static URLs without discovery. Development builds
memoize one ResolvedEndpoint for the lifetime of the resolver; this memo is
independent of the detector's TTL cache and only `refresh()` replaces it.
"""
import logging
from typing import Callable, Optional

from .config import merge_config
from .detector import IpDetector
from .errors import ResolverNotInitializedError
from .singleflight import Singleflight
from .types import (
    DiscoveryConfig,
    DiscoveryEvent,
    DiscoveryEventListener,
    ResolvedEndpoint,
)

logger = logging.getLogger(__name__)


_RESOLVE_KEY = "endpoint"


def build_endpoint(address: str, port: int = 4000, path: str = "/graphql") -> ResolvedEndpoint:
    """
    Derive the endpoint URLs for an address.

    Example:
        build_endpoint("192.168.1.108").graphql_url
        # 'http://192.168.1.108:4000/graphql'
    """
    return ResolvedEndpoint(
        address=address,
        graphql_url=f"http://{address}:{port}{path}",
        websocket_url=f"ws://{address}:{port}{path}",
        rest_url=f"http://{address}:{port}",
    )


class EndpointResolver:
    """
    Resolves the URLs the GraphQL transport connects to.

    Example:
        resolver = EndpointResolver(config, detector)
        url = await resolver.resolve_graphql_url()
        resolver.graphql_url  # same value, synchronously, once resolved
    """

    def __init__(self, config: Optional[DiscoveryConfig], detector: IpDetector) -> None:
        self._config = merge_config(config)
        self._detector = detector
        self._memo: Optional[ResolvedEndpoint] = None
        self._singleflight = Singleflight()
        self._listeners: set[DiscoveryEventListener] = set()

    @property
    def is_production(self) -> bool:
        return self._config.environment == "production"

    @property
    def is_resolved(self) -> bool:
        return self.is_production or self._memo is not None

    @property
    def endpoint(self) -> ResolvedEndpoint:
        """
        The resolved endpoint.

        Raises:
            ResolverNotInitializedError: before the first resolution
        """
        if self.is_production:
            return self._production_endpoint()
        if self._memo is None:
            raise ResolverNotInitializedError(
                "Endpoint not resolved yet. Await resolve() before reading URLs."
            )
        return self._memo

    @property
    def graphql_url(self) -> str:
        return self.endpoint.graphql_url

    @property
    def websocket_url(self) -> str:
        return self.endpoint.websocket_url

    @property
    def rest_url(self) -> str:
        return self.endpoint.rest_url

    async def resolve(self) -> ResolvedEndpoint:
        """Resolve the endpoint, reusing the session memo when present"""
        if self.is_production:
            return self._production_endpoint()

        if self._memo is not None:
            return self._memo

        flight = await self._singleflight.do(_RESOLVE_KEY, self._resolve_fresh)
        return flight.value

    async def resolve_graphql_url(self) -> str:
        return (await self.resolve()).graphql_url

    async def resolve_websocket_url(self) -> str:
        return (await self.resolve()).websocket_url

    async def resolve_rest_url(self) -> str:
        return (await self.resolve()).rest_url

    async def refresh(self) -> ResolvedEndpoint:
        """Drop the memo and the detector cache, then resolve again"""
        if self.is_production:
            return self._production_endpoint()

        logger.info("Refreshing endpoint")
        self._memo = None
        self._detector.clear_cache()
        self._emit(DiscoveryEvent(type="resolve:refresh"))
        return await self.resolve()

    def reset(self) -> None:
        """Forget the memo without resolving again"""
        self._memo = None

    async def _resolve_fresh(self) -> ResolvedEndpoint:
        address = await self._detector.detect()
        endpoint = build_endpoint(address, self._config.port, self._config.graphql_path)
        self._memo = endpoint
        logger.info(f"Resolved GraphQL endpoint {endpoint.graphql_url}")
        self._emit(DiscoveryEvent(type="resolve:memo", data=endpoint.to_dict()))
        return endpoint

    def _production_endpoint(self) -> ResolvedEndpoint:
        return ResolvedEndpoint(
            graphql_url=self._config.production_graphql_url,
            websocket_url=self._config.production_websocket_url,
            rest_url=self._config.production_rest_url,
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
