"""
Reachability prober.

Answers "does this address run our service?" within a bounded deadline.
Any HTTP response counts as reachable, including error statuses: a server
that answers 400 or 500 still exists and runs the backend.
"""
import asyncio
import logging
import time
from typing import Optional

import httpx

from .config import DEFAULT_PROBE_QUERY, merge_config
from .types import DiscoveryConfig, ProbeResult

logger = logging.getLogger(__name__)


def build_probe_url(address: str, port: int, path: str) -> str:
    """URL probed for an address"""
    return f"http://{address}:{port}{path}"


class ReachabilityProber:
    """
    Probes a single address with a bounded-time GraphQL request.

    Example:
        async with ReachabilityProber(DiscoveryConfig()) as prober:
            result = await prober.probe("192.168.1.108")
            print(result.reachable, result.elapsed_ms)
    """

    def __init__(
        self,
        config: Optional[DiscoveryConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = merge_config(config)
        self._timeout = self._config.probe_timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            follow_redirects=False,
            # LAN hosts only, never route probes through a proxy
            trust_env=False,
        )

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    async def probe(self, address: str) -> ProbeResult:
        """
        Probe one address.

        Never raises on network failure or timeout; cancellation of the
        calling task is propagated.

        Args:
            address: Dotted-quad address or 'localhost'

        Returns:
            ProbeResult with reachable=True if any HTTP response arrived
        """
        url = build_probe_url(address, self._config.port, self._config.graphql_path)
        start = time.monotonic()

        try:
            # wait_for cancels the request (and releases its connection)
            # when the deadline passes
            response = await asyncio.wait_for(
                self._client.post(
                    url,
                    json={"query": DEFAULT_PROBE_QUERY},
                    headers={"Content-Type": "application/json"},
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            elapsed_ms = (time.monotonic() - start) * 1000
            logger.debug(f"Probe {url} timed out after {elapsed_ms:.0f}ms")
            return ProbeResult(
                address=address,
                reachable=False,
                elapsed_ms=elapsed_ms,
                error="timeout",
            )
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            elapsed_ms = (time.monotonic() - start) * 1000
            logger.debug(f"Probe {url} failed: {type(e).__name__}: {e}")
            return ProbeResult(
                address=address,
                reachable=False,
                elapsed_ms=elapsed_ms,
                error=f"{type(e).__name__}: {e}" if str(e) else type(e).__name__,
            )

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.debug(
            f"Probe {url} answered {response.status_code} in {elapsed_ms:.0f}ms"
        )
        return ProbeResult(
            address=address,
            reachable=True,
            elapsed_ms=elapsed_ms,
            status_code=response.status_code,
        )

    async def is_reachable(self, address: str) -> bool:
        """Boolean form of probe()"""
        result = await self.probe(address)
        return result.reachable

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this prober created it"""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ReachabilityProber":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
