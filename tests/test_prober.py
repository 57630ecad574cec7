"""
Tests for ReachabilityProber

Coverage includes:
- Request shape (method, URL, headers, body)
- Any HTTP response counts as reachable
- Connection errors and timeouts count as unreachable
- Client ownership on close
"""
import asyncio
import json

import httpx
import pytest

from lan_endpoint_discovery import DiscoveryConfig, ReachabilityProber, build_probe_url


def make_prober(handler, **config_overrides) -> ReachabilityProber:
    transport = httpx.MockTransport(handler)
    client = httpx.AsyncClient(transport=transport)
    return ReachabilityProber(DiscoveryConfig(**config_overrides), client=client)


class TestProbeRequest:
    """Tests for the probe request format"""

    @pytest.mark.asyncio
    async def test_posts_typename_query(self):
        """Should POST the __typename query as JSON to :4000/graphql"""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": {"__typename": "Query"}})

        prober = make_prober(handler)
        await prober.probe("192.168.1.108")

        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "http://192.168.1.108:4000/graphql"
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == {"query": "{ __typename }"}

    @pytest.mark.asyncio
    async def test_custom_port_and_path(self):
        """Should honour configured port and path"""
        urls = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(200)

        prober = make_prober(handler, port=5001, graphql_path="/api/graphql")
        await prober.probe("localhost")

        assert urls == ["http://localhost:5001/api/graphql"]

    def test_build_probe_url(self):
        assert build_probe_url("10.0.0.5", 4000, "/graphql") == "http://10.0.0.5:4000/graphql"


class TestProbeOutcome:
    """Tests for reachable/unreachable classification"""

    @pytest.mark.asyncio
    async def test_ok_response_is_reachable(self):
        prober = make_prober(lambda request: httpx.Response(200))

        result = await prober.probe("192.168.1.108")

        assert result.reachable is True
        assert result.status_code == 200
        assert result.error is None
        assert result.elapsed_ms >= 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 404, 500, 503])
    async def test_error_status_is_still_reachable(self, status):
        """A server that answers with an error status still exists"""
        prober = make_prober(lambda request: httpx.Response(status))

        result = await prober.probe("192.168.1.108")

        assert result.reachable is True
        assert result.status_code == status

    @pytest.mark.asyncio
    async def test_connect_error_is_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        prober = make_prober(handler)
        result = await prober.probe("192.168.1.5")

        assert result.reachable is False
        assert result.status_code is None
        assert "ConnectError" in result.error

    @pytest.mark.asyncio
    async def test_httpx_timeout_is_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        prober = make_prober(handler)
        result = await prober.probe("192.168.1.5")

        assert result.reachable is False

    @pytest.mark.asyncio
    async def test_os_error_is_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise OSError("Network is unreachable")

        prober = make_prober(handler)
        result = await prober.probe("10.0.0.9")

        assert result.reachable is False
        assert "Network is unreachable" in result.error

    @pytest.mark.asyncio
    async def test_deadline_cancels_slow_request(self):
        """A response slower than the deadline counts as unreachable"""
        cancelled = []

        async def handler(request: httpx.Request) -> httpx.Response:
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise
            return httpx.Response(200)

        prober = make_prober(handler, probe_timeout_seconds=0.05)
        result = await prober.probe("192.168.1.50")

        assert result.reachable is False
        assert result.error == "timeout"
        assert result.elapsed_ms < 1000
        assert cancelled == [True]

    @pytest.mark.asyncio
    async def test_is_reachable(self):
        prober = make_prober(lambda request: httpx.Response(200))
        assert await prober.is_reachable("192.168.1.108") is True

    @pytest.mark.asyncio
    async def test_to_dict(self):
        prober = make_prober(lambda request: httpx.Response(204))
        result = await prober.probe("192.168.1.108")

        data = result.to_dict()
        assert data["address"] == "192.168.1.108"
        assert data["reachable"] is True
        assert data["status_code"] == 204


class TestClientOwnership:
    """Tests for client lifecycle"""

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        prober = ReachabilityProber(DiscoveryConfig(), client=client)

        await prober.aclose()

        assert client.is_closed is False
        await client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        async with ReachabilityProber(DiscoveryConfig()) as prober:
            client = prober._client
        assert client.is_closed is True

    def test_timeout_from_config(self):
        prober = ReachabilityProber(DiscoveryConfig(probe_timeout_seconds=0.25))
        assert prober.timeout_seconds == 0.25


class TestMalformedAddress:
    """Malformed addresses are unreachable, never an exception"""

    @pytest.mark.asyncio
    async def test_address_with_port_is_unreachable(self):
        prober = make_prober(lambda request: httpx.Response(200))

        result = await prober.probe("1.2.3.4:99")

        assert result.reachable is False
        assert result.error
