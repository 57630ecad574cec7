"""
Tests for DiscoveryContext lifecycle
"""
import pytest
import yaml

from lan_endpoint_discovery import (
    DiscoveryContext,
    ResolverNotInitializedError,
    create_discovery_context,
)

from conftest import FakeProber, create_test_config


class TestLifecycle:
    """Tests for init/resolve/teardown"""

    @pytest.mark.asyncio
    async def test_resolve_before_init_raises(self):
        context = DiscoveryContext(create_test_config(), prober=FakeProber())

        with pytest.raises(ResolverNotInitializedError):
            await context.resolve()
        with pytest.raises(ResolverNotInitializedError):
            await context.force_refresh()

    @pytest.mark.asyncio
    async def test_init_resolves(self):
        prober = FakeProber(reachable={"192.168.1.108"})
        context = DiscoveryContext(create_test_config(), prober=prober)

        endpoint = await context.init()

        assert context.initialized is True
        assert endpoint.graphql_url == "http://192.168.1.108:4000/graphql"
        assert (await context.resolve()) is endpoint
        await context.teardown()

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        prober = FakeProber(reachable={"192.168.1.108"})

        async with DiscoveryContext(create_test_config(), prober=prober) as context:
            endpoint = await context.resolve()
            assert endpoint.address == "192.168.1.108"

        with pytest.raises(ResolverNotInitializedError):
            await context.resolve()

    @pytest.mark.asyncio
    async def test_init_after_teardown_raises(self):
        context = DiscoveryContext(create_test_config(), prober=FakeProber())
        await context.teardown()

        with pytest.raises(ResolverNotInitializedError):
            await context.init()

    @pytest.mark.asyncio
    async def test_teardown_is_idempotent(self):
        context = DiscoveryContext(create_test_config(), prober=FakeProber())
        await context.teardown()
        await context.teardown()

    @pytest.mark.asyncio
    async def test_teardown_clears_state(self):
        prober = FakeProber(reachable={"192.168.1.108"})
        context = DiscoveryContext(create_test_config(), prober=prober)
        await context.init()

        await context.teardown()

        assert context.detector.cached_address() is None
        assert context.resolver.is_resolved is False

    @pytest.mark.asyncio
    async def test_force_refresh(self):
        prober = FakeProber(reachable={"192.168.1.108"})
        context = DiscoveryContext(create_test_config(), prober=prober)
        await context.init()

        prober.reachable = {"192.168.1.115"}
        endpoint = await context.force_refresh()

        assert endpoint.address == "192.168.1.115"
        await context.teardown()

    @pytest.mark.asyncio
    async def test_contexts_are_isolated(self):
        first = DiscoveryContext(create_test_config(), prober=FakeProber(reachable={"192.168.1.108"}))
        second = DiscoveryContext(create_test_config(), prober=FakeProber(reachable={"192.168.1.110"}))

        assert (await first.init()).address == "192.168.1.108"
        assert (await second.init()).address == "192.168.1.110"

        await first.teardown()
        await second.teardown()

    @pytest.mark.asyncio
    async def test_production_skips_discovery(self):
        prober = FakeProber()

        async with DiscoveryContext(
            create_test_config(environment="production"), prober=prober
        ) as context:
            endpoint = await context.resolve()

        assert endpoint.graphql_url == "https://your-production-server.com/graphql"
        assert prober.calls == []

    @pytest.mark.asyncio
    async def test_owned_prober_closed_on_teardown(self):
        context = create_discovery_context(create_test_config())
        client = context._prober._client

        await context.teardown()

        assert client.is_closed is True


class TestFallbackFile:
    """Tests for fallback persistence through the context"""

    @pytest.mark.asyncio
    async def test_loads_fallback_file_on_init(self, tmp_path):
        path = tmp_path / "fallback.yaml"
        path.write_text(yaml.safe_dump(["10.0.0.5"]))
        prober = FakeProber(reachable={"10.0.0.5"})
        config = create_test_config(subnet_prefixes=["192.168.1"], fallback_file=str(path))

        async with DiscoveryContext(config, prober=prober) as context:
            endpoint = await context.resolve()

        assert endpoint.address == "10.0.0.5"

    @pytest.mark.asyncio
    async def test_missing_file_seeded_from_config(self, tmp_path):
        path = tmp_path / "state" / "fallback.yaml"
        config = create_test_config(
            subnet_prefixes=["192.168.1"],
            fallback_addresses=["10.0.0.7"],
            fallback_file=str(path),
        )

        async with DiscoveryContext(config, prober=FakeProber()) as context:
            assert context.fallback.list() == ("10.0.0.7",)

        assert yaml.safe_load(path.read_text()) == ["10.0.0.7"]

    @pytest.mark.asyncio
    async def test_discovered_address_persisted(self, tmp_path):
        path = tmp_path / "fallback.yaml"
        config = create_test_config(fallback_file=str(path))

        async with DiscoveryContext(config, prober=FakeProber(reachable={"192.168.1.108"})):
            pass

        assert yaml.safe_load(path.read_text()) == ["192.168.1.108"]
