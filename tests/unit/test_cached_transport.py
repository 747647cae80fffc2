from __future__ import annotations

import asyncio

import pytest

from context_client.config import ClientSettings
from context_client.errors import ProviderError, UnsupportedProviderError
from context_client.models import CapabilitiesParams, ItemsParams
from context_client.transport import (
    CachedTransport,
    HttpTransport,
    ModuleTransport,
    create_transport,
)
from tests.unit.helpers.factories import HangingCapabilitiesTransport, StubTransport


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestCachedTransport:
    async def test_capabilities_cached_within_ttl(self):
        """Test capabilities cached within TTL."""
        stub = StubTransport(capabilities={"selector": []})
        clock = _Clock()
        transport = CachedTransport(stub, ttl_seconds=10, clock=clock)

        first = await transport.capabilities(CapabilitiesParams(), {})
        clock.now += 5
        second = await transport.capabilities(CapabilitiesParams(), {})

        assert first == second
        assert stub.calls["capabilities"] == 1

    async def test_capabilities_refetched_after_ttl(self):
        """Test capabilities refetched after TTL."""
        stub = StubTransport(capabilities={})
        clock = _Clock()
        transport = CachedTransport(stub, ttl_seconds=10, clock=clock)

        await transport.capabilities(CapabilitiesParams(), {})
        clock.now += 10.5
        await transport.capabilities(CapabilitiesParams(), {})

        assert stub.calls["capabilities"] == 2

    async def test_concurrent_lookups_share_one_request(self):
        """Test concurrent lookups share one request."""
        stub = StubTransport(capabilities={})
        transport = CachedTransport(stub, ttl_seconds=10)

        await asyncio.gather(
            *(transport.capabilities(CapabilitiesParams(), {}) for _ in range(5))
        )

        assert stub.calls["capabilities"] == 1

    async def test_failures_are_not_cached(self):
        """Test failures are not cached."""
        stub = StubTransport(errors={"capabilities": ProviderError("down")})
        transport = CachedTransport(stub, ttl_seconds=10)

        for _ in range(2):
            with pytest.raises(ProviderError):
                await transport.capabilities(CapabilitiesParams(), {})

        assert stub.calls["capabilities"] == 2

    async def test_settings_are_part_of_the_key(self):
        """Test settings are part of the key."""
        stub = StubTransport(capabilities={})
        transport = CachedTransport(stub, ttl_seconds=10)

        await transport.capabilities(CapabilitiesParams(), {"a": 1})
        await transport.capabilities(CapabilitiesParams(), {"a": 2})
        await transport.capabilities(CapabilitiesParams(), {"a": 1})

        assert stub.calls["capabilities"] == 2

    async def test_items_are_never_cached(self):
        """Test items are never cached."""
        stub = StubTransport(items=[{"title": "A"}])
        transport = CachedTransport(stub, ttl_seconds=10)

        await transport.items(ItemsParams(uri="u"), {})
        await transport.items(ItemsParams(uri="u"), {})

        assert stub.calls["items"] == 2


class TestCreateTransport:
    def test_http_endpoint(self):
        """Test HTTP endpoint."""
        transport = create_transport("https://provider.example.com/api", cache=False)

        assert isinstance(transport, HttpTransport)

    def test_http_python_source_is_a_module(self):
        """Test that an HTTP Python source is a module."""
        transport = create_transport("https://cdn.example.com/provider.py", cache=False)

        assert isinstance(transport, ModuleTransport)

    @pytest.mark.parametrize("uri", ["file:///opt/providers/p.py", "python:pkg.provider"])
    def test_module_schemes(self, uri):
        """Test module schemes."""
        assert isinstance(create_transport(uri, cache=False), ModuleTransport)

    def test_cache_wraps_transport(self):
        """Test cache wraps transport."""
        transport = create_transport("https://p.example.com")

        assert isinstance(transport, CachedTransport)
        assert isinstance(transport.transport, HttpTransport)

    def test_zero_ttl_disables_cache(self):
        """Test zero TTL disables cache."""
        settings = ClientSettings(capabilities_cache_ttl_seconds=0)

        transport = create_transport("https://p.example.com", settings=settings)

        assert isinstance(transport, HttpTransport)

    def test_timeout_comes_from_settings(self):
        """Test timeout comes from settings."""
        settings = ClientSettings(http_timeout_seconds=2.5)

        transport = create_transport("https://p.example.com", settings=settings, cache=False)

        assert transport.timeout_seconds == 2.5

    def test_unsupported_scheme(self):
        """Test unsupported scheme."""
        with pytest.raises(UnsupportedProviderError):
            create_transport("ftp://example.com/provider")


class TestCachedTransportCancellation:
    async def test_last_cancelled_caller_cancels_lookup(self):
        """Test last cancelled caller cancels lookup."""
        stub = HangingCapabilitiesTransport()
        transport = CachedTransport(stub, ttl_seconds=10)

        waiter = asyncio.ensure_future(transport.capabilities(CapabilitiesParams(), {}))
        await asyncio.wait_for(stub.started.wait(), 1)
        waiter.cancel()

        await asyncio.wait_for(stub.cancelled.wait(), 1)
        assert waiter.cancelled()

    async def test_lookup_survives_while_another_caller_waits(self):
        """Test lookup survives while another caller waits."""
        stub = HangingCapabilitiesTransport()
        transport = CachedTransport(stub, ttl_seconds=10)

        first = asyncio.ensure_future(transport.capabilities(CapabilitiesParams(), {}))
        second = asyncio.ensure_future(transport.capabilities(CapabilitiesParams(), {}))
        await asyncio.wait_for(stub.started.wait(), 1)
        first.cancel()
        await asyncio.sleep(0.01)

        assert not stub.cancelled.is_set()
        assert stub.calls["capabilities"] == 1

        second.cancel()
        await asyncio.wait_for(stub.cancelled.wait(), 1)

    async def test_cancelled_lookup_is_not_reused(self):
        """Test cancelled lookup is not reused."""
        stub = HangingCapabilitiesTransport()
        transport = CachedTransport(stub, ttl_seconds=10)

        waiter = asyncio.ensure_future(transport.capabilities(CapabilitiesParams(), {}))
        await asyncio.wait_for(stub.started.wait(), 1)
        waiter.cancel()
        await asyncio.wait_for(stub.cancelled.wait(), 1)

        retry = asyncio.ensure_future(transport.capabilities(CapabilitiesParams(), {}))
        await asyncio.sleep(0.01)

        assert stub.calls["capabilities"] == 2
        retry.cancel()
        await asyncio.gather(retry, return_exceptions=True)
