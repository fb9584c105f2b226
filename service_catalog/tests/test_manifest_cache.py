"""
Unit tests for the manifest cache.
"""

import asyncio

import pytest

from shared.errors import GenerationFailure, TransientFetchError
from shared.metrics import MetricsCollector
from service_catalog.app.caching.manifest_cache import CachedManifestSource, CacheState
from service_catalog.app.caching.sources import DatabaseManifestSource, FallbackManifestSource
from service_catalog.app.manifest.generator import ManifestGenerator
from service_catalog.tests.helpers import (
    FakeClock,
    FakeProductStore,
    StubManifestSource,
    create_manifest,
    create_resolver,
    create_test_records,
)


TTL_MS = 1000


class TestCachedManifestSource:
    """Test cases for CachedManifestSource."""

    @pytest.fixture
    def clock(self):
        """Create a manually advanced clock."""
        return FakeClock()

    @pytest.fixture
    def metrics(self):
        """Create an isolated metrics collector."""
        return MetricsCollector("catalog-test")

    def test_negative_ttl_rejected(self):
        """Test that a negative TTL is a configuration error."""
        with pytest.raises(ValueError):
            CachedManifestSource(StubManifestSource(create_manifest()), ttl_ms=-1)

    @pytest.mark.asyncio
    async def test_empty_cache_loads(self, clock):
        """Test that the first read loads from the source."""
        source = StubManifestSource(create_manifest(version=1))
        cache = CachedManifestSource(source, ttl_ms=TTL_MS, clock=clock)

        assert cache.state is CacheState.EMPTY
        manifest = await cache.get()

        assert manifest.version == 1
        assert source.calls == 1
        assert cache.state is CacheState.VALID
        assert cache.fetched_at == clock.now

    @pytest.mark.asyncio
    async def test_ttl_expiry(self, clock):
        """Test reads at 0ms, inside the TTL and past it."""
        source = StubManifestSource(create_manifest(version=1), create_manifest(version=2))
        cache = CachedManifestSource(source, ttl_ms=TTL_MS, clock=clock)

        first = await cache.get()
        clock.advance(500)
        second = await cache.get()

        assert second is first
        assert source.calls == 1

        clock.advance(1000)
        assert cache.state is CacheState.STALE
        third = await cache.get()

        assert third.version == 2
        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_zero_ttl_always_reloads(self, clock):
        """Test that a zero TTL never serves from cache."""
        source = StubManifestSource(create_manifest(version=1))
        cache = CachedManifestSource(source, ttl_ms=0, clock=clock)

        await cache.get()
        await cache.get()

        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_load(self, clock):
        """Test that simultaneous misses trigger a single source load."""
        gate = asyncio.Event()
        source = StubManifestSource(create_manifest(version=7), gate=gate)
        cache = CachedManifestSource(source, ttl_ms=TTL_MS, clock=clock)

        callers = [asyncio.ensure_future(cache.get()) for _ in range(10)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*callers)

        assert source.calls == 1
        assert all(result is results[0] for result in results)
        assert results[0].version == 7

    @pytest.mark.asyncio
    async def test_concurrent_stale_callers_share_one_refresh(self, clock):
        """Test that simultaneous reads of an expired manifest trigger a single refresh."""
        gate = asyncio.Event()
        gate.set()
        source = StubManifestSource(create_manifest(version=1), create_manifest(version=2), gate=gate)
        cache = CachedManifestSource(source, ttl_ms=TTL_MS, clock=clock)

        await cache.get()
        clock.advance(1500)
        gate.clear()
        assert cache.state is CacheState.STALE

        callers = [asyncio.ensure_future(cache.get()) for _ in range(5)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*callers)

        assert source.calls == 2
        assert all(result is results[0] for result in results)
        assert results[0].version == 2
        assert cache.state is CacheState.VALID

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_failure(self, clock):
        """Test that a failed shared load fails every waiting caller."""
        gate = asyncio.Event()
        source = StubManifestSource(GenerationFailure("database down"), gate=gate)
        cache = CachedManifestSource(source, ttl_ms=TTL_MS, clock=clock)

        callers = [asyncio.ensure_future(cache.get()) for _ in range(3)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*callers, return_exceptions=True)

        assert source.calls == 1
        assert all(isinstance(result, GenerationFailure) for result in results)

    @pytest.mark.asyncio
    async def test_failure_with_empty_cache_propagates(self, clock, metrics):
        """Test that nothing can be served when the first load fails."""
        source = StubManifestSource(GenerationFailure("database down"))
        cache = CachedManifestSource(source, ttl_ms=TTL_MS, clock=clock, metrics=metrics)

        with pytest.raises(GenerationFailure):
            await cache.get()

        assert cache.state is CacheState.EMPTY
        assert metrics.registry.get_sample_value(
            "manifest_loads_total", {"source": "cache", "result": "failed"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_stale_manifest_served_on_failure(self, clock, metrics):
        """Test degradation to the previous manifest when a refresh fails."""
        source = StubManifestSource(
            create_manifest(version=1),
            TransientFetchError("endpoint down"),
            create_manifest(version=3),
        )
        cache = CachedManifestSource(source, ttl_ms=TTL_MS, clock=clock, metrics=metrics)

        first = await cache.get()
        fetched_at = cache.fetched_at
        clock.advance(1500)

        stale = await cache.get()

        assert stale is first
        assert cache.fetched_at == fetched_at
        assert cache.state is CacheState.STALE
        assert metrics.registry.get_sample_value("manifest_stale_served_total") == 1.0

        recovered = await cache.get()

        assert recovered.version == 3
        assert source.calls == 3
        assert cache.state is CacheState.VALID
        assert metrics.registry.get_sample_value("manifest_version") == 3.0

    @pytest.mark.asyncio
    async def test_invalidate(self, clock):
        """Test that invalidation forces the next read to load."""
        source = StubManifestSource(create_manifest(version=1), create_manifest(version=2))
        cache = CachedManifestSource(source, ttl_ms=TTL_MS, clock=clock)

        await cache.get()
        cache.invalidate()

        assert cache.peek() is None
        assert cache.state is CacheState.EMPTY
        assert (await cache.get()).version == 2

    @pytest.mark.asyncio
    async def test_load_uses_supplied_time(self, clock):
        """Test that load() judges freshness against the given time."""
        source = StubManifestSource(create_manifest(version=1))
        cache = CachedManifestSource(source, ttl_ms=TTL_MS, clock=clock)

        await cache.load(clock.now)
        clock.advance(100)
        await cache.load(clock.now)

        assert source.calls == 1

    @pytest.mark.asyncio
    async def test_stale_served_when_remote_and_database_fail(self, clock, metrics):
        """Test degradation through the fetch-else-regenerate chain."""
        store = FakeProductStore(create_test_records())
        remote = StubManifestSource(TransientFetchError("endpoint down"))
        chain = FallbackManifestSource(
            remote,
            DatabaseManifestSource(ManifestGenerator(store, create_resolver())),
            metrics=metrics,
        )
        cache = CachedManifestSource(chain, ttl_ms=TTL_MS, clock=clock, metrics=metrics)

        first = await cache.get()
        fetched_at = cache.fetched_at
        assert len(first.products) == 4

        store.error = ConnectionError("database down")
        clock.advance(1500)
        stale = await cache.get()

        assert stale is first
        assert cache.fetched_at == fetched_at
        assert cache.state is CacheState.STALE
        assert remote.calls == 2
        assert store.calls == 2
        assert metrics.registry.get_sample_value("manifest_stale_served_total") == 1.0
