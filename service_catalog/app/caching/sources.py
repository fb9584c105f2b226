"""
Manifest source strategies.

A source knows how to produce one complete manifest. The remote and database
sources are composed with ``FallbackManifestSource`` and the result is
wrapped by ``CachedManifestSource`` for TTL caching and request coalescing.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional
from urllib.parse import urlsplit

from shared.config import BaseConfig
from shared.errors import CatalogException
from shared.logging import get_logger

from ..adapters.manifest_client import ManifestClient
from ..adapters.product_store import ProductStore
from ..images.resolver import ImageUrlResolver
from ..manifest.generator import ManifestGenerator
from ..manifest.models import Manifest

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class ManifestSource(ABC):
    """Produces a complete manifest snapshot."""

    name = "manifest"

    @abstractmethod
    async def load(self, now: datetime) -> Manifest:
        """Return a manifest or raise a CatalogException."""

    def health(self) -> Dict[str, Any]:
        return {"name": self.name}


class RemoteManifestSource(ManifestSource):
    """Reads the manifest document published at the manifest endpoint."""

    name = "remote"

    def __init__(self, client: ManifestClient):
        self.client = client

    async def load(self, now: datetime) -> Manifest:
        return await self.client.fetch_manifest()

    def health(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url": self.client.manifest_url,
            "circuit": self.client.circuit_breaker.state.value,
        }


class DatabaseManifestSource(ManifestSource):
    """Regenerates the manifest from the primary datastore."""

    name = "database"

    def __init__(self, generator: ManifestGenerator):
        self.generator = generator

    async def load(self, now: datetime) -> Manifest:
        return await self.generator.generate(now)


class FallbackManifestSource(ManifestSource):
    """Tries ``primary`` and falls back to ``fallback`` on a catalog error."""

    def __init__(
        self,
        primary: ManifestSource,
        fallback: ManifestSource,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.primary = primary
        self.fallback = fallback
        self.metrics = metrics
        self.name = f"{primary.name}>{fallback.name}"
        self.logger = get_logger("catalog.manifest_source")

    async def load(self, now: datetime) -> Manifest:
        try:
            return await self._timed_load(self.primary, now)
        except CatalogException as exc:
            self.logger.warning(
                "Manifest source failed, falling back",
                source=self.primary.name,
                fallback=self.fallback.name,
                code=exc.code,
                error=exc.message,
            )

        return await self._timed_load(self.fallback, now)

    def health(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "primary": self.primary.health(),
            "fallback": self.fallback.health(),
        }

    async def _timed_load(self, source: ManifestSource, now: datetime) -> Manifest:
        start = time.perf_counter()
        result = "failure"
        try:
            manifest = await source.load(now)
            result = "success"
            return manifest
        finally:
            if self.metrics:
                self.metrics.increment_counter("manifest_loads_total", source=source.name, result=result)
                self.metrics.observe_histogram(
                    "manifest_load_duration_seconds",
                    time.perf_counter() - start,
                    source=source.name,
                )


def build_manifest_source(
    config: BaseConfig,
    store: ProductStore,
    resolver: ImageUrlResolver,
    *,
    metrics: Optional["MetricsCollector"] = None,
) -> ManifestSource:
    """
    Assemble the fetch-else-regenerate chain from configuration.

    Without a site base URL the manifest path is relative and cannot be
    fetched from inside the server process, so only the datastore is used.
    """
    generator = ManifestGenerator(
        store,
        resolver,
        query_timeout=config.datastore_timeout_seconds,
        metrics=metrics,
    )
    database = DatabaseManifestSource(generator)

    manifest_url = config.manifest_url
    if not urlsplit(manifest_url).scheme:
        get_logger("catalog.manifest_source").info(
            "No site base URL configured; manifest regenerated from datastore only",
            manifest_url=manifest_url,
        )
        return database

    client = ManifestClient(
        manifest_url,
        timeout=config.manifest_fetch_timeout_seconds,
        max_attempts=config.manifest_fetch_attempts,
    )
    return FallbackManifestSource(RemoteManifestSource(client), database, metrics=metrics)
