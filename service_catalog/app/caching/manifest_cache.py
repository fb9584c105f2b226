"""
Process-local manifest cache with TTL expiry and request coalescing.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from shared.logging import get_logger, start_refresh

from ..manifest.models import Manifest
from .sources import ManifestSource

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CacheState(str, Enum):
    """Cache lifecycle states."""
    EMPTY = "empty"
    VALID = "valid"
    STALE = "stale"


class CachedManifestSource(ManifestSource):
    """
    Wraps a manifest source with TTL caching.

    - EMPTY: load through the wrapped source; a failure propagates.
    - VALID: serve the cached manifest without touching the source.
    - STALE: reload; on failure keep serving the previous manifest.

    Concurrent callers that find the cache EMPTY or STALE share a single
    in-flight load and all receive its outcome.
    """

    def __init__(
        self,
        source: ManifestSource,
        *,
        ttl_ms: int,
        clock: Callable[[], datetime] = utc_now,
        metrics: Optional["MetricsCollector"] = None,
    ):
        if ttl_ms < 0:
            raise ValueError("ttl_ms must be non-negative")
        self.source = source
        self.ttl = timedelta(milliseconds=ttl_ms)
        self.name = f"cached({source.name})"
        self.metrics = metrics
        self.logger = get_logger("catalog.manifest_cache")
        self._clock = clock

        self._manifest: Optional[Manifest] = None
        self._fetched_at: Optional[datetime] = None
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> CacheState:
        return self._state_at(self._clock())

    @property
    def fetched_at(self) -> Optional[datetime]:
        return self._fetched_at

    def peek(self) -> Optional[Manifest]:
        """Return the cached manifest, fresh or stale, without loading."""
        return self._manifest

    def invalidate(self) -> None:
        """Drop the cached manifest; the next read loads a new one."""
        previous = self._manifest
        self._manifest = None
        self._fetched_at = None
        self.logger.info(
            "Manifest cache invalidated",
            version=previous.version if previous else None,
        )

    async def get(self) -> Manifest:
        """Return the current manifest, loading it if needed."""
        return await self.load(self._clock())

    async def load(self, now: datetime) -> Manifest:
        if self._state_at(now) is CacheState.VALID:
            return self._manifest  # type: ignore[return-value]

        task = self._refresh_task
        if task is None:
            task = asyncio.get_running_loop().create_task(self._refresh(now))
            self._refresh_task = task
            task.add_done_callback(self._clear_refresh_task)

        # Shielded so a cancelled caller does not cancel the shared load.
        return await asyncio.shield(task)

    def _state_at(self, now: datetime) -> CacheState:
        if self._manifest is None or self._fetched_at is None:
            return CacheState.EMPTY
        if now - self._fetched_at < self.ttl:
            return CacheState.VALID
        return CacheState.STALE

    def _clear_refresh_task(self, task: asyncio.Task) -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _refresh(self, now: datetime) -> Manifest:
        # Runs in its own task; the refresh id is scoped to this load.
        start_refresh()
        previous = self._manifest
        try:
            manifest = await self.source.load(now)
        except Exception as exc:
            if previous is None:
                self.logger.error(
                    "Manifest unavailable and no cached copy to serve",
                    source=self.source.name,
                    error=str(exc),
                )
                self._record_load("failed")
                raise

            self.logger.warning(
                "Serving stale manifest after failed refresh",
                source=self.source.name,
                version=previous.version,
                error=str(exc),
            )
            self._record_load("stale")
            if self.metrics:
                self.metrics.increment_counter("manifest_stale_served_total")
            return previous

        self._manifest = manifest
        self._fetched_at = now
        self._record_load("refreshed")
        if self.metrics:
            self.metrics.set_gauge("manifest_version", manifest.version)
        self.logger.info(
            "Manifest cache refreshed",
            source=self.source.name,
            version=manifest.version,
            products=len(manifest.products),
        )
        return manifest

    def _record_load(self, result: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("manifest_loads_total", source="cache", result=result)
