"""
Manifest caching package.

Provides the fetch-else-regenerate source strategies and the TTL cache that
wraps them. Staleness of up to one TTL window is accepted for browsing;
checkout must read the datastore directly.
"""

from .manifest_cache import CachedManifestSource, CacheState, utc_now
from .sources import (
    DatabaseManifestSource,
    FallbackManifestSource,
    ManifestSource,
    RemoteManifestSource,
    build_manifest_source,
)

__all__ = [
    "CachedManifestSource",
    "CacheState",
    "utc_now",
    "DatabaseManifestSource",
    "FallbackManifestSource",
    "ManifestSource",
    "RemoteManifestSource",
    "build_manifest_source",
]
