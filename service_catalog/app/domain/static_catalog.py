"""
Read-only accessors over the cached catalog manifest.

Prices served here are display data and may be up to one TTL window old.
Checkout must not price orders from this layer.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from shared.errors import ValidationError
from shared.logging import get_logger

from ..caching.manifest_cache import CachedManifestSource
from ..manifest.classifier import BEST_DEALS, COLLECTION_NAMES, FEATURED, NEW_ARRIVALS, TRENDING
from ..manifest.models import Manifest, StaticProduct


DEFAULT_CATEGORY_LIMIT = 10
DEFAULT_COLLECTION_LIMIT = 8


def _check_limit(limit: int) -> int:
    if limit < 0:
        raise ValidationError("limit must be non-negative", {"limit": limit})
    return limit


class StaticCatalog:
    """Typed queries against the current manifest snapshot."""

    def __init__(self, cache: CachedManifestSource):
        self.cache = cache
        self.logger = get_logger("catalog.static_catalog")

    async def get_manifest(self) -> Manifest:
        return await self.cache.get()

    async def get_product(self, slug: str) -> Optional[StaticProduct]:
        """Look up a product by slug; None when it is not in the manifest."""
        manifest = await self.cache.get()
        return manifest.find_by_slug(slug)

    async def get_products_by_ids(self, product_ids: Iterable[str]) -> List[StaticProduct]:
        """Resolve ids in order, silently dropping ids no longer present."""
        manifest = await self.cache.get()
        return manifest.resolve(product_ids)

    async def get_products_by_category(
        self,
        category_slug: str,
        limit: int = DEFAULT_CATEGORY_LIMIT,
    ) -> List[StaticProduct]:
        """First ``limit`` products of a category bucket, in bucket order."""
        _check_limit(limit)
        manifest = await self.cache.get()
        bucket = manifest.find_category(category_slug)
        if bucket is None:
            self.logger.debug("Category not in manifest", category_slug=category_slug)
            return []
        return manifest.resolve(bucket.product_ids[:limit])

    async def get_collection(self, name: str, limit: int = DEFAULT_COLLECTION_LIMIT) -> List[StaticProduct]:
        """First ``limit`` products of a named collection."""
        if name not in COLLECTION_NAMES:
            raise ValidationError(
                f"Unknown collection '{name}'",
                {"collection": name, "allowed": list(COLLECTION_NAMES)},
            )
        _check_limit(limit)
        manifest = await self.cache.get()
        return manifest.resolve(manifest.collections.get(name)[:limit])

    async def get_featured_products(self, limit: int = DEFAULT_COLLECTION_LIMIT) -> List[StaticProduct]:
        return await self.get_collection(FEATURED, limit)

    async def get_trending_products(self, limit: int = DEFAULT_COLLECTION_LIMIT) -> List[StaticProduct]:
        return await self.get_collection(TRENDING, limit)

    async def get_new_arrivals(self, limit: int = DEFAULT_COLLECTION_LIMIT) -> List[StaticProduct]:
        return await self.get_collection(NEW_ARRIVALS, limit)

    async def get_best_deals(self, limit: int = DEFAULT_COLLECTION_LIMIT) -> List[StaticProduct]:
        return await self.get_collection(BEST_DEALS, limit)
