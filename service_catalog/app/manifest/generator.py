"""
Manifest generation from the primary datastore.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from shared.errors import DataIntegrityError, GenerationFailure
from shared.logging import get_logger

from ..adapters.product_store import ProductRow, ProductStore
from ..images.resolver import ImageUrlResolver, normalize_image_id
from .classifier import BEST_DEALS, FEATURED, NEW_ARRIVALS, TRENDING, classify
from .models import (
    CategoryBucket,
    Collections,
    Manifest,
    ProductImages,
    ProductMetadata,
    StaticProduct,
)

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


def product_etag(row: ProductRow) -> str:
    """Quoted fingerprint of the fields a product page displays."""
    fingerprint = json.dumps(
        {
            "id": row.id,
            "name": row.name,
            "description": row.description,
            "price": row.price,
            "compare_at_price": row.compare_at_price,
            "slug": row.slug,
            "category": row.category.id if row.category else None,
            "images": row.image_references(),
        },
        sort_keys=True,
    )
    return f'"{hashlib.md5(fingerprint.encode("utf-8")).hexdigest()}"'


def generate_summary(manifest: Manifest) -> Dict[str, Any]:
    """Counts describing a generated manifest."""
    return {
        "version": manifest.version,
        "products": len(manifest.products),
        "categories": len(manifest.categories),
        "collections": {
            FEATURED: len(manifest.collections.featured),
            TRENDING: len(manifest.collections.trending),
            NEW_ARRIVALS: len(manifest.collections.new_arrivals),
            BEST_DEALS: len(manifest.collections.best_deals),
        },
    }


class ManifestGenerator:
    """Builds a complete manifest from one scan of published products."""

    def __init__(
        self,
        store: ProductStore,
        resolver: ImageUrlResolver,
        *,
        query_timeout: float = 30.0,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.query_timeout = query_timeout
        self.metrics = metrics
        self.logger = get_logger("catalog.manifest_generator")

    async def generate(self, now: datetime) -> Manifest:
        """
        Generate a manifest stamped with ``now``.

        Raises GenerationFailure if the datastore query fails or times out.
        Rows that cannot become a static product are excluded and logged.
        """
        try:
            published = await asyncio.wait_for(
                self.store.fetch_published_products(),
                timeout=self.query_timeout,
            )
        except GenerationFailure:
            raise
        except asyncio.TimeoutError as exc:
            self.logger.error("Published products query timed out", timeout=self.query_timeout)
            raise GenerationFailure(
                "Published products query timed out",
                {"timeout_seconds": self.query_timeout},
            ) from exc
        except Exception as exc:
            self.logger.error("Published products query failed", error=str(exc))
            raise GenerationFailure("Failed to fetch products from database", {"error": str(exc)}) from exc

        for rejected in published.rejected:
            self._record_exclusion(rejected, reason="invalid_row")

        products: Dict[str, StaticProduct] = {}
        buckets: Dict[str, Dict[str, Any]] = {}
        collected: Dict[str, List[str]] = {
            FEATURED: [],
            TRENDING: [],
            NEW_ARRIVALS: [],
            BEST_DEALS: [],
        }

        for row in published.rows:
            try:
                product = self._build_product(row, now)
            except DataIntegrityError as exc:
                self._record_exclusion(exc, reason="missing_image")
                continue

            products[row.id] = product

            collections = classify(row, now)
            for name in collected:
                if name in collections:
                    collected[name].append(row.id)

            if row.category is not None:
                bucket = buckets.setdefault(row.category.id, {
                    "category": row.category,
                    "product_ids": [],
                    "featured_products": [],
                })
                bucket["product_ids"].append(row.id)
                if FEATURED in collections:
                    bucket["featured_products"].append(row.id)

        manifest = Manifest(
            products=products,
            categories={
                category_id: CategoryBucket(
                    id=category_id,
                    name=bucket["category"].name,
                    slug=bucket["category"].slug,
                    product_ids=tuple(bucket["product_ids"]),
                    featured_products=tuple(bucket["featured_products"]),
                )
                for category_id, bucket in buckets.items()
            },
            collections=Collections(
                featured=tuple(collected[FEATURED]),
                trending=tuple(collected[TRENDING]),
                new_arrivals=tuple(collected[NEW_ARRIVALS]),
                best_deals=tuple(collected[BEST_DEALS]),
            ),
            last_updated=now.isoformat(),
            version=int(now.timestamp() * 1000),
        )

        self.logger.info(
            "Generated static data manifest",
            excluded=len(published.rows) + len(published.rejected) - len(products),
            **generate_summary(manifest),
        )
        return manifest

    def _build_product(self, row: ProductRow, now: datetime) -> StaticProduct:
        image_ids = [normalize_image_id(reference) for reference in row.image_references()]
        primary_id = image_ids[0] if image_ids else ""
        if not primary_id:
            raise DataIntegrityError(row.id, "no resolvable primary image")

        category = row.category
        return StaticProduct(
            id=row.id,
            name=row.name,
            description=row.description,
            price=row.price,
            compare_at_price=row.compare_at_price,
            slug=row.slug,
            category=category.name if category else "",
            category_slug=category.slug if category else "",
            images=ProductImages(
                primary=self.resolver.variants(primary_id),
                src_set=self.resolver.responsive_src_set(primary_id),
                gallery=tuple(self.resolver.variants(image_id) for image_id in image_ids if image_id),
            ),
            metadata=ProductMetadata(
                last_modified=now.isoformat(),
                etag=product_etag(row),
            ),
        )

    def _record_exclusion(self, error: DataIntegrityError, *, reason: str) -> None:
        self.logger.warning(
            "Product excluded from manifest",
            product_id=error.product_id,
            reason=reason,
            error=error.message,
            details=error.details,
        )
        if self.metrics:
            self.metrics.increment_counter("manifest_products_excluded_total", reason=reason)
