"""
Catalog service: publishes the static manifest and serves cached lookups.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, Query
from fastapi.responses import JSONResponse

from shared.base_service import BaseService

from .adapters.product_store import PostgresProductStore, ProductStore
from .caching.manifest_cache import CachedManifestSource, utc_now
from .caching.sources import build_manifest_source
from .domain.static_catalog import (
    DEFAULT_CATEGORY_LIMIT,
    DEFAULT_COLLECTION_LIMIT,
    StaticCatalog,
)
from .images.resolver import default_resolver
from .manifest.generator import ManifestGenerator


class CatalogService(BaseService):
    """Catalog service implementation."""

    def __init__(self, store: Optional[ProductStore] = None, **config_overrides):
        super().__init__("catalog", 8000, **config_overrides)

        self.resolver = default_resolver(self.config)
        self.store = store or PostgresProductStore(
            self.config.postgres_dsn,
            command_timeout=self.config.datastore_timeout_seconds,
        )
        self.generator = ManifestGenerator(
            self.store,
            self.resolver,
            query_timeout=self.config.datastore_timeout_seconds,
            metrics=self.metrics,
        )
        self.manifest_cache = CachedManifestSource(
            build_manifest_source(self.config, self.store, self.resolver, metrics=self.metrics),
            ttl_ms=self.config.effective_manifest_ttl_ms,
            metrics=self.metrics,
        )
        self.catalog = StaticCatalog(self.manifest_cache)

        @self.app.on_event("shutdown")
        async def _shutdown():
            if isinstance(self.store, PostgresProductStore):
                await self.store.stop()

        self._setup_catalog_routes()

        self.app.state.catalog_service = self

    def _setup_catalog_routes(self):
        """Set up manifest and lookup routes."""

        @self.app.get("/api/static-data/manifest")
        async def get_manifest():
            """Generate the manifest from the datastore for CDN caching."""
            manifest = await self.generator.generate(utc_now())

            response = JSONResponse(manifest.to_dict())
            response.headers["Cache-Control"] = (
                f"public, max-age={self.config.manifest_cdn_max_age}, "
                f"s-maxage={self.config.manifest_cdn_s_maxage}, "
                f"stale-while-revalidate={self.config.manifest_cdn_s_maxage // 2}"
            )
            response.headers["CDN-Cache-Control"] = f"public, max-age={self.config.manifest_cdn_s_maxage}"
            response.headers["ETag"] = f'"manifest-{manifest.version}"'
            return response

        @self.app.get("/api/static-data/products/{slug}")
        async def get_product(slug: str):
            product = await self.catalog.get_product(slug)
            if product is None:
                raise HTTPException(status_code=404, detail=f"Product '{slug}' not found")
            return product.to_dict()

        @self.app.get("/api/static-data/categories/{category_slug}/products")
        async def get_category_products(
            category_slug: str,
            limit: int = Query(DEFAULT_CATEGORY_LIMIT, ge=0, le=100),
        ):
            products = await self.catalog.get_products_by_category(category_slug, limit)
            return {
                "category": category_slug,
                "count": len(products),
                "products": [product.to_dict() for product in products],
            }

        @self.app.get("/api/static-data/collections/{name}")
        async def get_collection(
            name: str,
            limit: int = Query(DEFAULT_COLLECTION_LIMIT, ge=0, le=100),
        ):
            products = await self.catalog.get_collection(name, limit)
            return {
                "collection": name,
                "count": len(products),
                "products": [product.to_dict() for product in products],
            }

        @self.app.post("/api/cache/invalidate")
        async def invalidate_cache():
            previous = self.manifest_cache.peek()
            self.manifest_cache.invalidate()
            return {
                "success": True,
                "invalidated_version": previous.version if previous else None,
                "timestamp": utc_now().isoformat(),
            }

    async def _check_dependencies(self) -> Dict[str, Any]:
        manifest = self.manifest_cache.peek()
        return {
            "manifest_cache": self.manifest_cache.state.value,
            "manifest_version": manifest.version if manifest else None,
            "manifest_source": self.manifest_cache.source.health(),
        }


def create_app(store: Optional[ProductStore] = None, **config_overrides):
    """Create the catalog FastAPI application."""
    service = CatalogService(store=store, **config_overrides)
    return service.app


if __name__ == "__main__":
    CatalogService().run()
