"""
Test helpers and factories for the catalog service tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from service_catalog.app.adapters.product_store import ProductStore, PublishedProducts, rows_from_records
from service_catalog.app.caching.sources import ManifestSource
from service_catalog.app.images.resolver import ImageUrlResolver
from service_catalog.app.manifest.models import Manifest


TEST_NOW = datetime(2026, 10, 1, 12, 0, 0, tzinfo=timezone.utc)
STORAGE_BASE_URL = "https://storage.example.com"
STORAGE_BUCKET = "product-images"


def create_resolver() -> ImageUrlResolver:
    """Resolver pointed at the test storage host."""
    return ImageUrlResolver(STORAGE_BASE_URL, STORAGE_BUCKET)


def create_product_record(product_id: str, **overrides: Any) -> Dict[str, Any]:
    """Datastore record for a published product with sensible defaults."""
    record: Dict[str, Any] = {
        "id": product_id,
        "name": f"Product {product_id}",
        "description": f"Description of {product_id}",
        "price": 1000,
        "compare_at_price": None,
        "slug": f"product-{product_id}",
        "images": [
            {
                "url": f"{STORAGE_BASE_URL}/storage/v1/object/public/{STORAGE_BUCKET}/{product_id}.png?width=800",
                "web_image_url": None,
            }
        ],
        "is_featured": False,
        "is_trending": False,
        "created_at": TEST_NOW - timedelta(days=90),
        "category": {"id": "cat-tables", "name": "Tables", "slug": "tables"},
    }
    record.update(overrides)
    return record


def create_test_records() -> List[Dict[str, Any]]:
    """A small catalog covering every collection and one unusable row."""
    return [
        create_product_record("p1", is_featured=True, price=800, compare_at_price=1000),
        create_product_record("p2", is_trending=True, created_at=TEST_NOW - timedelta(days=3)),
        create_product_record(
            "p3",
            is_featured=True,
            category=[{"id": "cat-chairs", "name": "Chairs", "slug": "chairs"}],
        ),
        create_product_record("p4", images=[]),
        create_product_record("p5", category=None, price=1000, compare_at_price=1000),
    ]


class FakeProductStore(ProductStore):
    """In-memory product store that counts queries."""

    def __init__(
        self,
        records: Optional[Sequence[Dict[str, Any]]] = None,
        *,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.records = list(records or [])
        self.error = error
        self.delay = delay
        self.calls = 0

    async def fetch_published_products(self) -> PublishedProducts:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return rows_from_records(self.records)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = TEST_NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, milliseconds: float) -> None:
        self.now += timedelta(milliseconds=milliseconds)


class StubManifestSource(ManifestSource):
    """Manifest source returning queued outcomes, optionally held open by a gate."""

    name = "stub"

    def __init__(self, *outcomes: Any, gate: Optional[asyncio.Event] = None):
        self.outcomes = list(outcomes)
        self.gate = gate
        self.calls = 0

    async def load(self, now: datetime) -> Manifest:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes[0] if len(self.outcomes) == 1 else self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def create_manifest(version: int = 1, product_ids: Sequence[str] = ("p1",)) -> Manifest:
    """Minimal manifest with one category bucket holding every product."""
    resolver = create_resolver()
    payload = {
        "products": {
            pid: {
                "id": pid,
                "name": f"Product {pid}",
                "description": "",
                "price": 100.0,
                "slug": f"product-{pid}",
                "category": "Tables",
                "categorySlug": "tables",
                "images": {
                    "primary": resolver.variants(f"{pid}.png").to_dict(),
                    "srcSet": resolver.responsive_src_set(f"{pid}.png").to_dict(),
                    "gallery": [],
                },
                "metadata": {"lastModified": TEST_NOW.isoformat(), "etag": f'"{pid}"'},
            }
            for pid in product_ids
        },
        "categories": {
            "cat-tables": {
                "id": "cat-tables",
                "name": "Tables",
                "slug": "tables",
                "productIds": list(product_ids),
                "featuredProducts": [],
            }
        },
        "collections": {"featured": list(product_ids), "trending": [], "newArrivals": [], "bestDeals": []},
        "lastUpdated": TEST_NOW.isoformat(),
        "version": version,
    }
    return Manifest.from_dict(payload)
