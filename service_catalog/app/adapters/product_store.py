"""
Primary datastore access for manifest generation.

Rows are normalized here, immediately after the query, so the rest of the
manifest layer only ever sees ``ProductRow`` values: the category join may
come back as a record, a one-element list, a JSON string or NULL, and image
lists may be JSON text or already-decoded arrays.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import asyncpg

from shared.errors import DataIntegrityError, GenerationFailure
from shared.logging import get_logger


PUBLISHED_PRODUCTS_QUERY = """
SELECT p.id,
       p.name,
       p.description,
       p.price,
       p.compare_at_price,
       p.slug,
       p.images,
       p.is_featured,
       p.is_trending,
       p.created_at,
       CASE WHEN c.id IS NULL THEN NULL
            ELSE json_build_object('id', c.id, 'name', c.name, 'slug', c.slug)
       END AS category
FROM products p
LEFT JOIN categories c ON c.id = p.category_id
WHERE p.is_published = TRUE
ORDER BY p.created_at DESC, p.id
""".strip()


@dataclass(frozen=True)
class CategoryRef:
    id: str
    name: str
    slug: str


@dataclass(frozen=True)
class ProductRow:
    """A published product as read from the datastore."""

    id: str
    name: str
    description: str
    price: float
    slug: str
    compare_at_price: Optional[float] = None
    images: Tuple[Dict[str, str], ...] = ()
    is_featured: bool = False
    is_trending: bool = False
    created_at: Optional[datetime] = None
    category: Optional[CategoryRef] = None

    def image_references(self) -> List[str]:
        """Stored image references in order, preferring the web-optimized URL."""
        references = []
        for image in self.images:
            reference = image.get("web_image_url") or image.get("url")
            if reference:
                references.append(reference)
        return references

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ProductRow":
        """Build a row from a datastore record; raises DataIntegrityError when unusable."""
        product_id = str(record.get("id") or "")
        if not product_id:
            raise DataIntegrityError("<unknown>", "missing product id")

        try:
            price = _to_float(record.get("price"))
            compare_at_price = _to_float(record.get("compare_at_price"))
            created_at = _to_datetime(record.get("created_at"))
        except (TypeError, ValueError) as exc:
            raise DataIntegrityError(product_id, "unreadable column value", {"error": str(exc)}) from exc

        if price is None:
            raise DataIntegrityError(product_id, "missing price")
        slug = record.get("slug")
        if not slug:
            raise DataIntegrityError(product_id, "missing slug")

        return cls(
            id=product_id,
            name=str(record.get("name") or ""),
            description=str(record.get("description") or ""),
            price=price,
            slug=str(slug),
            compare_at_price=compare_at_price,
            images=normalize_images(record.get("images")),
            is_featured=bool(record.get("is_featured")),
            is_trending=bool(record.get("is_trending")),
            created_at=created_at,
            category=normalize_category(record.get("category")),
        )


@dataclass(frozen=True)
class PublishedProducts:
    """Result of one published-products scan."""

    rows: Tuple[ProductRow, ...] = ()
    rejected: Tuple[DataIntegrityError, ...] = field(default_factory=tuple)


def _decode_json(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    # NUMERIC columns arrive as Decimal
    return float(value)


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_category(value: Any) -> Optional[CategoryRef]:
    """Collapse every shape a category join can take into one optional ref."""
    value = _decode_json(value)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None or not hasattr(value, "get"):
        return None

    category_id = value.get("id")
    if category_id is None:
        return None
    return CategoryRef(
        id=str(category_id),
        name=str(value.get("name") or ""),
        slug=str(value.get("slug") or ""),
    )


def normalize_images(value: Any) -> Tuple[Dict[str, str], ...]:
    """Return image references as dicts with ``url``/``web_image_url`` keys."""
    value = _decode_json(value)
    if not isinstance(value, (list, tuple)):
        return ()

    images = []
    for item in value:
        if isinstance(item, str):
            images.append({"url": item})
        elif isinstance(item, Mapping):
            images.append({
                key: str(item[key])
                for key in ("url", "web_image_url")
                if item.get(key)
            })
    return tuple(images)


def rows_from_records(records: Sequence[Mapping[str, Any]]) -> PublishedProducts:
    """Normalize raw records, separating rows that cannot be used."""
    rows: List[ProductRow] = []
    rejected: List[DataIntegrityError] = []
    for record in records:
        try:
            rows.append(ProductRow.from_record(record))
        except DataIntegrityError as exc:
            rejected.append(exc)
    return PublishedProducts(rows=tuple(rows), rejected=tuple(rejected))


class ProductStore(ABC):
    """Read interface over the products table."""

    @abstractmethod
    async def fetch_published_products(self) -> PublishedProducts:
        """Return all published products; raises GenerationFailure when the query fails."""


class PostgresProductStore(ProductStore):
    """PostgreSQL-backed product store."""

    def __init__(self, dsn: str, *, command_timeout: float = 30.0):
        self.dsn = dsn
        self.command_timeout = command_timeout
        self.logger = get_logger("catalog.product_store")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Open the connection pool."""
        if self.pool is not None:
            return
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=1,
                max_size=5,
                command_timeout=self.command_timeout
            )
            self.logger.info("PostgreSQL product store started")
        except Exception as e:
            self.logger.error("Failed to start PostgreSQL product store", error=str(e))
            raise GenerationFailure("Product store unavailable", {"error": str(e)}) from e

    async def stop(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL product store stopped")

    async def fetch_published_products(self) -> PublishedProducts:
        await self.start()
        try:
            async with self.pool.acquire() as conn:
                records = await conn.fetch(PUBLISHED_PRODUCTS_QUERY)
        except Exception as e:
            self.logger.error("Published products query failed", error=str(e))
            raise GenerationFailure("Failed to fetch products from database", {"error": str(e)}) from e

        result = rows_from_records(records)
        self.logger.debug(
            "Published products fetched",
            rows=len(result.rows),
            rejected=len(result.rejected),
        )
        return result
