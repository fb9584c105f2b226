"""
Static manifest data model.

A manifest is built wholesale and never edited: mappings are read-only views
and id sequences are tuples. The JSON wire format uses camelCase keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..images.resolver import ImageVariants, ResponsiveSrcSet
from .classifier import BEST_DEALS, FEATURED, NEW_ARRIVALS, TRENDING


def _object(value: Any, field_name: str) -> Dict[str, Any]:
    """A JSON object field; missing or null reads as empty."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"{field_name} must be an object, got {type(value).__name__}")
    return value


def _array(value: Any, field_name: str) -> List[Any]:
    """A JSON array field; missing or null reads as empty."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"{field_name} must be an array, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class ProductImages:
    primary: ImageVariants
    src_set: ResponsiveSrcSet
    gallery: Tuple[ImageVariants, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary": self.primary.to_dict(),
            "srcSet": self.src_set.to_dict(),
            "gallery": [variants.to_dict() for variants in self.gallery],
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ProductImages":
        payload = _object(payload, "images")
        return cls(
            primary=ImageVariants.from_dict(payload["primary"]),
            src_set=ResponsiveSrcSet.from_dict(_object(payload.get("srcSet"), "srcSet")),
            gallery=tuple(ImageVariants.from_dict(item) for item in _array(payload.get("gallery"), "gallery")),
        )


@dataclass(frozen=True)
class ProductMetadata:
    last_modified: str
    etag: str

    def to_dict(self) -> Dict[str, str]:
        return {"lastModified": self.last_modified, "etag": self.etag}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ProductMetadata":
        payload = _object(payload, "metadata")
        return cls(last_modified=str(payload.get("lastModified", "")), etag=str(payload.get("etag", "")))


@dataclass(frozen=True)
class StaticProduct:
    """Display-ready product record served from the manifest."""

    id: str
    name: str
    description: str
    price: float
    slug: str
    category: str
    category_slug: str
    images: ProductImages
    metadata: ProductMetadata
    compare_at_price: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "slug": self.slug,
            "category": self.category,
            "categorySlug": self.category_slug,
            "images": self.images.to_dict(),
            "metadata": self.metadata.to_dict(),
        }
        if self.compare_at_price is not None:
            payload["compareAtPrice"] = self.compare_at_price
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "StaticProduct":
        payload = _object(payload, "product")
        compare_at = payload.get("compareAtPrice")
        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            description=payload.get("description") or "",
            price=float(payload["price"]),
            slug=str(payload["slug"]),
            category=payload.get("category") or "",
            category_slug=payload.get("categorySlug") or "",
            images=ProductImages.from_dict(payload["images"]),
            metadata=ProductMetadata.from_dict(payload.get("metadata")),
            compare_at_price=float(compare_at) if compare_at is not None else None,
        )


@dataclass(frozen=True)
class CategoryBucket:
    """Products of one category in datastore order."""

    id: str
    name: str
    slug: str
    product_ids: Tuple[str, ...] = ()
    featured_products: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "productIds": list(self.product_ids),
            "featuredProducts": list(self.featured_products),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "CategoryBucket":
        payload = _object(payload, "category")
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name", "")),
            slug=str(payload.get("slug", "")),
            product_ids=tuple(str(pid) for pid in _array(payload.get("productIds"), "productIds")),
            featured_products=tuple(str(pid) for pid in _array(payload.get("featuredProducts"), "featuredProducts")),
        )


@dataclass(frozen=True)
class Collections:
    featured: Tuple[str, ...] = ()
    trending: Tuple[str, ...] = ()
    new_arrivals: Tuple[str, ...] = ()
    best_deals: Tuple[str, ...] = ()

    def get(self, name: str) -> Tuple[str, ...]:
        """Return a collection by its wire name."""
        if name == FEATURED:
            return self.featured
        if name == TRENDING:
            return self.trending
        if name == NEW_ARRIVALS:
            return self.new_arrivals
        if name == BEST_DEALS:
            return self.best_deals
        raise KeyError(name)

    def all_ids(self) -> Iterable[str]:
        for ids in (self.featured, self.trending, self.new_arrivals, self.best_deals):
            yield from ids

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            FEATURED: list(self.featured),
            TRENDING: list(self.trending),
            NEW_ARRIVALS: list(self.new_arrivals),
            BEST_DEALS: list(self.best_deals),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Collections":
        payload = _object(payload, "collections")

        def _ids(name: str) -> Tuple[str, ...]:
            return tuple(str(pid) for pid in _array(payload.get(name), name))

        return cls(
            featured=_ids(FEATURED),
            trending=_ids(TRENDING),
            new_arrivals=_ids(NEW_ARRIVALS),
            best_deals=_ids(BEST_DEALS),
        )


@dataclass(frozen=True)
class Manifest:
    """Versioned snapshot of the catalog."""

    products: Mapping[str, StaticProduct]
    categories: Mapping[str, CategoryBucket]
    collections: Collections = field(default_factory=Collections)
    last_updated: str = ""
    version: int = 0

    def __post_init__(self):
        object.__setattr__(self, "products", MappingProxyType(dict(self.products)))
        object.__setattr__(self, "categories", MappingProxyType(dict(self.categories)))
        dangling = self.dangling_product_ids()
        if dangling:
            raise ValueError(f"Manifest references unknown product ids: {sorted(dangling)}")

    def dangling_product_ids(self) -> set:
        referenced = set(self.collections.all_ids())
        for bucket in self.categories.values():
            referenced.update(bucket.product_ids)
            referenced.update(bucket.featured_products)
        return referenced - set(self.products)

    def find_by_slug(self, slug: str) -> Optional[StaticProduct]:
        for product in self.products.values():
            if product.slug == slug:
                return product
        return None

    def find_category(self, slug: str) -> Optional[CategoryBucket]:
        for bucket in self.categories.values():
            if bucket.slug == slug:
                return bucket
        return None

    def resolve(self, product_ids: Iterable[str]) -> List[StaticProduct]:
        """Resolve ids in order, skipping ids not present in this manifest."""
        return [self.products[pid] for pid in product_ids if pid in self.products]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "products": {pid: product.to_dict() for pid, product in self.products.items()},
            "categories": {cid: bucket.to_dict() for cid, bucket in self.categories.items()},
            "collections": self.collections.to_dict(),
            "lastUpdated": self.last_updated,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Manifest":
        """Parse a manifest document; raises KeyError, TypeError or ValueError when malformed."""
        if not isinstance(payload, dict):
            raise TypeError("Manifest document must be a JSON object")
        return cls(
            products={
                str(pid): StaticProduct.from_dict(item)
                for pid, item in _object(payload.get("products"), "products").items()
            },
            categories={
                str(cid): CategoryBucket.from_dict(item)
                for cid, item in _object(payload.get("categories"), "categories").items()
            },
            collections=Collections.from_dict(payload.get("collections")),
            last_updated=str(payload.get("lastUpdated", "")),
            version=int(payload["version"]),
        )
