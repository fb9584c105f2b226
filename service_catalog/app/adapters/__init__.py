"""
Adapters package for the Catalog Service.

Contains the boundaries to external systems used by the manifest layer:

- product_store: asyncpg access to published products, with row
  normalization applied right after the query
- manifest_client: HTTP client for the published manifest document,
  with retries and a circuit breaker

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .manifest_client import ManifestClient
from .product_store import (
    CategoryRef,
    PostgresProductStore,
    ProductRow,
    ProductStore,
    PublishedProducts,
    normalize_category,
)

__all__ = [
    "ManifestClient",
    "CategoryRef",
    "PostgresProductStore",
    "ProductRow",
    "ProductStore",
    "PublishedProducts",
    "normalize_category",
]
