"""
Domain layer for the Catalog Service.

Read-only accessors consumed by storefront pages.
"""

from .static_catalog import StaticCatalog

__all__ = [
    "StaticCatalog",
]
