"""
Static catalog manifest: data model, classification and generation.
"""

from .classifier import (
    BEST_DEALS,
    COLLECTION_NAMES,
    FEATURED,
    NEW_ARRIVALS,
    NEW_ARRIVALS_WINDOW,
    TRENDING,
    classify,
)
from .generator import ManifestGenerator, generate_summary
from .models import (
    CategoryBucket,
    Collections,
    Manifest,
    ProductImages,
    ProductMetadata,
    StaticProduct,
)

__all__ = [
    "BEST_DEALS",
    "COLLECTION_NAMES",
    "FEATURED",
    "NEW_ARRIVALS",
    "NEW_ARRIVALS_WINDOW",
    "TRENDING",
    "classify",
    "ManifestGenerator",
    "generate_summary",
    "CategoryBucket",
    "Collections",
    "Manifest",
    "ProductImages",
    "ProductMetadata",
    "StaticProduct",
]
