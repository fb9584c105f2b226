"""
Image URL resolution for static product data.
"""

from .resolver import (
    ImageHints,
    ImageUrlResolver,
    ImageVariants,
    ResponsiveSrcSet,
    default_resolver,
    normalize_image_id,
)

__all__ = [
    "ImageHints",
    "ImageUrlResolver",
    "ImageVariants",
    "ResponsiveSrcSet",
    "default_resolver",
    "normalize_image_id",
]
