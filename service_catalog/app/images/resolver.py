"""
Static image URL resolution for catalog products.

Image identifiers are opaque filenames inside the public product bucket. All
variants currently point at the original object URL; resizing and format
negotiation happen at the edge layer in front of object storage, so nothing
here performs network I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

from shared.config import BaseConfig


PLACEHOLDER_IMAGE_ID = "placeholder.png"

SRCSET_WIDTHS = (320, 640, 800, 1200)
SRCSET_SIZES = "(max-width: 640px) 320px, (max-width: 1024px) 640px, (max-width: 1280px) 800px, 1200px"


@dataclass(frozen=True)
class ImageVariants:
    """Named URLs for every rendition of a single image."""

    mobile: str
    mobile_avif: str
    tablet: str
    tablet_avif: str
    desktop: str
    desktop_avif: str
    thumb: str
    thumb_avif: str
    hero: str
    hero_avif: str
    original: str

    _WIRE_NAMES = {
        "mobile": "mobile",
        "mobile_avif": "mobileAvif",
        "tablet": "tablet",
        "tablet_avif": "tabletAvif",
        "desktop": "desktop",
        "desktop_avif": "desktopAvif",
        "thumb": "thumb",
        "thumb_avif": "thumbAvif",
        "hero": "hero",
        "hero_avif": "heroAvif",
        "original": "original",
    }

    def to_dict(self) -> Dict[str, str]:
        return {self._WIRE_NAMES[key]: value for key, value in asdict(self).items()}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ImageVariants":
        if not isinstance(payload, dict):
            raise TypeError(f"image variants must be an object, got {type(payload).__name__}")
        original = str(payload["original"])
        # Older documents omit some modern-format renditions.
        return cls(**{
            attr: str(payload.get(wire, original))
            for attr, wire in cls._WIRE_NAMES.items()
        })

    def urls(self) -> List[str]:
        return list(asdict(self).values())


@dataclass(frozen=True)
class ResponsiveSrcSet:
    """Values for the ``srcset``/``sizes`` attributes of a responsive image."""

    src_set: str
    src_set_avif: str
    sizes: str

    def to_dict(self) -> Dict[str, str]:
        return {"srcSet": self.src_set, "srcSetAvif": self.src_set_avif, "sizes": self.sizes}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ResponsiveSrcSet":
        return cls(
            src_set=str(payload.get("srcSet", "")),
            src_set_avif=str(payload.get("srcSetAvif", "")),
            sizes=str(payload.get("sizes", SRCSET_SIZES)),
        )


@dataclass(frozen=True)
class ImageHints:
    """Resource hints for above-the-fold (preload) and later (prefetch) images."""

    preload: Tuple[str, ...]
    prefetch: Tuple[str, ...]


def normalize_image_id(reference: Optional[str]) -> str:
    """
    Reduce an image reference to its bare filename.

    Accepts full URLs with query strings, storage paths or bare filenames.
    Returns an empty string when nothing usable remains; never raises.
    """
    if not isinstance(reference, str):
        return ""
    reference = reference.strip()
    if not reference:
        return ""

    try:
        path = urlsplit(reference).path
    except ValueError:
        path = reference.split("?", 1)[0].split("#", 1)[0]

    segments = [segment for segment in path.split("/") if segment.strip()]
    if not segments:
        return ""
    return segments[-1].strip()


class ImageUrlResolver:
    """Builds deterministic variant URLs for images stored in a public bucket."""

    def __init__(self, storage_base_url: str, bucket: str):
        self.storage_base_url = storage_base_url.rstrip("/")
        self.bucket = bucket.strip("/")

    @property
    def public_prefix(self) -> str:
        return f"{self.storage_base_url}/storage/v1/object/public/{self.bucket}"

    def object_url(self, image_id: Optional[str]) -> str:
        """Public URL of the original object, or of the placeholder."""
        bare_id = normalize_image_id(image_id) or PLACEHOLDER_IMAGE_ID
        return f"{self.public_prefix}/{bare_id}"

    def variants(self, image_id: Optional[str]) -> ImageVariants:
        """Return the full variant set for an image reference."""
        original = self.object_url(image_id)
        return ImageVariants(
            mobile=original,
            mobile_avif=original,
            tablet=original,
            tablet_avif=original,
            desktop=original,
            desktop_avif=original,
            thumb=original,
            thumb_avif=original,
            hero=original,
            hero_avif=original,
            original=original,
        )

    def responsive_src_set(self, image_id: Optional[str]) -> ResponsiveSrcSet:
        urls = self.variants(image_id)
        src_set = ", ".join(f"{urls.original} {width}w" for width in SRCSET_WIDTHS)
        src_set_avif = ", ".join(f"{urls.original} {width}w" for width in SRCSET_WIDTHS)
        return ResponsiveSrcSet(src_set=src_set, src_set_avif=src_set_avif, sizes=SRCSET_SIZES)

    def optimal_url(self, image_id: Optional[str]) -> str:
        """URL for a single ``<img src>``; the edge layer picks the rendition."""
        return self.variants(image_id).original

    def preload_hints(self, images: Iterable[Tuple[str, bool]]) -> ImageHints:
        """Split ``(image_id, priority)`` pairs into preload and prefetch URLs."""
        preload: List[str] = []
        prefetch: List[str] = []
        for image_id, priority in images:
            urls = self.variants(image_id)
            if priority:
                preload.extend((urls.desktop_avif, urls.desktop))
            else:
                prefetch.extend((urls.mobile, urls.tablet))
        return ImageHints(preload=tuple(preload), prefetch=tuple(prefetch))


def default_resolver(config: Optional[BaseConfig] = None) -> ImageUrlResolver:
    """Build a resolver from configuration, read from the environment if not given."""
    config = config or BaseConfig()
    return ImageUrlResolver(config.storage_base_url, config.storage_bucket)
