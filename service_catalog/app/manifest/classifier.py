"""
Collection classification for manifest generation.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, FrozenSet, Optional


FEATURED = "featured"
TRENDING = "trending"
NEW_ARRIVALS = "newArrivals"
BEST_DEALS = "bestDeals"

COLLECTION_NAMES = (FEATURED, TRENDING, NEW_ARRIVALS, BEST_DEALS)

NEW_ARRIVALS_WINDOW = timedelta(days=30)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_best_deal(price: Optional[float], compare_at_price: Optional[float]) -> bool:
    """A deal needs a compare-at price strictly above the selling price."""
    if price is None or compare_at_price is None:
        return False
    return compare_at_price > price


def is_new_arrival(created_at: Optional[datetime], now: datetime) -> bool:
    """
    True when ``created_at`` falls within the rolling window ending at ``now``.

    Rows stamped slightly after ``now`` (datastore clock ahead of ours) still
    count as new.
    """
    if created_at is None:
        return False
    return _as_utc(created_at) > _as_utc(now) - NEW_ARRIVALS_WINDOW


def classify(product: Any, now: datetime) -> FrozenSet[str]:
    """
    Return the collection names a product row belongs to.

    ``product`` needs ``is_featured``, ``is_trending``, ``price``,
    ``compare_at_price`` and ``created_at`` attributes. ``now`` is passed in
    explicitly so the result depends on nothing but the arguments.
    """
    names = set()
    if product.is_featured:
        names.add(FEATURED)
    if product.is_trending:
        names.add(TRENDING)
    if is_best_deal(product.price, product.compare_at_price):
        names.add(BEST_DEALS)
    if is_new_arrival(product.created_at, now):
        names.add(NEW_ARRIVALS)
    return frozenset(names)
