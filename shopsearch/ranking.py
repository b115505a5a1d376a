"""Sort keys for result lists and shop lists."""
from __future__ import annotations

import math
from typing import Iterable, List, Optional, Tuple, Union

from .models import SearchResult, ShopRecord, SortCriterion


def safe_float(value: Optional[float], default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        out = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(out):
        return default
    return out


def reference_matches(result: SearchResult, query: str) -> bool:
    needle = (query or "").strip().lower()
    if not result.reference_id or not needle:
        return False
    return needle in result.reference_id.lower()


def relevance_sort_key(result: SearchResult, query: str) -> Tuple[bool, bool, float]:
    return (
        not reference_matches(result, query),
        result.availability is False,
        -safe_float(result.match_score),
    )


def distance_sort_key(row: Union[SearchResult, ShopRecord]) -> Tuple[bool, float]:
    # unknown distance sorts after every known one
    return (row.distance_km is None, safe_float(row.distance_km, math.inf))


def rating_sort_key(result: SearchResult) -> float:
    return -safe_float(result.match_score)


def shop_rating_sort_key(shop: ShopRecord) -> float:
    return -safe_float(shop.average_rating)


def price_sort_key(result: SearchResult) -> float:
    # missing price counts as 0 and sorts first
    return safe_float(result.price)


def sort_results(
    results: Iterable[SearchResult],
    by: Union[SortCriterion, str],
    query: str = "",
) -> List[SearchResult]:
    """Stable sort of item/service results; returns a new list."""
    by = SortCriterion(by)
    rows = list(results)
    if by is SortCriterion.RELEVANCE:
        return sorted(rows, key=lambda r: relevance_sort_key(r, query))
    if by is SortCriterion.DISTANCE:
        return sorted(rows, key=distance_sort_key)
    if by is SortCriterion.RATING:
        return sorted(rows, key=rating_sort_key)
    return sorted(rows, key=price_sort_key)


def sort_shops(shops: Iterable[ShopRecord], by: Union[SortCriterion, str]) -> List[ShopRecord]:
    """Shops only order by distance or rating; other criteria keep input order."""
    by = SortCriterion(by)
    rows = list(shops)
    if by is SortCriterion.DISTANCE:
        return sorted(rows, key=distance_sort_key)
    if by is SortCriterion.RATING:
        return sorted(rows, key=shop_rating_sort_key)
    return rows
