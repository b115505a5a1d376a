"""Keep the shop and office lists in step with the visible items and services."""
from __future__ import annotations

from typing import Iterable, List, Optional, Union

from .models import CategoryFilter, SearchResult, ShopRecord


def visible_shop_ids(*visible: Iterable[SearchResult]) -> List[str]:
    """Distinct shop ids in first-seen order."""
    seen: List[str] = []
    known = set()
    for results in visible:
        for result in results:
            if result.shop_id and result.shop_id not in known:
                known.add(result.shop_id)
                seen.append(result.shop_id)
    return seen


def _restrict(records: Iterable[ShopRecord], shop_ids: Iterable[str]) -> List[ShopRecord]:
    wanted = set(shop_ids)
    return [record for record in records if record.id in wanted]


def filter_shops(
    shops: Iterable[ShopRecord],
    shop_ids: Iterable[str],
    category: Union[CategoryFilter, str],
) -> List[ShopRecord]:
    if CategoryFilter(category) is CategoryFilter.SHOPS:
        return list(shops)
    return _restrict(shops, shop_ids)


def filter_offices(
    offices: Iterable[ShopRecord],
    office_ids: Optional[Iterable[str]] = None,
) -> List[ShopRecord]:
    """Offices are keyed by their own ids, not by item/service shop ids.

    Without an office-scoped id set every office is shown.
    """
    if office_ids is None:
        return list(offices)
    return _restrict(offices, office_ids)
