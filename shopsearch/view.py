"""Assemble the four display lists for one query."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Tuple, Union

from .models import CategoryFilter, SearchResult, ShopRecord, SortCriterion
from .partition import Partitions
from .ranking import sort_results, sort_shops
from .visibility import filter_offices, filter_shops, visible_shop_ids

logger = logging.getLogger(__name__)

SHOWS_ITEMS = frozenset({CategoryFilter.ALL, CategoryFilter.ITEMS})
SHOWS_SERVICES = frozenset({CategoryFilter.ALL, CategoryFilter.SERVICES})
SHOWS_SHOPS = frozenset(
    {CategoryFilter.ALL, CategoryFilter.ITEMS, CategoryFilter.SERVICES, CategoryFilter.SHOPS}
)
SHOWS_OFFICES = frozenset({CategoryFilter.ALL, CategoryFilter.OFFICES})


class UnavailableTracker(Protocol):
    def track_unavailable(self, query: str, results: Any) -> Any:
        ...


@dataclass(frozen=True)
class ViewState:
    query: str
    sort: SortCriterion
    category: CategoryFilter
    items: Tuple[SearchResult, ...] = ()
    services: Tuple[SearchResult, ...] = ()
    shops: Tuple[ShopRecord, ...] = ()
    offices: Tuple[ShopRecord, ...] = ()
    suggestions: Tuple[str, ...] = ()
    direct_hit: bool = False
    seq: int = 0

    @property
    def counts(self) -> Dict[str, int]:
        return {
            "items": len(self.items),
            "services": len(self.services),
            "shops": len(self.shops),
            "offices": len(self.offices),
        }

    @property
    def total_count(self) -> int:
        return sum(self.counts.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "seq": self.seq,
            "sort": self.sort.value,
            "category": self.category.value,
            "direct_hit": self.direct_hit,
            "total_count": self.total_count,
            "counts": self.counts,
            "suggestions": list(self.suggestions),
            "items": [r.to_dict() for r in self.items],
            "services": [r.to_dict() for r in self.services],
            "shops": [s.to_dict() for s in self.shops],
            "offices": [s.to_dict() for s in self.offices],
        }


def empty_view(
    query: str = "",
    sort: Union[SortCriterion, str] = SortCriterion.RELEVANCE,
    category: Union[CategoryFilter, str] = CategoryFilter.ALL,
    seq: int = 0,
) -> ViewState:
    return ViewState(query=query, sort=SortCriterion(sort), category=CategoryFilter(category), seq=seq)


def compose_view(
    partitions: Partitions,
    query: str,
    sort: Union[SortCriterion, str] = SortCriterion.RELEVANCE,
    category: Union[CategoryFilter, str] = CategoryFilter.ALL,
    suggestions: Tuple[str, ...] = (),
    direct_hit: bool = False,
    seq: int = 0,
    tracker: Optional[UnavailableTracker] = None,
) -> ViewState:
    sort = SortCriterion(sort)
    category = CategoryFilter(category)

    items = list(partitions.items) if category in SHOWS_ITEMS else []
    services = list(partitions.services) if category in SHOWS_SERVICES else []
    if not direct_hit:
        items = sort_results(items, sort, query)
        services = sort_results(services, sort, query)

    shop_ids = visible_shop_ids(items, services)
    shops = filter_shops(partitions.shops, shop_ids, category) if category in SHOWS_SHOPS else []
    offices = filter_offices(partitions.offices) if category in SHOWS_OFFICES else []
    if not direct_hit:
        shops = sort_shops(shops, sort)
        offices = sort_shops(offices, sort)

    view = ViewState(
        query=query,
        sort=sort,
        category=category,
        items=tuple(items),
        services=tuple(services),
        shops=tuple(shops),
        offices=tuple(offices),
        suggestions=tuple(suggestions),
        direct_hit=direct_hit,
        seq=seq,
    )

    if tracker is not None:
        report_unavailable(tracker, query, partitions)
    return view


def report_unavailable(tracker: UnavailableTracker, query: str, partitions: Partitions) -> None:
    """Hand every item and service to the tracker; failures are only logged."""
    try:
        tracker.track_unavailable(query, partitions.items + partitions.services)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not queue unavailable-product report: %s", exc)
