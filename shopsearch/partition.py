"""Split a raw result stream into items, services, shops and offices."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Tuple

from .errors import ClassificationDefect
from .geo import Coordinate, great_circle_km
from .models import ITEM_TYPES, SearchResult, ShopRecord

logger = logging.getLogger(__name__)

SHOP_TYPES = frozenset({"product", "service", "office"})

ITEMS = "items"
SERVICES = "services"
SHOPS = "shops"
OFFICES = "offices"


@dataclass(frozen=True)
class Partitions:
    items: Tuple[SearchResult, ...] = ()
    services: Tuple[SearchResult, ...] = ()
    shops: Tuple[ShopRecord, ...] = ()
    offices: Tuple[ShopRecord, ...] = ()
    dropped: int = 0

    @property
    def total(self) -> int:
        return len(self.items) + len(self.services) + len(self.shops) + len(self.offices)


def classify(result: SearchResult) -> str:
    result_type = result.result_type
    if result_type in ITEM_TYPES:
        return ITEMS
    if result_type == "service":
        return SERVICES
    if result_type == "shop":
        return SHOPS
    if result_type == "office":
        return OFFICES
    raise ClassificationDefect(result.id, result_type)


def to_shop_record(result: SearchResult) -> ShopRecord:
    if result.shop_type in SHOP_TYPES:
        shop_type = result.shop_type
    elif result.result_type == "service":
        shop_type = "service"
    elif result.result_type == "office":
        shop_type = "office"
    else:
        shop_type = "product"
    return ShopRecord(
        id=result.shop_id or result.id,
        shop_name=result.shop_name or result.name,
        address=result.shop_address,
        phone=result.shop_phone or "",
        shop_type=shop_type,
        location=result.location,
        distance_km=result.distance_km,
        average_rating=result.average_rating,
        category=result.category,
        reference_id=result.reference_id,
    )


def parent_shop_record(result: SearchResult) -> ShopRecord:
    record = to_shop_record(result)
    return replace(
        record,
        shop_name=result.shop_name,
        reference_id=None,
        average_rating=None,
        category=None,
    )


def attach_distances(results: Iterable[SearchResult], origin: Optional[Coordinate]) -> List[SearchResult]:
    """Return copies with distance_km set from origin; unknown stays None."""
    attached: List[SearchResult] = []
    for result in results:
        distance = None
        if origin is not None and result.location is not None:
            distance = great_circle_km(origin, result.location)
        attached.append(replace(result, distance_km=distance))
    return attached


def partition(results: Iterable[SearchResult], synthesize_parent_shops: bool = False) -> Partitions:
    """Classify every result into exactly one bucket.

    Unknown result types are logged and dropped. With
    ``synthesize_parent_shops`` each item/service whose shop is not already in
    the shop bucket contributes a shop record built from its own shop fields
    (used for direct identifier hits, which arrive without their shop).
    """
    buckets = {ITEMS: [], SERVICES: [], SHOPS: [], OFFICES: []}
    dropped = 0
    for result in results:
        try:
            bucket = classify(result)
        except ClassificationDefect as exc:
            logger.warning("Dropping result: %s", exc)
            dropped += 1
            continue
        if bucket in (SHOPS, OFFICES):
            buckets[bucket].append(to_shop_record(result))
        else:
            buckets[bucket].append(result)

    if synthesize_parent_shops:
        known = {shop.id for shop in buckets[SHOPS]}
        for result in buckets[ITEMS] + buckets[SERVICES]:
            if result.shop_id and result.shop_id not in known:
                known.add(result.shop_id)
                buckets[SHOPS].append(parent_shop_record(result))

    return Partitions(
        items=tuple(buckets[ITEMS]),
        services=tuple(buckets[SERVICES]),
        shops=tuple(buckets[SHOPS]),
        offices=tuple(buckets[OFFICES]),
        dropped=dropped,
    )
