"""Search result records and the response adapters that build them."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .geo import Coordinate, coordinate_from_dict

logger = logging.getLogger(__name__)

RESULT_TYPES = ("item", "menu", "service", "shop", "product", "office")
ITEM_TYPES = frozenset({"item", "menu", "product"})


class SortCriterion(str, Enum):
    RELEVANCE = "relevance"
    DISTANCE = "distance"
    RATING = "rating"
    PRICE = "price"


class CategoryFilter(str, Enum):
    ALL = "all"
    ITEMS = "items"
    SERVICES = "services"
    SHOPS = "shops"
    OFFICES = "offices"


@dataclass(frozen=True)
class SearchResult:
    id: str
    result_type: str
    name: str = ""
    description: str = ""
    shop_id: str = ""
    shop_name: str = ""
    shop_address: str = ""
    shop_phone: Optional[str] = None
    reference_id: Optional[str] = None
    price: Optional[float] = None
    distance_km: Optional[float] = None
    match_score: float = 0.0
    category: Optional[str] = None
    availability: bool = True
    in_stock: Optional[int] = None
    location: Optional[Coordinate] = None
    shop_type: Optional[str] = None
    average_rating: Optional[float] = None
    image_url: Optional[str] = None

    @property
    def is_unavailable(self) -> bool:
        return self.availability is False or self.in_stock == 0

    def to_dict(self) -> Dict[str, Any]:
        row = asdict(self)
        row["location"] = self.location.to_dict() if self.location else None
        return row


@dataclass(frozen=True)
class ShopRecord:
    id: str
    shop_name: str
    address: str
    phone: str
    shop_type: str
    location: Optional[Coordinate] = None
    distance_km: Optional[float] = None
    average_rating: Optional[float] = None
    category: Optional[str] = None
    reference_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        row = asdict(self)
        row["location"] = self.location.to_dict() if self.location else None
        return row


# Adapter/mapper for backend search response fields

def _opt_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _opt_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _opt_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_search_result(raw: Dict[str, Any]) -> Optional[SearchResult]:
    result_id = raw.get("id")
    if not result_id:
        return None
    try:
        location = coordinate_from_dict(raw.get("location"))
    except (TypeError, ValueError) as exc:
        logger.warning("Dropping invalid location on result %s: %s", result_id, exc)
        location = None
    availability = raw.get("availability")
    return SearchResult(
        id=str(result_id),
        result_type=str(raw.get("resultType") or raw.get("type") or ""),
        name=raw.get("name") or "",
        description=raw.get("description") or "",
        shop_id=str(raw.get("shopId") or ""),
        shop_name=raw.get("shopName") or "",
        shop_address=raw.get("shopAddress") or "",
        shop_phone=raw.get("shopPhone"),
        reference_id=_opt_str(raw.get("referenceId")),
        price=_opt_float(raw.get("price")),
        match_score=_opt_float(raw.get("matchScore")) or 0.0,
        category=raw.get("category"),
        availability=False if availability is False else True,
        in_stock=_opt_int(raw.get("inStock")),
        location=location,
        shop_type=raw.get("shopType"),
        average_rating=_opt_float(raw.get("averageRating")),
        image_url=raw.get("imageUrl"),
    )


def parse_search_response(payload: Any) -> List[SearchResult]:
    if isinstance(payload, dict):
        payload = payload.get("results") or []
    parsed: List[SearchResult] = []
    for raw in payload or []:
        if not isinstance(raw, dict):
            continue
        result = parse_search_result(raw)
        if result is not None:
            parsed.append(result)
    return parsed
