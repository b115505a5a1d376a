"""Best-effort reporting of unavailable products seen in search results."""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional

from . import config
from .http import HttpClient, RequestMetrics
from .models import SearchResult

logger = logging.getLogger(__name__)


def unavailable_results(results: Iterable[SearchResult]) -> List[SearchResult]:
    return [r for r in results if r.is_unavailable]


def build_tracking_payload(user_id: str, query: str, results: Iterable[SearchResult]) -> Dict[str, Any]:
    return {
        "userId": user_id,
        "searchQuery": query,
        "unavailableProducts": [
            {
                "productId": r.id,
                "productName": r.name,
                "shopId": r.shop_id,
                "shopName": r.shop_name,
                "category": r.category,
                "price": r.price,
            }
            for r in results
        ],
    }


class AlertTracker:
    def __init__(
        self,
        http_client: HttpClient,
        user_id: Optional[str] = None,
        max_workers: int = config.TRACKING_MAX_WORKERS,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.http = http_client
        self.user_id = user_id
        self.metrics = metrics
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="alerts")

    def track_unavailable(self, query: str, results: Iterable[SearchResult]) -> Optional[Future]:
        """Queue a report and return immediately; None when nothing is sent."""
        if not self.user_id:
            return None
        unavailable = unavailable_results(results)
        if not unavailable:
            return None
        payload = build_tracking_payload(self.user_id, query, unavailable)
        logger.info("Queueing unavailable-product report (%s products)", len(unavailable))
        return self._executor.submit(self._send_safe, payload)

    def _send_safe(self, payload: Dict[str, Any]) -> bool:
        try:
            if self.metrics is not None:
                self.metrics.inc_network("track")
            self.http.post_json(config.endpoint(config.ALERTS_TRACK_PATH), payload, authenticated=True)
            return True
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to track unavailable products: %s", exc)
            return False

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
