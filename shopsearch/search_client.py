"""Search API client: direct reference lookups, universal search, suggestions."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from . import config
from .cache import Cache, make_request_cache_key
from .errors import ClassificationDefect, ReferenceLookupError, SearchError
from .geo import Coordinate
from .http import HttpClient, RequestMetrics
from .models import SearchResult, parse_search_response, parse_search_result
from .partition import classify
from .reference_id import is_reference_id, normalize_query

logger = logging.getLogger(__name__)


@dataclass
class GatewayResult:
    results: List[SearchResult]
    suggestions: List[str] = field(default_factory=list)
    direct_hit: bool = False
    origin: Optional[Coordinate] = None


class SearchGateway:
    def __init__(
        self,
        http_client: HttpClient,
        cache: Optional[Cache] = None,
        no_cache: bool = False,
        metrics: Optional[RequestMetrics] = None,
        suggestion_limit: int = config.MAX_SUGGESTIONS_SHOWN,
    ) -> None:
        self.http = http_client
        self.cache = cache
        self.no_cache = no_cache or cache is None
        self.metrics = metrics
        self.suggestion_limit = suggestion_limit

    def _count_network(self, kind: str) -> None:
        if self.metrics is not None:
            self.metrics.inc_network(kind)

    def _cached_get(self, kind: str, url: str, params: Dict[str, Any], ttl_seconds: float) -> Any:
        key = make_request_cache_key(url, params)
        if not self.no_cache:
            cached = self.cache.get_response(key)
            if cached is not None:
                if self.metrics is not None:
                    self.metrics.inc_cache_hit(kind)
                return cached

        self._count_network(kind)
        response = self.http.get_json(url, params=params)
        if not self.no_cache and response is not None:
            self.cache.set_response(key, kind, response, ttl_seconds)
        return response

    def lookup_reference(self, reference_id: str) -> SearchResult:
        reference_id = normalize_query(reference_id)
        url = config.endpoint(config.REFERENCE_LOOKUP_PATH, reference_id=reference_id)
        self._count_network("lookup")
        try:
            payload = self.http.get_json(url)
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            if status == 404:
                raise ReferenceLookupError(ReferenceLookupError.NOT_FOUND, reference_id)
            raise ReferenceLookupError(
                ReferenceLookupError.TRANSPORT_FAILURE, reference_id, f"HTTP {status} for {reference_id}"
            )
        except (requests.RequestException, ValueError) as exc:
            raise ReferenceLookupError(ReferenceLookupError.TRANSPORT_FAILURE, reference_id, str(exc))

        result = parse_search_result(payload) if isinstance(payload, dict) else None
        if result is None:
            raise ReferenceLookupError(ReferenceLookupError.NOT_FOUND, reference_id)
        try:
            classify(result)
        except ClassificationDefect as exc:
            logger.warning("Ignoring direct match: %s", exc)
            raise ReferenceLookupError(ReferenceLookupError.NOT_FOUND, reference_id, str(exc))
        return result

    def search_universal(self, query: str, origin: Optional[Coordinate] = None) -> List[SearchResult]:
        url = config.endpoint(config.UNIVERSAL_SEARCH_PATH)
        params: Dict[str, Any] = {"q": query}
        if origin is not None:
            params.update(origin.as_params())
        try:
            payload = self._cached_get("universal", url, params, config.UNIVERSAL_CACHE_TTL_SECONDS)
        except requests.HTTPError as exc:
            logger.error("Universal search failed for %r: %s", query, exc)
            raise SearchError(SearchError.SERVER_ERROR, str(exc))
        except requests.RequestException as exc:
            logger.error("Universal search transport failure for %r: %s", query, exc)
            raise SearchError(SearchError.TRANSPORT_FAILURE, str(exc))
        except ValueError as exc:
            logger.error("Universal search returned malformed payload for %r: %s", query, exc)
            raise SearchError(SearchError.SERVER_ERROR, str(exc))
        return parse_search_response(payload)

    def did_you_mean(self, query: str) -> List[str]:
        url = config.endpoint(config.DID_YOU_MEAN_PATH)
        try:
            payload = self._cached_get("suggest", url, {"q": query}, config.SUGGEST_CACHE_TTL_SECONDS)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Could not get suggestions for %r: %s", query, exc)
            return []
        if isinstance(payload, dict):
            payload = payload.get("suggestions")
        if not isinstance(payload, list):
            return []
        return [str(s) for s in payload if s][: self.suggestion_limit]

    def execute(
        self,
        query: str,
        origin: Optional[Coordinate] = None,
        resolve_origin: Optional[Callable[[], Optional[Coordinate]]] = None,
    ) -> GatewayResult:
        """Run one search.

        Identifier-shaped queries try a direct lookup first; a hit is returned
        as a single-element list. Anything else (or a failed lookup) goes to
        universal search. ``resolve_origin`` is only called when the universal
        query is actually issued, so a pending location fix can overlap the
        direct lookup. Raises SearchError when universal search fails.
        """
        if is_reference_id(query):
            reference_id = normalize_query(query)
            try:
                hit = self.lookup_reference(reference_id)
            except ReferenceLookupError as exc:
                logger.info("Reference lookup failed (%s); falling back to universal search", exc.reason)
            else:
                logger.info("Direct match for %s", reference_id)
                return GatewayResult(results=[hit], direct_hit=True, origin=origin)

        if origin is None and resolve_origin is not None:
            origin = resolve_origin()
        results = self.search_universal(query, origin)
        suggestions: List[str] = []
        if not results:
            suggestions = self.did_you_mean(query)
        return GatewayResult(results=results, suggestions=suggestions, origin=origin)
