"""Location provider: one bounded-latency fix, reused for a short window.

A failed fix is never fatal. Callers get a LocationError and carry on
without distances.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional, Tuple

import requests

from . import config
from .errors import LocationError
from .geo import Coordinate, coordinate_from_dict
from .http import HttpClient, RequestMetrics

logger = logging.getLogger(__name__)

LocationSource = Callable[[], Coordinate]


def fixed_location_source(lat: float, lng: float) -> LocationSource:
    coordinate = Coordinate(lat, lng)

    def source() -> Coordinate:
        return coordinate

    return source


def denied_location_source() -> Coordinate:
    raise LocationError(LocationError.DENIED, "Location access disabled")


class IpLocationSource:
    """Coarse fix from an IP geolocation endpoint."""

    def __init__(
        self,
        http_client: HttpClient,
        url: str = config.IP_LOCATION_URL,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.http = http_client
        self.url = url
        self.metrics = metrics

    def __call__(self) -> Coordinate:
        if self.metrics is not None:
            self.metrics.inc_network("location")
        payload = self.http.get_json(self.url)
        coordinate = coordinate_from_dict(payload if isinstance(payload, dict) else None)
        if coordinate is None:
            raise LocationError(LocationError.UNAVAILABLE, "IP lookup returned no coordinates")
        return coordinate


class GeoProvider:
    def __init__(
        self,
        source: LocationSource,
        timeout_seconds: float = config.LOCATION_TIMEOUT_SECONDS,
        cache_window_seconds: float = config.LOCATION_CACHE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source
        self.timeout_seconds = timeout_seconds
        self.cache_window_seconds = cache_window_seconds
        self.clock = clock
        self._cached: Optional[Tuple[Coordinate, float]] = None
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="geo")

    def cached_location(self) -> Optional[Coordinate]:
        with self._lock:
            if self._cached is None:
                return None
            coordinate, fetched_at = self._cached
            if self.clock() - fetched_at > self.cache_window_seconds:
                return None
            return coordinate

    def fetch_location_async(self) -> "Future[Coordinate]":
        cached = self.cached_location()
        if cached is not None:
            done: "Future[Coordinate]" = Future()
            done.set_result(cached)
            return done
        return self._executor.submit(self.source)

    def resolve(self, future: "Future[Coordinate]") -> Coordinate:
        try:
            coordinate = future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            future.cancel()
            raise LocationError(LocationError.TIMEOUT)
        except LocationError:
            raise
        except PermissionError as exc:
            raise LocationError(LocationError.DENIED, str(exc))
        except (requests.RequestException, OSError, ValueError, KeyError) as exc:
            raise LocationError(LocationError.UNAVAILABLE, str(exc))
        with self._lock:
            self._cached = (coordinate, self.clock())
        return coordinate

    def fetch_location(self) -> Coordinate:
        return self.resolve(self.fetch_location_async())

    def try_resolve(self, future: "Future[Coordinate]") -> Optional[Coordinate]:
        try:
            return self.resolve(future)
        except LocationError as exc:
            logger.warning("Location unavailable (%s); ranking without distances", exc.reason)
            return None

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


def default_geo_provider(
    http_client: HttpClient,
    metrics: Optional[RequestMetrics] = None,
    allow_location: bool = True,
) -> GeoProvider:
    if not allow_location:
        source: LocationSource = denied_location_source
    elif config.FIXED_LOCATION:
        source = fixed_location_source(config.FIXED_LOCATION["lat"], config.FIXED_LOCATION["lng"])
    else:
        source = IpLocationSource(http_client, metrics=metrics)
    return GeoProvider(
        source,
        timeout_seconds=config.LOCATION_TIMEOUT_SECONDS,
        cache_window_seconds=config.LOCATION_CACHE_WINDOW_SECONDS,
    )
