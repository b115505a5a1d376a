"""Search session orchestration.

Each query gets a sequence number. Only the latest one may publish a view;
a response that arrives for an older number is dropped. Changing only the
sort or category re-composes the last result set without a network call.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from . import config
from .errors import SearchError
from .geo import Coordinate
from .location import GeoProvider
from .models import CategoryFilter, SortCriterion
from .partition import Partitions, attach_distances, partition
from .recent import SearchHook
from .search_client import SearchGateway
from .view import UnavailableTracker, ViewState, compose_view, empty_view, report_unavailable

logger = logging.getLogger(__name__)

IDLE = "idle"
LOADING = "loading"
READY = "ready"
ERROR = "error"


@dataclass(frozen=True)
class SessionSnapshot:
    status: str
    seq: int
    view: Optional[ViewState] = None
    error: Optional[SearchError] = None


@dataclass(frozen=True)
class _LastResult:
    seq: int
    query: str
    partitions: Partitions
    suggestions: Tuple[str, ...]
    direct_hit: bool


class SearchSession:
    def __init__(
        self,
        gateway: SearchGateway,
        geo_provider: Optional[GeoProvider] = None,
        tracker: Optional[UnavailableTracker] = None,
        on_search: Optional[SearchHook] = None,
        sort: Union[SortCriterion, str] = config.DEFAULT_SORT,
        category: Union[CategoryFilter, str] = config.DEFAULT_CATEGORY,
        max_workers: int = 2,
    ) -> None:
        self.gateway = gateway
        self.geo_provider = geo_provider
        self.tracker = tracker
        self.on_search = on_search
        self.sort = SortCriterion(sort)
        self.category = CategoryFilter(category)
        self._lock = threading.Lock()
        self._seq = 0
        self._state = SessionSnapshot(status=IDLE, seq=0)
        self._last: Optional[_LastResult] = None
        self._pending: Optional[Future] = None
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="search")

    @property
    def state(self) -> SessionSnapshot:
        with self._lock:
            return self._state

    @property
    def latest_seq(self) -> int:
        with self._lock:
            return self._seq

    def is_current(self, seq: int) -> bool:
        with self._lock:
            return seq == self._seq

    def _next_seq(self) -> int:
        with self._lock:
            self._seq += 1
            seq = self._seq
            self._state = SessionSnapshot(status=LOADING, seq=seq)
            return seq

    def _publish(self, snapshot: SessionSnapshot) -> Optional[SessionSnapshot]:
        with self._lock:
            if snapshot.seq != self._seq:
                logger.debug("Discarding stale response for seq %s (latest %s)", snapshot.seq, self._seq)
                return None
            self._state = snapshot
            return snapshot

    def search(self, query: str, origin: Optional[Coordinate] = None) -> Optional[SessionSnapshot]:
        """Run a query on the calling thread.

        Returns the published snapshot, or None if a newer query superseded
        this one before it finished.
        """
        return self._run(self._next_seq(), query, origin)

    def submit(self, query: str, origin: Optional[Coordinate] = None) -> "Future[Optional[SessionSnapshot]]":
        """Run a query in the background, superseding any query still in flight."""
        seq = self._next_seq()
        with self._lock:
            previous = self._pending
        if previous is not None and not previous.done():
            previous.cancel()
        future = self._executor.submit(self._run, seq, query, origin)
        with self._lock:
            self._pending = future
        return future

    def _origin_resolver(self, origin: Optional[Coordinate]) -> Callable[[], Optional[Coordinate]]:
        if origin is not None or self.geo_provider is None:
            return lambda: origin

        provider = self.geo_provider
        pending = provider.fetch_location_async()
        resolved = {}

        def resolve() -> Optional[Coordinate]:
            if "origin" not in resolved:
                resolved["origin"] = provider.try_resolve(pending)
            return resolved["origin"]

        return resolve

    def _run(self, seq: int, query: str, origin: Optional[Coordinate]) -> Optional[SessionSnapshot]:
        if not (query or "").strip():
            return self._publish(SessionSnapshot(status=IDLE, seq=seq))

        resolve_origin = self._origin_resolver(origin)
        try:
            outcome = self.gateway.execute(query, origin=origin, resolve_origin=resolve_origin)
        except SearchError as exc:
            logger.error("Search failed for %r (%s)", query, exc.reason)
            if self.is_current(seq):
                with self._lock:
                    self._last = None
            view = empty_view(query, self.sort, self.category, seq)
            return self._publish(SessionSnapshot(status=ERROR, seq=seq, view=view, error=exc))

        if not self.is_current(seq):
            logger.debug("Query %r superseded before ranking", query)
            return None

        origin = outcome.origin or resolve_origin()
        results = attach_distances(outcome.results, origin)
        partitions = partition(results, synthesize_parent_shops=outcome.direct_hit)
        last = _LastResult(
            seq=seq,
            query=query,
            partitions=partitions,
            suggestions=tuple(outcome.suggestions),
            direct_hit=outcome.direct_hit,
        )
        view = compose_view(
            partitions,
            query=query,
            sort=self.sort,
            category=self.category,
            suggestions=last.suggestions,
            direct_hit=last.direct_hit,
            seq=seq,
        )

        with self._lock:
            if seq != self._seq:
                return None
            self._last = last
            self._state = SessionSnapshot(status=READY, seq=seq, view=view)
            snapshot = self._state

        if self.tracker is not None:
            report_unavailable(self.tracker, query, partitions)
        if self.on_search is not None:
            try:
                self.on_search(query, view.total_count)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Search hook failed: %s", exc)
        return snapshot

    def _recompose(self) -> Optional[ViewState]:
        with self._lock:
            last = self._last
            if last is None or last.seq != self._seq:
                return None
            view = compose_view(
                last.partitions,
                query=last.query,
                sort=self.sort,
                category=self.category,
                suggestions=last.suggestions,
                direct_hit=last.direct_hit,
                seq=last.seq,
            )
            self._state = SessionSnapshot(status=READY, seq=last.seq, view=view)
            return view

    def set_sort(self, sort: Union[SortCriterion, str]) -> Optional[ViewState]:
        self.sort = SortCriterion(sort)
        return self._recompose()

    def set_category(self, category: Union[CategoryFilter, str]) -> Optional[ViewState]:
        self.category = CategoryFilter(category)
        return self._recompose()

    def close(self) -> None:
        self._executor.shutdown(wait=False)
