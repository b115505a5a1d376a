"""Recent-search hook. Keeps a short in-memory list; nothing is persisted."""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, List

from . import config
from .cache import utc_now_iso

SearchHook = Callable[[str, int], None]


@dataclass(frozen=True)
class RecentSearch:
    query: str
    timestamp: str
    results: int


class RecentSearches:
    def __init__(self, limit: int = config.RECENT_SEARCHES_LIMIT) -> None:
        self.limit = limit
        self._entries: List[RecentSearch] = []
        self._lock = threading.Lock()

    def __call__(self, query: str, result_count: int) -> None:
        self.record(query, result_count)

    def record(self, query: str, result_count: int) -> None:
        key = query.strip().lower()
        if not key:
            return
        entry = RecentSearch(query=key, timestamp=utc_now_iso(), results=int(result_count))
        with self._lock:
            rest = [e for e in self._entries if e.query != key]
            self._entries = [entry] + rest[: max(0, self.limit - 1)]

    def entries(self) -> List[RecentSearch]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries = []
