"""SQLite cache for search API responses."""
from __future__ import annotations

import hashlib
import json
import sqlite3
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def make_request_cache_key(url: str, params: Optional[Dict[str, Any]]) -> str:
    payload = json.dumps(params or {}, sort_keys=True, separators=(",", ":"))
    raw = f"{url}|{payload}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


class Cache:
    def __init__(self, db_path: str, commit_every: int = 20) -> None:
        self.db_path = db_path
        # sessions may run searches on worker threads
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._lock = threading.Lock()
        self.conn.row_factory = sqlite3.Row
        self._pending_writes = 0
        self._commit_every = max(1, int(commit_every))
        self._configure_conn()
        self._init_db()

    def _configure_conn(self) -> None:
        cur = self.conn.cursor()
        try:
            cur.execute("PRAGMA journal_mode=WAL")
            cur.fetchone()
        except sqlite3.DatabaseError:
            pass
        try:
            cur.execute("PRAGMA synchronous=NORMAL")
        except sqlite3.DatabaseError:
            pass

    def _init_db(self) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS search_cache (
                key TEXT PRIMARY KEY,
                kind TEXT,
                response_json TEXT,
                expires_at REAL,
                created_at TEXT
            )
            """
        )
        self.conn.commit()

    def _mark_dirty(self) -> None:
        self._pending_writes += 1
        if self._pending_writes >= self._commit_every:
            self.commit()

    def commit(self) -> None:
        if self._pending_writes:
            self.conn.commit()
            self._pending_writes = 0

    def close(self) -> None:
        with self._lock:
            self.commit()
            self.conn.close()

    def get_response(self, key: str, now: Optional[float] = None) -> Optional[Any]:
        now = time.time() if now is None else now
        with self._lock:
            cur = self.conn.cursor()
            cur.execute("SELECT response_json, expires_at FROM search_cache WHERE key = ?", (key,))
            row = cur.fetchone()
        if not row:
            return None
        if row["expires_at"] is not None and row["expires_at"] <= now:
            return None
        return json.loads(row["response_json"])

    def set_response(
        self,
        key: str,
        kind: str,
        response: Any,
        ttl_seconds: float,
        now: Optional[float] = None,
    ) -> None:
        now = time.time() if now is None else now
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(
                """
                INSERT OR REPLACE INTO search_cache (key, kind, response_json, expires_at, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (key, kind, json.dumps(response), now + float(ttl_seconds), utc_now_iso()),
            )
            self._mark_dirty()

    def purge_expired(self, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        with self._lock:
            cur = self.conn.cursor()
            cur.execute("DELETE FROM search_cache WHERE expires_at <= ?", (now,))
            self.conn.commit()
            return cur.rowcount
