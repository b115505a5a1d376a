"""HTTP client with retry/backoff and request metrics."""
from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

REQUEST_KINDS = ("lookup", "universal", "suggest", "track", "location")
RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


def _zero_counts() -> Dict[str, int]:
    return {kind: 0 for kind in REQUEST_KINDS}


@dataclass
class RequestMetrics:
    network: Dict[str, int] = field(default_factory=_zero_counts)
    cache_hits: Dict[str, int] = field(default_factory=_zero_counts)

    def _check(self, kind: str) -> None:
        if kind not in REQUEST_KINDS:
            raise ValueError(f"Unknown request kind: {kind}")

    def inc_network(self, kind: str) -> None:
        self._check(kind)
        self.network[kind] += 1

    def inc_cache_hit(self, kind: str) -> None:
        self._check(kind)
        self.cache_hits[kind] += 1

    def as_dict(self) -> Dict[str, Dict[str, int]]:
        return {
            "network": dict(self.network),
            "cache_hits": dict(self.cache_hits),
        }


class HttpClient:
    def __init__(
        self,
        api_token: Optional[str] = None,
        timeout: float = 10,
        retry_max: int = 3,
        backoff_base: float = 0.5,
        backoff_max: float = 8.0,
    ) -> None:
        self.api_token = api_token
        self.timeout = timeout
        self.retry_max = retry_max
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.session = requests.Session()

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        extra_headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        headers = {"Accept": "application/json"}
        if extra_headers:
            headers.update(extra_headers)
        return self._request("GET", url, params=params, headers=headers, timeout=timeout)

    def post_json(
        self,
        url: str,
        body: Dict[str, Any],
        authenticated: bool = False,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        headers = {"Content-Type": "application/json"}
        if authenticated and self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        if extra_headers:
            headers.update(extra_headers)
        return self._request("POST", url, data=json.dumps(body), headers=headers)

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        timeout = self.timeout if timeout is None else timeout
        for attempt in range(1, self.retry_max + 1):
            try:
                if method == "GET":
                    resp = self.session.get(url, params=params, headers=headers, timeout=timeout)
                else:
                    resp = self.session.post(url, data=data, headers=headers, timeout=timeout)
            except requests.RequestException:
                if attempt >= self.retry_max:
                    raise
                self._sleep_backoff(attempt)
                continue

            status = resp.status_code
            if 200 <= status < 300:
                if status == 204 or not resp.content:
                    return None
                try:
                    return resp.json()
                except ValueError:
                    logger.error("Non-JSON response from %s", url)
                    raise

            if status in RETRYABLE_STATUSES:
                logger.warning("HTTP %s from %s (attempt %s)", status, url, attempt)
                if attempt >= self.retry_max:
                    resp.raise_for_status()
                if not self._sleep_retry_after(resp):
                    self._sleep_backoff(attempt)
                continue

            # Non-retryable
            if status != 404:
                logger.error("HTTP %s from %s", status, url)
            resp.raise_for_status()

        raise RuntimeError("Unexpected HTTP retry loop exit")

    def _sleep_backoff(self, attempt: int) -> None:
        base = min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)
        jitter = random.uniform(0, self.backoff_base)
        time.sleep(base + jitter)

    def _sleep_retry_after(self, resp: requests.Response) -> bool:
        retry_after = resp.headers.get("Retry-After")
        if not retry_after:
            return False
        try:
            delay = float(retry_after)
        except ValueError:
            return False
        delay = max(0.0, min(delay, self.backoff_max))
        time.sleep(delay)
        return True
