"""CLI entrypoint."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv as _load_dotenv

from shopsearch import config
from shopsearch.cache import Cache
from shopsearch.geo import Coordinate
from shopsearch.http import HttpClient, RequestMetrics
from shopsearch.location import default_geo_provider
from shopsearch.models import CategoryFilter, SortCriterion
from shopsearch.pipeline import ERROR, IDLE, SearchSession
from shopsearch.recent import RecentSearches
from shopsearch.reporting import ensure_dir, render_summary, write_view_json
from shopsearch.search_client import SearchGateway
from shopsearch.tracking import AlertTracker


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Optionally load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if env_path.exists():
        _load_dotenv(dotenv_path=env_path, override=False)
    config.refresh_from_env()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search shops, items, services and offices")
    parser.add_argument("query", help="Free text or a reference id such as PRD-MAN-024")
    parser.add_argument("--lat", type=float, default=None, help="Origin latitude")
    parser.add_argument("--lng", type=float, default=None, help="Origin longitude")
    parser.add_argument(
        "--no-location",
        action="store_true",
        help="Do not look up a location; rank without distances",
    )
    parser.add_argument(
        "--sort",
        choices=[c.value for c in SortCriterion],
        default=None,
        help="Sort order (default: relevance)",
    )
    parser.add_argument(
        "--category",
        choices=[c.value for c in CategoryFilter],
        default=None,
        help="Category filter (default: all)",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to search_config.json")
    parser.add_argument("--no-cache", action="store_true")
    parser.add_argument("--cache-path", type=str, default=None)
    parser.add_argument("--out", type=str, default=None, help="Write the result view as JSON")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a text summary")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    load_env()
    config.load_search_config(args.config)

    if (args.lat is None) != (args.lng is None):
        print("--lat and --lng must be given together", file=sys.stderr)
        return 2
    origin = None
    if args.lat is not None:
        try:
            origin = Coordinate(args.lat, args.lng)
        except ValueError as exc:
            print(f"Invalid origin: {exc}", file=sys.stderr)
            return 2

    metrics = RequestMetrics()
    http_client = HttpClient(
        api_token=config.API_TOKEN,
        timeout=config.HTTP_TIMEOUT_SECONDS,
        retry_max=config.HTTP_RETRY_MAX,
        backoff_base=config.HTTP_BACKOFF_BASE,
        backoff_max=config.HTTP_BACKOFF_MAX,
    )
    cache = None if args.no_cache else Cache(args.cache_path or config.CACHE_DB_PATH)
    if cache is not None:
        cache.purge_expired()
    gateway = SearchGateway(http_client, cache=cache, no_cache=args.no_cache, metrics=metrics)
    geo_provider = None
    if origin is None:
        geo_provider = default_geo_provider(http_client, metrics=metrics, allow_location=not args.no_location)
    tracker = AlertTracker(http_client, user_id=config.USER_ID, metrics=metrics)
    session = SearchSession(
        gateway,
        geo_provider=geo_provider,
        tracker=tracker,
        on_search=RecentSearches(),
        sort=args.sort or config.DEFAULT_SORT,
        category=args.category or config.DEFAULT_CATEGORY,
    )

    try:
        snapshot = session.search(args.query, origin=origin)
    finally:
        session.close()
        tracker.shutdown(wait=True)
        if geo_provider is not None:
            geo_provider.shutdown()
        if cache is not None:
            cache.close()

    if snapshot is None or snapshot.status == IDLE:
        print("Nothing to search for", file=sys.stderr)
        return 2
    if snapshot.status == ERROR:
        print(f"Search failed ({snapshot.error.reason}). Please try again.", file=sys.stderr)
        return 1

    view = snapshot.view
    if args.out:
        ensure_dir(os.path.dirname(args.out) or ".")
        write_view_json(args.out, view)
    if args.json:
        print(json.dumps(view.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(render_summary(view))
    logging.getLogger(__name__).debug("Request metrics: %s", metrics.as_dict())
    return 0


if __name__ == "__main__":
    sys.exit(main())
