"""Project configuration.

Loads search settings from search_config.json and the environment when
available, falling back to sensible defaults. Keep API request shapes centralized here.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

_REPO_ROOT = Path(__file__).resolve().parent.parent

# --- API endpoints ---

API_BASE_URL = os.environ.get("SHOPSEARCH_API_BASE_URL", "http://localhost:5000/api").rstrip("/")

REFERENCE_LOOKUP_PATH = "/search/reference/{reference_id}"
UNIVERSAL_SEARCH_PATH = "/search/universal"
DID_YOU_MEAN_PATH = "/search/did-you-mean"
ALERTS_TRACK_PATH = "/alerts/track"

# Coarse fallback when no device fix is configured
IP_LOCATION_URL = "https://ipapi.co/json/"

# --- Reference identifiers ---

REFERENCE_ID_PATTERN = r"^(SHP|PRD|MNU|SRV|OFF)-([A-Z]{3})-(\d{3})$"
REFERENCE_PREFIX_TYPES: Dict[str, str] = {
    "SHP": "shop",
    "PRD": "product",
    "MNU": "menu",
    "SRV": "service",
    "OFF": "office",
}

# --- Session defaults ---

DEFAULT_SORT = "relevance"
DEFAULT_CATEGORY = "all"
MAX_SUGGESTIONS_SHOWN = 3
RECENT_SEARCHES_LIMIT = 5

# --- Location ---

LOCATION_TIMEOUT_SECONDS = 10.0
LOCATION_CACHE_WINDOW_SECONDS = 300.0
FIXED_LOCATION: Optional[Dict[str, float]] = None

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 10
HTTP_RETRY_MAX = 3
HTTP_BACKOFF_BASE = 0.5
HTTP_BACKOFF_MAX = 8.0

# --- Cache ---

CACHE_DB_PATH = "cache.db"
UNIVERSAL_CACHE_TTL_SECONDS = 120
SUGGEST_CACHE_TTL_SECONDS = 300

# --- Tracking ---

TRACKING_MAX_WORKERS = 2

# --- Credentials (filled from the environment) ---

API_TOKEN: Optional[str] = os.environ.get("SHOPSEARCH_API_TOKEN") or None
USER_ID: Optional[str] = os.environ.get("SHOPSEARCH_USER_ID") or None


def endpoint(path: str, **kwargs: Any) -> str:
    return API_BASE_URL + path.format(**kwargs)


def refresh_from_env() -> None:
    """Re-read environment-backed settings (call after loading a .env file)."""
    globals_ref = globals()
    base = os.environ.get("SHOPSEARCH_API_BASE_URL")
    if base:
        globals_ref["API_BASE_URL"] = base.rstrip("/")
    globals_ref["API_TOKEN"] = os.environ.get("SHOPSEARCH_API_TOKEN") or None
    globals_ref["USER_ID"] = os.environ.get("SHOPSEARCH_USER_ID") or None


def load_search_config(path: Optional[str] = None) -> bool:
    """Load search configuration from a JSON file.

    Updates module-level globals with values from the config file.
    Returns True if config was loaded, False if file not found.
    """
    if path is None:
        path = str(_REPO_ROOT / "search_config.json")

    config_path = Path(path)
    if not config_path.exists():
        return False

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    globals_ref = globals()

    base_url = data.get("api_base_url")
    if base_url:
        globals_ref["API_BASE_URL"] = str(base_url).rstrip("/")

    timeouts = data.get("timeouts", {})
    if "http_seconds" in timeouts:
        globals_ref["HTTP_TIMEOUT_SECONDS"] = int(timeouts["http_seconds"])
    if "location_seconds" in timeouts:
        globals_ref["LOCATION_TIMEOUT_SECONDS"] = float(timeouts["location_seconds"])

    cache = data.get("cache", {})
    if "universal_ttl_seconds" in cache:
        globals_ref["UNIVERSAL_CACHE_TTL_SECONDS"] = int(cache["universal_ttl_seconds"])
    if "suggest_ttl_seconds" in cache:
        globals_ref["SUGGEST_CACHE_TTL_SECONDS"] = int(cache["suggest_ttl_seconds"])

    location = data.get("location", {})
    if "cache_window_seconds" in location:
        globals_ref["LOCATION_CACHE_WINDOW_SECONDS"] = float(location["cache_window_seconds"])
    fixed = location.get("fixed")
    if fixed and fixed.get("lat") is not None and fixed.get("lng") is not None:
        globals_ref["FIXED_LOCATION"] = {"lat": float(fixed["lat"]), "lng": float(fixed["lng"])}

    if data.get("default_sort"):
        globals_ref["DEFAULT_SORT"] = str(data["default_sort"])
    if data.get("default_category"):
        globals_ref["DEFAULT_CATEGORY"] = str(data["default_category"])

    return True
