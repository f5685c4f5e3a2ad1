"""Application settings constants."""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


APP_NAME = "Media Explorer API"
PORT = _env_int("PORT", 8596)

# Namespace root inside the key-value store.
APP_NS = os.environ.get("MEDIA_EXPLORER_NAMESPACE", "dme_pixabay_v1")

# "sqlite" persists under DB_PATH; "memory" keeps state for the process lifetime only.
STORE_BACKEND = os.environ.get("MEDIA_EXPLORER_STORE", "sqlite").strip().lower()

PIXABAY_KEY = os.environ.get("PIXABAY_KEY", "")
PIXABAY_BASE_URL = os.environ.get("PIXABAY_BASE_URL", "https://pixabay.com")
PIXABAY_TIMEOUT_SECONDS = _env_float("PIXABAY_TIMEOUT_SECONDS", 15.0)

# Feed wait window. Longer windows pick up more in-flight entries at the cost of latency.
FEED_WAIT_SECONDS = _env_float("FEED_WAIT_SECONDS", 0.25)
FEED_DEFAULT_LIMIT = _env_int("FEED_DEFAULT_LIMIT", 50)
FEED_COALESCE = _env_bool("FEED_COALESCE", False)

# Index capacity per term; 0 leaves the index unbounded.
INDEX_MAX_ENTRIES_PER_TERM = _env_int("INDEX_MAX_ENTRIES_PER_TERM", 0)
INDEX_PRUNE_INTERVAL_MINUTES = _env_int("INDEX_PRUNE_INTERVAL_MINUTES", 0)

CORS_ORIGINS = [origin.strip() for origin in os.environ.get("CORS_ORIGINS", "*").split(",") if origin.strip()]

BASIC_AUTH_USER = os.environ.get("MEDIA_EXPLORER_BASIC_AUTH_USER")
BASIC_AUTH_PASS = os.environ.get("MEDIA_EXPLORER_BASIC_AUTH_PASS")
