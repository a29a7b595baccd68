"""Static configuration for ledgerscope.

All user-editable settings (viewer, feed, roster, inbox, threads, logging)
live in a single JSON file for quick edits without touching Python.
"""

import json
import os

from dotenv import load_dotenv

from core.config import EngineConfig, InboxConfig, RosterConfig, ThreadConfig
from core.relevance import parse_filter

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# The config path can be pointed elsewhere, e.g. for a second viewer.
CONFIG_PATH = os.getenv("LEDGERSCOPE_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# The viewer identity drives inbox routing and needs-response filters.
# VIEWER_PUBKEY in the environment wins over the file.
VIEWER_PUBKEY = os.getenv("VIEWER_PUBKEY") or _CONFIG.get("viewer", {}).get("pubkey") or None

# Where to store the SQLite database.
DB_PATH = _resolve_path(_CONFIG.get("database", {}).get("path", "src/ledgerscope.db"))

# Record feed: a JSONL file, optionally tailed.
_feed = _CONFIG.get("feed", {})
FEED_PATH = _resolve_path(_feed.get("path", "records.jsonl"))
FEED_FOLLOW = bool(_feed.get("follow", False))
FEED_POLL_INTERVAL_SECONDS = float(_feed.get("poll_interval_seconds", 1.0))

# Collections to subscribe to; each is a kind:author:identifier coordinate.
COLLECTIONS = [key for key in _CONFIG.get("collections", []) if key]

# Rosters without a fresh status for this long are treated as offline.
_roster = _CONFIG.get("roster", {})
ROSTER_STALE_AFTER_SECONDS = int(_roster.get("stale_after_seconds", 300))

_inbox = _CONFIG.get("inbox", {})
INBOX_CURSOR_KEY = _inbox.get("cursor_key", "inbox_last_visit")
INBOX_SINCE_DAYS = int(_inbox.get("since_days", 7))

# Unknown filter names fail at import.
_threads = _CONFIG.get("threads", {})
THREADS_DEFAULT_FILTER = _threads.get("default_filter") or None
parse_filter(THREADS_DEFAULT_FILTER)

# Console output width for content snippets.
SNIPPET_CHARS = int(_CONFIG.get("display", {}).get("snippet_chars", 80))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})


def engine_config() -> EngineConfig:
    """Build the core config from the loaded settings."""

    return EngineConfig(
        viewer=VIEWER_PUBKEY,
        roster=RosterConfig(stale_after_seconds=ROSTER_STALE_AFTER_SECONDS),
        inbox=InboxConfig(cursor_key=INBOX_CURSOR_KEY, since_days=INBOX_SINCE_DAYS),
        threads=ThreadConfig(default_filter=THREADS_DEFAULT_FILTER),
    )
