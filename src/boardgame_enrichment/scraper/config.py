"""Constants and tuning parameters for the page fetcher and enrichment job.

Values that operators adjust per deployment live in
:class:`~boardgame_enrichment.config.settings.Settings`; the defaults below
back the constructors when no settings object is passed.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

#: User-agent sent to the scraping proxy and on direct origin fetches.
USER_AGENT: str = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"

#: Accept header for detail-page requests.
ACCEPT_HTML: str = "text/html,application/xhtml+xml"

#: Path appended to the crawler base URL.
CRAWLER_FETCH_PATH: str = "/fetch"

# ---------------------------------------------------------------------------
# Page parsing
# ---------------------------------------------------------------------------

#: Top-level key the embedded item JSON must carry.
REQUIRED_ITEM_KEY: str = "item"

#: ``links`` sub-keys mapped to the categorical enrichment lists.
LINK_TYPES: dict[str, str] = {
    "designers": "boardgamedesigner",
    "artists": "boardgameartist",
    "publishers": "boardgamepublisher",
    "categories": "boardgamecategory",
    "mechanics": "boardgamemechanic",
}

# ---------------------------------------------------------------------------
# Bulk job defaults
# ---------------------------------------------------------------------------

#: Pause after each successfully enriched game (seconds).
DEFAULT_ITEM_DELAY: float = 1.0

#: Pause before retrying a rate-limited fetch (seconds).
DEFAULT_RETRY_DELAY: float = 5.0

#: Fetch attempts per game for retryable errors.
DEFAULT_MAX_ATTEMPTS: int = 3

#: Consecutive per-game failures that abort the job.
DEFAULT_MAX_CONSECUTIVE_ERRORS: int = 10

#: Minimum gap between two progress log lines (seconds).
DEFAULT_PROGRESS_LOG_INTERVAL: float = 60.0
