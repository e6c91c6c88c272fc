"""Application-wide exception hierarchy for the enrichment pipeline.

All custom exceptions subclass ``BoardgameEnrichmentError``, enabling
consistent error handling and structured logging across the package.

Hierarchy::

    BoardgameEnrichmentError
    ├── GameNotFoundError        (game_id: int)
    ├── ExtractionError
    └── FetchError               (provider, status_code)
        └── ClassifiedFetchError (kind: FetchErrorKind)

``ClassifiedFetchError`` is only raised for the primary scraping provider.
Its ``kind`` decides what the caller does with it:

=====================  ======  =====  =========  ===========================
kind                   status  fatal  retryable  consequence
=====================  ======  =====  =========  ===========================
``PROVIDER_EXHAUSTED``  403    yes    no         provider cooldown, abort job
``RATE_LIMITED``        429    no     yes        retry after a fixed delay
``UPSTREAM_FAILED``     500    no     no         skip this game
``BAD_REQUEST``         400    no     no         skip this game
=====================  ======  =====  =========  ===========================
"""

from __future__ import annotations

import enum


class BoardgameEnrichmentError(Exception):
    """Base class for all enrichment pipeline exceptions.

    All package-specific exceptions inherit from this class so that
    callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


# ---------------------------------------------------------------------------
# Catalog exceptions
# ---------------------------------------------------------------------------


class GameNotFoundError(BoardgameEnrichmentError):
    """Raised when a catalog id has no row in the persisted store.

    Args:
        game_id: The unknown catalog id.
    """

    def __init__(self, game_id: int) -> None:
        super().__init__(f"Game with BGG ID {game_id} not found")
        self.game_id = game_id


# ---------------------------------------------------------------------------
# Extraction exceptions
# ---------------------------------------------------------------------------


class ExtractionError(BoardgameEnrichmentError):
    """Raised when a fetched page does not carry parsable item metadata.

    Covers a missing embedded-JSON marker, JSON that fails to parse, and a
    parsed object without the required ``item`` key.
    """


# ---------------------------------------------------------------------------
# Fetch exceptions
# ---------------------------------------------------------------------------


class FetchError(BoardgameEnrichmentError):
    """Raised when a page could not be fetched through any provider.

    Args:
        message: Human-readable description of the failure.
        provider: Provider tag (``"scraperapi"``, ``"crawler"``, ``"direct"``).
        status_code: HTTP status of the failed response, or ``None`` on a
            network error.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class FetchErrorKind(enum.Enum):
    """Classified failure modes of the primary scraping provider.

    Each member carries ``(status_code, fatal, retryable, message)``.
    """

    PROVIDER_EXHAUSTED = (403, True, False, "ScraperAPI credits exhausted or API key invalid")
    RATE_LIMITED = (429, False, True, "ScraperAPI rate limit exceeded")
    UPSTREAM_FAILED = (500, False, False, "ScraperAPI failed to fetch page after retries")
    BAD_REQUEST = (400, False, False, "Malformed request to ScraperAPI")

    def __init__(self, status_code: int, fatal: bool, retryable: bool, message: str) -> None:
        self.status_code = status_code
        self.fatal = fatal
        self.retryable = retryable
        self.message = message

    @classmethod
    def from_status(cls, status_code: int) -> FetchErrorKind | None:
        """Return the kind for an HTTP status, or ``None`` if unclassified."""
        for kind in cls:
            if kind.status_code == status_code:
                return kind
        return None


class ClassifiedFetchError(FetchError):
    """Raised for a primary-provider response with a classified status.

    The ``fatal`` and ``retryable`` flags are derived from ``kind`` so that
    callers can either branch on the flags or match on the kind.

    Args:
        kind: The classified failure mode.
        provider: Provider tag.  Defaults to ``"scraperapi"``.
        message: Optional override of the kind's default message.
    """

    def __init__(
        self,
        kind: FetchErrorKind,
        provider: str = "scraperapi",
        message: str | None = None,
    ) -> None:
        super().__init__(message or kind.message, provider=provider, status_code=kind.status_code)
        self.kind = kind

    @property
    def fatal(self) -> bool:
        return self.kind.fatal

    @property
    def retryable(self) -> bool:
        return self.kind.retryable
