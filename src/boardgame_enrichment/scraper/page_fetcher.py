"""Async detail-page fetcher with provider fallback and a daily cooldown.

Uses ``httpx`` for all HTTP requests.  Three strategies sit behind
:meth:`PageFetcher.fetch_page`:

1. **Primary** — a scraping proxy (``GET`` with ``api_key`` and ``url``
   query parameters).  Non-2xx answers are classified into
   :class:`~boardgame_enrichment.core.exceptions.ClassifiedFetchError`.
2. **Secondary** — a self-hosted crawler (``POST {crawler_url}/fetch`` with
   a JSON ``{"url": ...}`` body, JSON answer).
3. **Direct** — a plain ``GET`` against the origin, used only when no
   provider is available.

Provider selection
------------------
- primary and secondary configured, primary not cooling down: primary, and
  on HTTP 403 only, fall back to the secondary for the same call.
- only one of them usable: that one exclusively.
- neither usable: direct.

A 403 from the primary means its credits are gone or its key is invalid, so
the primary is disabled until the next local midnight.  The cooldown is
checked (and cleared once expired) lazily on each selection.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import httpx

from boardgame_enrichment.core.exceptions import (
    ClassifiedFetchError,
    FetchError,
    FetchErrorKind,
)
from boardgame_enrichment.scraper.config import ACCEPT_HTML, CRAWLER_FETCH_PATH, USER_AGENT

if TYPE_CHECKING:
    from boardgame_enrichment.config.settings import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


class FetchProvider(str, enum.Enum):
    """Which strategy produced a :class:`FetchResult`."""

    PRIMARY = "scraperapi"
    SECONDARY = "crawler"
    DIRECT = "direct"


@dataclass
class FetchResult:
    """A successfully fetched detail page.

    Attributes:
        html: Raw page HTML.
        bytes: UTF-8 byte length of ``html``.
        provider: Strategy that served the page.
        status_code: HTTP status reported for the page.
        url: Resolved page URL (never the proxy URL, which embeds the key).
    """

    html: str
    bytes: int
    provider: FetchProvider
    status_code: int
    url: str


def _build_result(html: str, provider: FetchProvider, status_code: int, url: str) -> FetchResult:
    return FetchResult(
        html=html,
        bytes=len(html.encode("utf-8")),
        provider=provider,
        status_code=status_code,
        url=url,
    )


def _next_local_midnight(now: datetime) -> datetime:
    """Return the first instant of the day after ``now``."""
    return now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)


# ---------------------------------------------------------------------------
# PageFetcher
# ---------------------------------------------------------------------------


class PageFetcher:
    """Fetch a game's detail page through the best available provider.

    Args:
        client: Shared :class:`httpx.AsyncClient`; the caller owns its
            lifecycle.
        scraper_api_key: Primary provider key.  Empty disables the primary.
        scraper_api_endpoint: Primary provider base URL.
        crawler_url: Secondary provider base URL.  Empty disables it.
        page_base_url: Origin prefix; the catalog id is appended.
        timeout: Per-request timeout in seconds.
        clock: Returns the current local time.  Injected in tests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        scraper_api_key: str = "",
        scraper_api_endpoint: str = "http://api.scraperapi.com",
        crawler_url: str = "",
        page_base_url: str = "https://boardgamegeek.com/boardgame",
        timeout: float = 90.0,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._client = client
        self._scraper_api_key = scraper_api_key.strip()
        self._scraper_api_endpoint = scraper_api_endpoint
        self._crawler_url = crawler_url.strip().rstrip("/")
        self._page_base_url = page_base_url.rstrip("/")
        self._timeout = timeout
        self._clock = clock
        self.primary_disabled_until: datetime | None = None

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> PageFetcher:
        """Build a fetcher from application settings."""
        return cls(
            client,
            scraper_api_key=settings.scraper_api_key,
            scraper_api_endpoint=settings.scraper_api_endpoint,
            crawler_url=settings.crawler_url,
            page_base_url=settings.bgg_page_base_url,
            timeout=settings.fetch_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def page_url(self, game_id: int) -> str:
        """Return the origin detail-page URL for a catalog id."""
        return f"{self._page_base_url}/{game_id}"

    async def fetch_page(self, game_id: int) -> FetchResult:
        """Fetch the detail page of one game.

        Args:
            game_id: Catalog id.

        Returns:
            The fetched page.

        Raises:
            ClassifiedFetchError: The primary provider answered with a
                classified status (and no fallback applied).
            FetchError: Any other fetch failure.
        """
        url = self.page_url(game_id)
        primary_available = bool(self._scraper_api_key) and not self.is_primary_in_cooldown()
        secondary_available = bool(self._crawler_url)

        if primary_available and secondary_available:
            try:
                return await self._fetch_via_primary(url)
            except ClassifiedFetchError as exc:
                if exc.kind is not FetchErrorKind.PROVIDER_EXHAUSTED:
                    raise
                logger.warning(
                    "page_fetcher: primary provider refused %s (HTTP 403), falling back to crawler",
                    url,
                )
                return await self._fetch_via_crawler(url)

        if primary_available:
            return await self._fetch_via_primary(url)

        if secondary_available:
            return await self._fetch_via_crawler(url)

        return await self._fetch_direct(url)

    def is_primary_in_cooldown(self) -> bool:
        """Return ``True`` while the primary provider is disabled.

        An expired cooldown is cleared as a side effect.
        """
        if self.primary_disabled_until is None:
            return False
        if self._clock() >= self.primary_disabled_until:
            logger.info("page_fetcher: primary provider cooldown expired")
            self.primary_disabled_until = None
            return False
        return True

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    async def _fetch_via_primary(self, url: str) -> FetchResult:
        provider = FetchProvider.PRIMARY
        try:
            response = await self._client.get(
                self._scraper_api_endpoint,
                params={"api_key": self._scraper_api_key, "url": url},
                headers={"User-Agent": USER_AGENT, "Accept": ACCEPT_HTML},
                timeout=self._timeout,
            )
        except httpx.RequestError as exc:
            # The exception text may carry the proxy URL, which embeds the key.
            raise FetchError(
                f"ScraperAPI request failed for {url}: {type(exc).__name__}",
                provider=provider.value,
            ) from exc

        if not response.is_success:
            kind = FetchErrorKind.from_status(response.status_code)
            if kind is None:
                raise FetchError(
                    f"Failed to fetch page via ScraperAPI: {response.status_code} "
                    f"{response.reason_phrase}",
                    provider=provider.value,
                    status_code=response.status_code,
                )
            if kind.fatal:
                self._disable_primary_until_midnight()
            logger.warning(
                "page_fetcher: primary provider HTTP %d for %s (%s)",
                response.status_code,
                url,
                kind.name,
            )
            raise ClassifiedFetchError(kind, provider=provider.value)

        return _build_result(response.text, provider, response.status_code, url)

    async def _fetch_via_crawler(self, url: str) -> FetchResult:
        provider = FetchProvider.SECONDARY
        try:
            response = await self._client.post(
                f"{self._crawler_url}{CRAWLER_FETCH_PATH}",
                json={"url": url},
                timeout=self._timeout,
            )
        except httpx.RequestError as exc:
            raise FetchError(
                f"Crawler request failed for {url}: {exc}", provider=provider.value
            ) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(
                f"Crawler returned non-JSON response ({response.status_code})",
                provider=provider.value,
                status_code=response.status_code,
            ) from exc

        if not isinstance(payload, dict):
            raise FetchError(
                f"Crawler returned unexpected payload ({response.status_code})",
                provider=provider.value,
                status_code=response.status_code,
            )

        if not response.is_success or not payload.get("success"):
            error_message = (
                payload.get("error") or response.reason_phrase or "Crawler request failed"
            )
            raise FetchError(
                f"Crawler fetch failed: {response.status_code} {error_message}",
                provider=provider.value,
                status_code=response.status_code,
            )

        html = payload.get("html")
        if not isinstance(html, str):
            raise FetchError(
                "Crawler response did not include page HTML",
                provider=provider.value,
                status_code=response.status_code,
            )

        status_code = payload.get("statusCode")
        return _build_result(
            html,
            provider,
            status_code if isinstance(status_code, int) else response.status_code,
            payload.get("url") or url,
        )

    async def _fetch_direct(self, url: str) -> FetchResult:
        provider = FetchProvider.DIRECT
        try:
            response = await self._client.get(
                url,
                headers={"User-Agent": USER_AGENT, "Accept": ACCEPT_HTML},
                timeout=self._timeout,
                follow_redirects=True,
            )
        except httpx.RequestError as exc:
            raise FetchError(
                f"Request failed for {url}: {exc}", provider=provider.value
            ) from exc

        if not response.is_success:
            raise FetchError(
                f"Failed to fetch page: {response.status_code} {response.reason_phrase}",
                provider=provider.value,
                status_code=response.status_code,
            )

        return _build_result(response.text, provider, response.status_code, str(response.url))

    # ------------------------------------------------------------------
    # Cooldown
    # ------------------------------------------------------------------

    def _disable_primary_until_midnight(self) -> None:
        self.primary_disabled_until = _next_local_midnight(self._clock())
        logger.error(
            "page_fetcher: primary provider disabled until %s",
            self.primary_disabled_until.isoformat(),
        )
