"""Process-wide service container.

:func:`create_services` builds every long-lived component exactly once and
wires them together explicitly; nothing in the package keeps a module-level
instance.  The owner of the container (the CLI, or an embedding web app's
lifespan hook) must call :meth:`EnrichmentServices.aclose` on shutdown::

    services = create_services(get_settings())
    try:
        await services.cache.initialize_from_store(services.store)
        ...
    finally:
        await services.aclose()
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from boardgame_enrichment.cache.search_cache import SearchCache
from boardgame_enrichment.config.settings import Settings
from boardgame_enrichment.core.database import build_engine, build_session_factory
from boardgame_enrichment.core.store import CatalogStore
from boardgame_enrichment.scraper.enrichment import EnrichmentOrchestrator
from boardgame_enrichment.scraper.page_fetcher import PageFetcher

logger = structlog.get_logger(__name__)


@dataclass
class EnrichmentServices:
    """The wired components of one process.

    Attributes:
        settings: Settings the components were built from.
        engine: Database engine backing ``store``.
        http_client: HTTP client shared by every fetch strategy.
        store: Persisted catalog.
        cache: Search cache.
        fetcher: Detail-page fetcher.
        orchestrator: Enrichment entry point and bulk job owner.
    """

    settings: Settings
    engine: AsyncEngine
    http_client: httpx.AsyncClient
    store: CatalogStore
    cache: SearchCache
    fetcher: PageFetcher
    orchestrator: EnrichmentOrchestrator

    async def aclose(self) -> None:
        """Cancel the bulk job, then release the HTTP client and the pool."""
        await self.orchestrator.aclose()
        await self.http_client.aclose()
        await self.engine.dispose()
        logger.info("services.closed")


def create_services(settings: Settings) -> EnrichmentServices:
    """Build and wire all components from settings.

    No I/O happens here; the search cache starts empty until
    :meth:`SearchCache.initialize_from_store` is awaited.

    Args:
        settings: Application settings.

    Returns:
        The service container.
    """
    engine = build_engine(settings.database_url)
    store = CatalogStore(build_session_factory(engine))
    cache = SearchCache()
    http_client = httpx.AsyncClient(timeout=settings.fetch_timeout_seconds)
    fetcher = PageFetcher.from_settings(http_client, settings)
    orchestrator = EnrichmentOrchestrator.from_settings(store, fetcher, cache, settings)
    return EnrichmentServices(
        settings=settings,
        engine=engine,
        http_client=http_client,
        store=store,
        cache=cache,
        fetcher=fetcher,
        orchestrator=orchestrator,
    )
