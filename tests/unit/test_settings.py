"""Unit tests for application settings and service wiring."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from boardgame_enrichment.config.settings import Settings, get_settings
from boardgame_enrichment.scraper.enrichment import EnrichmentOrchestrator
from boardgame_enrichment.services import create_services


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for var in ("SCRAPER_API_KEY", "CRAWLER_URL", "LOG_LEVEL"):
            monkeypatch.delenv(var, raising=False)

        settings = Settings(_env_file=None)

        assert settings.scraper_api_key == ""
        assert settings.crawler_url == ""
        assert settings.scraper_api_endpoint == "http://api.scraperapi.com"
        assert settings.bgg_page_base_url == "https://boardgamegeek.com/boardgame"
        assert settings.enrichment_item_delay_seconds == 1.0
        assert settings.enrichment_retry_delay_seconds == 5.0
        assert settings.enrichment_max_attempts == 3
        assert settings.enrichment_max_consecutive_errors == 10
        assert settings.enrichment_progress_log_interval_seconds == 60.0
        assert settings.log_level == "INFO"

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCRAPER_API_KEY", "k-123")
        monkeypatch.setenv("CRAWLER_URL", "http://crawler:8080")
        monkeypatch.setenv("ENRICHMENT_MAX_ATTEMPTS", "5")

        settings = Settings(_env_file=None)

        assert settings.scraper_api_key == "k-123"
        assert settings.crawler_url == "http://crawler:8080"
        assert settings.enrichment_max_attempts == 5

    def test_database_url_is_required(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()


@pytest.mark.asyncio
class TestCreateServices:
    async def test_components_are_wired_together(self, settings: Settings) -> None:
        services = create_services(settings)
        try:
            assert services.settings is settings
            assert services.cache.is_loaded() is False
            assert isinstance(services.orchestrator, EnrichmentOrchestrator)
            assert services.orchestrator._store is services.store
            assert services.orchestrator._fetcher is services.fetcher
            assert services.orchestrator._cache is services.cache
            assert services.fetcher._client is services.http_client
        finally:
            await services.aclose()

        assert services.http_client.is_closed is True

    async def test_each_call_builds_independent_components(self, settings: Settings) -> None:
        first = create_services(settings)
        second = create_services(settings)
        try:
            assert first.cache is not second.cache
            assert first.orchestrator is not second.orchestrator
        finally:
            await first.aclose()
            await second.aclose()
