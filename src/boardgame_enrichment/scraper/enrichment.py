"""Single-game enrichment and the resilient bulk enrichment job.

:class:`EnrichmentOrchestrator` owns the bulk job's state.  The job runs as a
single :class:`asyncio.Task` on the caller's event loop; a boolean stop flag
is checked before each game, so a stop request never interrupts an in-flight
fetch.  Only one job may run at a time: a second start is rejected, not
queued.

Bulk loop, per pending game (newest publication year first):

1. stop requested → finish with ``"Stopped by user"``.
2. fetch, retrying rate-limited answers up to ``max_attempts`` times.
3. fatal provider error → finish with ``"ScraperAPI error: …"``.
4. any other failure → ``errors`` and the consecutive-failure counter go up;
   at ``max_consecutive_errors`` finish with
   ``"Too many consecutive errors (N)"``.
5. success → persist, update the search cache, throttle.
6. list exhausted → finish with ``"Completed"``.

Every exit (including an unexpected exception or task cancellation) goes
through :meth:`EnrichmentOrchestrator._finish`, so ``running`` is never left
``True``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import math
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog

from boardgame_enrichment.core.exceptions import ClassifiedFetchError, GameNotFoundError
from boardgame_enrichment.core.logging_config import job_id_var
from boardgame_enrichment.core.schemas.enrichment import EnrichmentData
from boardgame_enrichment.scraper import extractor
from boardgame_enrichment.scraper.config import (
    DEFAULT_ITEM_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_CONSECUTIVE_ERRORS,
    DEFAULT_PROGRESS_LOG_INTERVAL,
    DEFAULT_RETRY_DELAY,
)

if TYPE_CHECKING:
    from boardgame_enrichment.cache.search_cache import SearchCache
    from boardgame_enrichment.config.settings import Settings
    from boardgame_enrichment.core.store import CatalogStore
    from boardgame_enrichment.scraper.page_fetcher import FetchResult, PageFetcher

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_bytes(num_bytes: int) -> str:
    """Render a byte count as ``B``, ``KB``, ``MB`` or ``GB``."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024**2:
        return f"{num_bytes / 1024:.1f} KB"
    if num_bytes < 1024**3:
        return f"{num_bytes / 1024**2:.1f} MB"
    return f"{num_bytes / 1024**3:.2f} GB"


def format_duration(seconds: int) -> str:
    """Render whole seconds as ``42s``, ``3m 5s`` or ``2h 7m``."""
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


@dataclass
class BulkJobStatus:
    """Progress of the current (or last) bulk enrichment job.

    Attributes:
        running: ``True`` while the job task is active.
        processed: Games enriched by this job.
        total: Games pending when the job started.
        skipped: Games already enriched when the job started.
        errors: Per-game failures, the fatal one included.
        bytes_transferred: Sum of fetched page sizes.
        eta_seconds: Estimated seconds remaining, or ``None`` when unknown.
        started_at: UTC start time.
        completed_at: UTC end time, set on every exit.
        stop_reason: Why the job ended.
        job_id: Identifier attached to every log record of the job.
    """

    running: bool = False
    processed: int = 0
    total: int = 0
    skipped: int = 0
    errors: int = 0
    bytes_transferred: int = 0
    eta_seconds: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    stop_reason: str | None = None
    job_id: str | None = None


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class EnrichmentOrchestrator:
    """Enrich games one at a time or in a background bulk job.

    Args:
        store: Persisted catalog.
        fetcher: Detail-page fetcher.
        cache: Search cache kept in sync with new alternate names.
        item_delay: Seconds to wait after each successfully enriched game.
        retry_delay: Seconds to wait before retrying a rate-limited fetch.
        max_attempts: Fetch attempts per game for retryable errors.
        max_consecutive_errors: Consecutive failures that abort the job.
        progress_log_interval: Minimum seconds between progress log lines.
        clock: Returns the current UTC time.  Injected in tests.
    """

    def __init__(
        self,
        store: CatalogStore,
        fetcher: PageFetcher,
        cache: SearchCache,
        *,
        item_delay: float = DEFAULT_ITEM_DELAY,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_consecutive_errors: int = DEFAULT_MAX_CONSECUTIVE_ERRORS,
        progress_log_interval: float = DEFAULT_PROGRESS_LOG_INTERVAL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._cache = cache
        self._item_delay = item_delay
        self._retry_delay = retry_delay
        self._max_attempts = max(1, max_attempts)
        self._max_consecutive_errors = max(1, max_consecutive_errors)
        self._progress_log_interval = progress_log_interval
        self._clock = clock

        self._status = BulkJobStatus()
        self._stop_requested = False
        self._task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(
        cls,
        store: CatalogStore,
        fetcher: PageFetcher,
        cache: SearchCache,
        settings: Settings,
    ) -> EnrichmentOrchestrator:
        """Build an orchestrator with the tuning values from settings."""
        return cls(
            store,
            fetcher,
            cache,
            item_delay=settings.enrichment_item_delay_seconds,
            retry_delay=settings.enrichment_retry_delay_seconds,
            max_attempts=settings.enrichment_max_attempts,
            max_consecutive_errors=settings.enrichment_max_consecutive_errors,
            progress_log_interval=settings.enrichment_progress_log_interval_seconds,
        )

    # ------------------------------------------------------------------
    # Single game
    # ------------------------------------------------------------------

    def extract_enrichment_data(self, html: str) -> EnrichmentData:
        """Parse a detail page.  See :func:`extractor.extract_enrichment_data`."""
        return extractor.extract_enrichment_data(html)

    async def enrich_game(self, game_id: int, force: bool = False) -> EnrichmentData:
        """Enrich one game, or return its stored metadata.

        Args:
            game_id: Catalog id.
            force: Re-fetch even when the game was already enriched.

        Returns:
            The stored metadata when the game is already enriched and
            ``force`` is false (no network call), else the fresh metadata.

        Raises:
            GameNotFoundError: ``game_id`` is not in the catalog.
            FetchError: The page could not be fetched.
            ExtractionError: The page carried no parsable item record.
        """
        record = await self._store.get_enrichment_record(game_id)
        if record is None:
            raise GameNotFoundError(game_id)

        if record.scraping_done and not force and record.enrichment_data:
            return EnrichmentData.model_validate(record.enrichment_data)

        result = await self._fetcher.fetch_page(game_id)
        data = self.extract_enrichment_data(result.html)
        await self._persist(game_id, data)
        logger.info(
            "enrich_game.complete",
            game_id=game_id,
            provider=result.provider.value,
            bytes=result.bytes,
        )
        return data

    async def _persist(self, game_id: int, data: EnrichmentData) -> None:
        await self._store.save_enrichment(game_id, data.to_store(), self._clock())
        self._cache.update_game_alternate_names(game_id, data.alternate_name_strings())

    # ------------------------------------------------------------------
    # Bulk job control
    # ------------------------------------------------------------------

    def start_bulk_enrichment(self) -> dict[str, Any]:
        """Launch the bulk job in the background and return immediately.

        Must be called from a running event loop.

        Returns:
            ``{"started": bool, "message": str}``.
        """
        if self._status.running:
            return {"started": False, "message": "Bulk enrichment already in progress"}

        job_id = uuid.uuid4().hex
        self._status = BulkJobStatus(running=True, started_at=self._clock(), job_id=job_id)
        self._stop_requested = False
        self._task = asyncio.create_task(self._run_bulk(job_id), name=f"bulk-enrichment-{job_id}")
        self._task.add_done_callback(self._on_task_done)
        return {"started": True, "message": "Bulk enrichment started"}

    def get_bulk_status(self) -> BulkJobStatus:
        """Return a snapshot of the job status, with a fresh ETA while running."""
        if self._status.running:
            self._status.eta_seconds = self._calculate_eta()
        return dataclasses.replace(self._status)

    def stop_bulk_enrichment(self) -> dict[str, Any]:
        """Ask the running job to stop before its next game.

        Returns:
            ``{"stopped": bool, "message": str, "status": BulkJobStatus}``.
        """
        if not self._status.running:
            return {
                "stopped": False,
                "message": "No bulk enrichment is running",
                "status": self.get_bulk_status(),
            }

        self._stop_requested = True
        logger.info("bulk_enrichment.stop_requested", job_id=self._status.job_id)
        return {
            "stopped": True,
            "message": "Stop requested - will complete current game and stop",
            "status": self.get_bulk_status(),
        }

    async def wait_for_bulk(self) -> BulkJobStatus:
        """Wait for the current job task (if any) to end and return its status."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})
        return self.get_bulk_status()

    async def aclose(self) -> None:
        """Cancel a running job task and wait for it to finalize."""
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.wait({task})

    # ------------------------------------------------------------------
    # Bulk job body
    # ------------------------------------------------------------------

    async def _run_bulk(self, job_id: str) -> None:
        # The task runs in a copied context, so this tag stays inside the job.
        job_id_var.set(job_id)
        try:
            reason = await self._process_bulk()
        except asyncio.CancelledError:
            self._finish("Cancelled")
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("bulk_enrichment.failed", error=str(exc))
            self._finish(f"Failed: {exc}")
        else:
            self._finish(reason)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        # A task cancelled before its first step never reaches _run_bulk.
        if self._task is task and self._status.running:
            self._finish("Cancelled")

    async def _process_bulk(self) -> str:
        status = self._status
        pending, done = await self._store.count_enrichment_states()
        status.total = pending
        status.skipped = done
        logger.info("bulk_enrichment.start", total=pending, skipped=done)

        game_ids = await self._store.list_pending_ids()

        last_log_at = self._clock()
        consecutive_errors = 0

        for game_id in game_ids:
            if self._stop_requested:
                return "Stopped by user"

            try:
                result = await self._fetch_with_retry(game_id)
                status.bytes_transferred += result.bytes
                data = self.extract_enrichment_data(result.html)
                await self._persist(game_id, data)
            except Exception as exc:  # noqa: BLE001
                status.errors += 1
                consecutive_errors += 1

                if isinstance(exc, ClassifiedFetchError) and exc.fatal:
                    logger.error(
                        "bulk_enrichment.fatal_provider_error",
                        game_id=game_id,
                        kind=exc.kind.name,
                        error=str(exc),
                    )
                    return f"ScraperAPI error: {exc}"

                if consecutive_errors >= self._max_consecutive_errors:
                    logger.error(
                        "bulk_enrichment.too_many_errors",
                        consecutive_errors=consecutive_errors,
                    )
                    return f"Too many consecutive errors ({consecutive_errors})"

                logger.warning("bulk_enrichment.item_failed", game_id=game_id, error=str(exc))
                continue

            status.processed += 1
            consecutive_errors = 0

            now = self._clock()
            if (now - last_log_at).total_seconds() >= self._progress_log_interval:
                last_log_at = now
                eta = self._calculate_eta()
                logger.info(
                    "bulk_enrichment.progress",
                    processed=status.processed,
                    total=status.total,
                    skipped=status.skipped,
                    errors=status.errors,
                    transferred=format_bytes(status.bytes_transferred),
                    eta=format_duration(eta) if eta is not None else "calculating...",
                )

            await asyncio.sleep(self._item_delay)

        return "Completed"

    async def _fetch_with_retry(self, game_id: int) -> FetchResult:
        """Fetch a page, retrying only rate-limited answers.

        Raises:
            FetchError: The last failure once retries are exhausted, or the
                first non-retryable one.
        """
        attempt = 1
        while True:
            try:
                return await self._fetcher.fetch_page(game_id)
            except ClassifiedFetchError as exc:
                if not exc.retryable or attempt >= self._max_attempts:
                    raise
                logger.info(
                    "bulk_enrichment.rate_limited",
                    game_id=game_id,
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    retry_in=self._retry_delay,
                )
                await asyncio.sleep(self._retry_delay)
                attempt += 1

    def _calculate_eta(self) -> int | None:
        status = self._status
        if status.started_at is None or status.processed == 0 or status.total == 0:
            return None
        elapsed = (self._clock() - status.started_at).total_seconds()
        remaining = max(status.total - status.processed, 0)
        return math.ceil(elapsed / status.processed * remaining)

    def _finish(self, reason: str) -> None:
        status = self._status
        status.running = False
        status.completed_at = self._clock()
        status.eta_seconds = None
        status.stop_reason = reason

        started_at = status.started_at or status.completed_at
        elapsed = int((status.completed_at - started_at).total_seconds())
        logger.info(
            "bulk_enrichment.complete",
            reason=reason,
            processed=status.processed,
            skipped=status.skipped,
            errors=status.errors,
            elapsed=format_duration(elapsed),
            transferred=format_bytes(status.bytes_transferred),
        )
