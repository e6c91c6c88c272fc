"""Persistence layer for the board-game catalog and its enrichment state.

:class:`CatalogStore` is the only code that talks to the ``bgg_games`` table.
Each method opens its own short-lived session from the injected factory, so
the background bulk job and interactive enrichment calls never share a
transaction.  Row writes are single-statement ``UPDATE`` / ``INSERT … ON
CONFLICT`` operations and therefore atomic per row.

Catalog re-import contract
--------------------------
:meth:`CatalogStore.upsert_catalog_rows` refreshes only the base catalog
columns (:data:`~boardgame_enrichment.core.models.catalog.CATALOG_COLUMNS`).
``scraping_done``, ``enriched_at`` and ``enrichment_data`` are never part of
the ``ON CONFLICT DO UPDATE`` set, so a re-import cannot undo enrichment.
The CSV import job itself lives outside this package: nothing here calls
:meth:`~CatalogStore.upsert_catalog_rows`.  It is the write path that an
external importer uses.  The columns it must leave alone are listed in
:data:`~boardgame_enrichment.core.models.catalog.ENRICHMENT_COLUMNS`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from boardgame_enrichment.cache.search_cache import GameRecord
from boardgame_enrichment.core.models.catalog import CATALOG_COLUMNS, BggGame

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Row projections
# ---------------------------------------------------------------------------


@dataclass
class EnrichmentRecord:
    """Enrichment-relevant projection of a ``bgg_games`` row.

    Attributes:
        id: Catalog id.
        name: Canonical name.
        year_published: Publication year, or ``None``.
        scraping_done: Whether the detail page was already enriched.
        enriched_at: Timestamp of the last enrichment, or ``None``.
        enrichment_data: Stored camelCase metadata blob, or ``None``.
    """

    id: int
    name: str
    year_published: int | None
    scraping_done: bool
    enriched_at: datetime | None
    enrichment_data: dict[str, Any] | None


def _alternate_names_from_blob(blob: Any) -> list[str]:
    """Pull ``alternateNames[*].name`` out of a stored enrichment blob."""
    if not isinstance(blob, dict):
        return []
    entries = blob.get("alternateNames")
    if not isinstance(entries, list):
        return []
    names: list[str] = []
    for entry in entries:
        if isinstance(entry, dict) and isinstance(entry.get("name"), str):
            names.append(entry["name"])
    return names


def build_catalog_upsert(rows: Sequence[Mapping[str, Any]]) -> Insert:
    """Build the ``INSERT … ON CONFLICT (id) DO UPDATE`` for catalog rows.

    Only keys listed in ``CATALOG_COLUMNS`` (plus ``id``) are inserted, and
    only those catalog columns are refreshed on conflict.  Missing columns
    are written as ``NULL`` (``is_expansion`` as ``False``) so every row of
    the multi-row ``VALUES`` clause has the same shape.

    Args:
        rows: Parsed catalog rows keyed by column name.

    Returns:
        The PostgreSQL insert statement.
    """
    allowed = ("id", *CATALOG_COLUMNS)
    values = [
        {key: row.get(key, False if key == "is_expansion" else None) for key in allowed}
        for row in rows
    ]
    stmt = insert(BggGame).values(values)
    return stmt.on_conflict_do_update(
        index_elements=[BggGame.id],
        set_={column: stmt.excluded[column] for column in CATALOG_COLUMNS},
    )


# ---------------------------------------------------------------------------
# CatalogStore
# ---------------------------------------------------------------------------


class CatalogStore:
    """Async data access for catalog rows and their enrichment state.

    Args:
        session_factory: Factory producing :class:`AsyncSession` objects.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_enrichment_record(self, game_id: int) -> EnrichmentRecord | None:
        """Return the enrichment projection of one game, or ``None``."""
        async with self._session_factory() as session:
            game = await session.get(BggGame, game_id)
            if game is None:
                return None
            return EnrichmentRecord(
                id=game.id,
                name=game.name,
                year_published=game.year_published,
                scraping_done=bool(game.scraping_done),
                enriched_at=game.enriched_at,
                enrichment_data=game.enrichment_data,
            )

    async def save_enrichment(
        self,
        game_id: int,
        enrichment_data: dict[str, Any],
        enriched_at: datetime,
    ) -> None:
        """Mark a game enriched and store its metadata blob."""
        async with self._session_factory() as session:
            await session.execute(
                update(BggGame)
                .where(BggGame.id == game_id)
                .values(
                    scraping_done=True,
                    enriched_at=enriched_at,
                    enrichment_data=enrichment_data,
                )
            )
            await session.commit()
        logger.debug("store.enrichment_saved", game_id=game_id)

    async def count_enrichment_states(self) -> tuple[int, int]:
        """Return ``(pending, done)`` row counts."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(BggGame.scraping_done, func.count()).group_by(BggGame.scraping_done)
            )
            counts = {bool(done): int(count) for done, count in result.all()}
        return counts.get(False, 0), counts.get(True, 0)

    async def list_pending_ids(self) -> list[int]:
        """Return ids still awaiting enrichment, newest publication year first.

        Games without a year come last; ties are broken by id so the order
        is deterministic across runs.
        """
        async with self._session_factory() as session:
            result = await session.execute(
                select(BggGame.id)
                .where(BggGame.scraping_done.is_(False))
                .order_by(BggGame.year_published.desc().nulls_last(), BggGame.id)
            )
            return [int(game_id) for game_id in result.scalars().all()]

    async def load_search_records(self) -> list[GameRecord]:
        """Return every non-expansion game as a search-cache record."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(
                    BggGame.id,
                    BggGame.name,
                    BggGame.year_published,
                    BggGame.rank,
                    BggGame.average,
                    BggGame.enrichment_data,
                ).where(BggGame.is_expansion.is_(False))
            )
            rows = result.all()

        return [
            GameRecord(
                id=int(row.id),
                name=row.name,
                year_published=row.year_published,
                rank=row.rank or 0,
                rating=round(row.average, 1) if row.average else None,
                alternate_names=_alternate_names_from_blob(row.enrichment_data),
            )
            for row in rows
        ]

    async def upsert_catalog_rows(self, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insert or refresh base catalog rows without touching enrichment.

        Entry point for external catalog importers; the enrichment pipeline
        itself never writes base catalog columns.

        Args:
            rows: Parsed catalog rows keyed by column name; ``id`` required.

        Returns:
            Number of rows submitted.
        """
        if not rows:
            return 0
        async with self._session_factory() as session:
            await session.execute(build_catalog_upsert(rows))
            await session.commit()
        logger.info("store.catalog_upserted", count=len(rows))
        return len(rows)
