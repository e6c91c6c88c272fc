"""SQLAlchemy ORM model for the board-game catalog.

One row per BoardGameGeek catalog id.  The base columns are refreshed by the
periodic rank-dump import; the three enrichment columns (``scraping_done``,
``enriched_at``, ``enrichment_data``) are written only by the enrichment
pipeline and must survive every re-import.

The schema itself is created and migrated by the surrounding application;
this model exists for ORM-level query support.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from boardgame_enrichment.core.models.base import Base


class BggGame(Base):
    """A catalog game plus its scraped enrichment state.

    Attributes:
        id: BoardGameGeek catalog id (natural primary key).
        name: Canonical game name.
        year_published: Publication year, if known.
        rank: Overall popularity rank, if ranked.
        bayes_average: Bayesian average rating.
        average: Raw average rating.
        users_rated: Number of ratings.
        is_expansion: Expansions are excluded from the search cache.
        abstracts_rank .. war_games_rank: Per-category sub-ranks.
        scraping_done: ``True`` once the detail page was enriched.
        enriched_at: Timestamp of the last successful enrichment.
        enrichment_data: Extracted metadata blob (camelCase JSON keys).
    """

    __tablename__ = "bgg_games"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    year_published: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True, index=True)
    rank: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    bayes_average: Mapped[Optional[float]] = mapped_column(sa.Float, nullable=True)
    average: Mapped[Optional[float]] = mapped_column(sa.Float, nullable=True)
    users_rated: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    is_expansion: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, server_default=sa.false()
    )

    # Per-category sub-ranks
    abstracts_rank: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    cgs_rank: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    childrens_games_rank: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    family_games_rank: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    party_games_rank: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    strategy_games_rank: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    thematic_rank: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    war_games_rank: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)

    # Enrichment state (never touched by catalog re-imports)
    scraping_done: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, server_default=sa.false(), index=True
    )
    enriched_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    enrichment_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)


#: Base catalog columns a re-import may overwrite.  Everything else on the
#: row belongs to the enrichment pipeline.
CATALOG_COLUMNS: tuple[str, ...] = (
    "name",
    "year_published",
    "rank",
    "bayes_average",
    "average",
    "users_rated",
    "is_expansion",
    "abstracts_rank",
    "cgs_rank",
    "childrens_games_rank",
    "family_games_rank",
    "party_games_rank",
    "strategy_games_rank",
    "thematic_rank",
    "war_games_rank",
)

#: Columns owned by the enrichment pipeline.
ENRICHMENT_COLUMNS: tuple[str, ...] = ("scraping_done", "enriched_at", "enrichment_data")
