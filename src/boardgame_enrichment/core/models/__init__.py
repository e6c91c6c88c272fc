"""SQLAlchemy ORM models for the enrichment pipeline.

All models are imported here so that application code can do
``from boardgame_enrichment.core.models import BggGame`` without knowing
which sub-module a model lives in.
"""

from __future__ import annotations

from boardgame_enrichment.core.models.base import Base
from boardgame_enrichment.core.models.catalog import (
    CATALOG_COLUMNS,
    ENRICHMENT_COLUMNS,
    BggGame,
)

__all__ = [
    "Base",
    "BggGame",
    "CATALOG_COLUMNS",
    "ENRICHMENT_COLUMNS",
]
