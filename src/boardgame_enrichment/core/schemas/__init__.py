"""Pydantic schemas shared across the enrichment pipeline."""

from __future__ import annotations

from boardgame_enrichment.core.schemas.enrichment import AlternateName, EnrichmentData

__all__ = [
    "AlternateName",
    "EnrichmentData",
]
