"""Configuration package for the board-game enrichment pipeline.

Re-exports the settings symbols so that callers can write::

    from boardgame_enrichment.config import get_settings
"""

from __future__ import annotations

from boardgame_enrichment.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
