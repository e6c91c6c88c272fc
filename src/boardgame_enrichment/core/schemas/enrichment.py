"""Pydantic schemas for scraped enrichment metadata.

:class:`EnrichmentData` is the shape stored in ``bgg_games.enrichment_data``.
Field names are snake_case in Python and camelCase in the stored JSON, so the
blob written by earlier versions of the pipeline validates unchanged::

    data = EnrichmentData.model_validate(row.enrichment_data)
    row.enrichment_data = data.to_store()
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AlternateName(BaseModel):
    """A localized or alternative title of a game.

    Attributes:
        name: The alternate title as published.
        language: Language label when the source supplies one.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    language: Optional[str] = None


class EnrichmentData(BaseModel):
    """Structured metadata extracted from a game's detail page.

    Attributes:
        alternate_names: Alternate titles in source order.
        primary_name: Canonical name as shown on the page.
        description: Sanitized HTML description.
        short_description: One-line teaser.
        slug: Relative page path (e.g. ``/boardgame/13/catan``).
        designers: Designer names.
        artists: Artist names.
        publishers: Publisher names.
        categories: Category names.
        mechanics: Mechanic names.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    alternate_names: List[AlternateName] = Field(default_factory=list)
    primary_name: str = ""
    description: str = ""
    short_description: str = ""
    slug: str = ""
    designers: List[str] = Field(default_factory=list)
    artists: List[str] = Field(default_factory=list)
    publishers: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    mechanics: List[str] = Field(default_factory=list)

    def alternate_name_strings(self) -> list[str]:
        """Return just the alternate titles, in source order."""
        return [alt.name for alt in self.alternate_names]

    def to_store(self) -> dict[str, Any]:
        """Serialise to the camelCase JSON blob persisted in the store.

        Absent optional values (an alternate name without a language) are
        omitted rather than written as ``null``.
        """
        return self.model_dump(by_alias=True, exclude_none=True)
