"""Structured metadata extraction from a game's detail-page HTML.

The detail page embeds the full item record as a JavaScript assignment::

    GEEK.geekitemPreload = {"item": {...}, ...};
    GEEK.geekitemSettings = ...

:func:`extract_enrichment_data` locates that literal, parses it with the
stdlib ``json`` module and maps the ``item`` object onto
:class:`~boardgame_enrichment.core.schemas.enrichment.EnrichmentData`.
Missing optional fields fall back to ``""`` / ``[]``; only a missing marker,
unparsable JSON, or a missing ``item`` key raise.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from bs4 import BeautifulSoup

from boardgame_enrichment.core.exceptions import ExtractionError
from boardgame_enrichment.core.schemas.enrichment import AlternateName, EnrichmentData
from boardgame_enrichment.scraper.config import LINK_TYPES, REQUIRED_ITEM_KEY

logger = logging.getLogger(__name__)

_PRELOAD_RE = re.compile(
    r"GEEK\.geekitemPreload\s*=\s*(\{.*?\});\s*GEEK\.geekitemSettings",
    re.DOTALL,
)

_EXECUTABLE_TAGS: list[str] = ["script", "iframe"]


# ---------------------------------------------------------------------------
# Sanitization
# ---------------------------------------------------------------------------


def sanitize_description(html: str | None) -> str:
    """Remove executable markup from a description, keeping everything else.

    Parses with BeautifulSoup (``html.parser``), drops every ``<script>`` and
    ``<iframe>`` element with its content, and deletes ``on*`` event-handler
    attributes from the remaining tags. Formatting tags such as ``<p>``,
    ``<b>``, ``<i>`` and ``<br/>`` survive; the output is re-serialized, so
    attribute quoting and void tags come back in BeautifulSoup's form.

    Args:
        html: Raw description HTML.  ``None`` is treated as empty.

    Returns:
        The sanitized HTML string.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup.find_all(_EXECUTABLE_TAGS):
        tag.decompose()

    for tag in soup.find_all(True):
        handlers = [attr for attr in tag.attrs if attr.lower().startswith("on")]
        for attr in handlers:
            del tag[attr]

    return str(soup)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _string_field(item: dict[str, Any], key: str) -> str:
    value = item.get(key)
    return value if isinstance(value, str) else ""


def _alternate_names(item: dict[str, Any]) -> list[AlternateName]:
    entries = item.get("alternatenames")
    if not isinstance(entries, list):
        return []
    names: list[AlternateName] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        if not name or not isinstance(name, str):
            continue
        # Entries with a nameid carry no language.
        language = None if entry.get("nameid") else entry.get("language")
        names.append(
            AlternateName(name=name, language=language if isinstance(language, str) else None)
        )
    return names


def _link_names(links: dict[str, Any], link_type: str) -> list[str]:
    entries = links.get(link_type)
    if not isinstance(entries, list):
        return []
    return [
        str(entry["name"])
        for entry in entries
        if isinstance(entry, dict) and entry.get("name")
    ]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract_enrichment_data(html: str) -> EnrichmentData:
    """Parse the embedded item record of a detail page.

    Args:
        html: Full detail-page HTML.

    Returns:
        The extracted metadata.  Never partial: either every field is
        populated (with defaults where the page is silent) or this raises.

    Raises:
        ExtractionError: The preload marker is absent, its JSON does not
            parse, or the parsed object has no ``item`` entry.
    """
    match = _PRELOAD_RE.search(html)
    if match is None:
        raise ExtractionError("Could not find GEEK.geekitemPreload in HTML")

    try:
        preload = json.loads(match.group(1))
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"Failed to parse GEEK.geekitemPreload JSON: {exc}") from exc

    item = preload.get(REQUIRED_ITEM_KEY) if isinstance(preload, dict) else None
    if not isinstance(item, dict):
        raise ExtractionError("No item found in GEEK.geekitemPreload")

    links = item.get("links")
    if not isinstance(links, dict):
        links = {}

    data = EnrichmentData(
        alternate_names=_alternate_names(item),
        primary_name=_string_field(item, "name"),
        description=sanitize_description(_string_field(item, "description")),
        short_description=_string_field(item, "short_description"),
        slug=_string_field(item, "href"),
        **{field: _link_names(links, link_type) for field, link_type in LINK_TYPES.items()},
    )
    logger.debug(
        "extractor: parsed %r with %d alternate names",
        data.primary_name,
        len(data.alternate_names),
    )
    return data
