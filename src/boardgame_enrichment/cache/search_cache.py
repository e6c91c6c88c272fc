"""In-memory search cache over the board-game catalog.

The cache holds one snapshot of every searchable (non-expansion) game with
its canonical name and alternate names.  Matching is case-insensitive
substring containment on either name; the canonical name takes priority.

Ordering
--------
Records are kept sorted by ``year_published`` descending with undated games
after every dated one.  The sort is stable, so games sharing a year (or all
lacking one) keep the order in which they were loaded.  ``search`` walks the
records in that order, so its results need no further sorting.

Concurrency
-----------
The cache lives on the event loop thread and none of its methods await, so
each call runs to completion without interleaving.  ``load_games`` swaps the
whole list in one assignment and ``update_game_alternate_names`` replaces one
record's name list; neither keeps an invariant across records.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from boardgame_enrichment.core.store import CatalogStore

logger = logging.getLogger(__name__)

#: Default number of results returned by :meth:`SearchCache.search`.
DEFAULT_MAX_RESULTS: int = 10


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class GameRecord:
    """One searchable catalog game.

    Attributes:
        id: Catalog id.
        name: Canonical name.
        year_published: Publication year, or ``None`` if unknown.
        rank: Popularity rank (``0`` when unranked).
        rating: Average rating rounded to one decimal, or ``None``.
        alternate_names: Alternate titles in source order.
    """

    id: int
    name: str
    year_published: int | None = None
    rank: int = 0
    rating: float | None = None
    alternate_names: list[str] = field(default_factory=list)


@dataclass
class SearchResult:
    """A single search hit.

    Attributes:
        id: Catalog id.
        name: Canonical name.
        year_published: Publication year, or ``None``.
        rating: Rounded average rating, or ``None``.
        matched_alternate_name: The first alternate name that matched, or
            ``None`` when the canonical name matched.
        alternate_names: Every alternate name of the game, for display.
    """

    id: int
    name: str
    year_published: int | None
    rating: float | None
    matched_alternate_name: str | None
    alternate_names: list[str]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_alternate_names(names: Iterable[str]) -> list[str]:
    """Clean a list of alternate names before it enters the cache.

    Strips surrounding whitespace, drops empty and non-string entries, and
    drops case-insensitive duplicates (the first spelling wins).  Every cache
    entry point uses this, so loaded and live-updated names look alike.

    Args:
        names: Raw alternate names.

    Returns:
        A new list, in input order.
    """
    seen: set[str] = set()
    cleaned: list[str] = []
    for name in names:
        if not isinstance(name, str):
            continue
        stripped = name.strip()
        if not stripped:
            continue
        key = stripped.casefold()
        if key in seen:
            continue
        seen.add(key)
        cleaned.append(stripped)
    return cleaned


def _year_sort_key(record: GameRecord) -> tuple[int, int]:
    # Undated records sort after all dated ones; dated ones newest first.
    if record.year_published is None:
        return (1, 0)
    return (0, -record.year_published)


# ---------------------------------------------------------------------------
# SearchCache
# ---------------------------------------------------------------------------


class SearchCache:
    """Queryable in-memory snapshot of the catalog.

    Construct one instance at process start and inject it wherever the
    catalog is searched or enriched.
    """

    def __init__(self) -> None:
        self._games: list[GameRecord] = []
        self._by_id: dict[int, GameRecord] = {}
        self._loaded: bool = False
        self._data_source: str = "memory"

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_games(self, records: Iterable[GameRecord], *, source: str = "memory") -> None:
        """Replace the entire cached catalog.

        The caller's records are copied, so later changes to them do not
        leak into the cache.

        Args:
            records: The new catalog snapshot.
            source: Label reported by :meth:`get_data_source`.
        """
        games = [
            dataclasses.replace(
                record,
                alternate_names=normalize_alternate_names(record.alternate_names),
            )
            for record in records
        ]
        games.sort(key=_year_sort_key)

        self._games = games
        self._by_id = {game.id: game for game in games}
        self._data_source = source
        self._loaded = True

    async def initialize_from_store(self, store: CatalogStore) -> int:
        """Load the cache from the persisted catalog.

        Args:
            store: The catalog store to read non-expansion games from.

        Returns:
            Number of games loaded.
        """
        records = await store.load_search_records()
        self.load_games(records, source="database")
        logger.info("search_cache: loaded %d games from database", len(self._games))
        return len(self._games)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def search(self, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> list[SearchResult]:
        """Return games whose canonical or alternate name contains ``query``.

        Args:
            query: Case-insensitive substring to look for.
            max_results: Upper bound on the number of results.

        Returns:
            Matches ordered by year descending (undated last), at most
            ``max_results`` long.  Empty if the cache is not loaded or the
            query is empty.
        """
        if not self._loaded or not query or max_results <= 0:
            return []

        needle = query.casefold()
        results: list[SearchResult] = []

        for game in self._games:
            if needle in game.name.casefold():
                matched_alternate: str | None = None
            else:
                matched_alternate = next(
                    (alt for alt in game.alternate_names if needle in alt.casefold()),
                    None,
                )
                if matched_alternate is None:
                    continue

            results.append(
                SearchResult(
                    id=game.id,
                    name=game.name,
                    year_published=game.year_published,
                    rating=game.rating,
                    matched_alternate_name=matched_alternate,
                    alternate_names=list(game.alternate_names),
                )
            )
            if len(results) >= max_results:
                break

        return results

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update_game_alternate_names(self, game_id: int, names: Sequence[str]) -> None:
        """Replace the alternate names of one cached game.

        Unknown ids (expansions, games added after the last load) are
        silently ignored.
        """
        game = self._by_id.get(game_id)
        if game is None:
            return
        game.alternate_names = normalize_alternate_names(names)

    def reset(self) -> None:
        """Drop every cached game and mark the cache as not loaded."""
        self._games = []
        self._by_id = {}
        self._data_source = "memory"
        self._loaded = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def is_loaded(self) -> bool:
        return self._loaded

    def get_count(self) -> int:
        return len(self._games)

    def get_data_source(self) -> str:
        """Return ``"database"`` or ``"memory"`` for the current snapshot."""
        return self._data_source
