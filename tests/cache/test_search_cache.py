"""Unit tests for the in-memory search cache.

Covers load ordering, substring matching on canonical and alternate names,
primary-match priority, truncation, alternate-name normalization, live
updates, and loading from the persisted store.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from boardgame_enrichment.cache.search_cache import (
    GameRecord,
    SearchCache,
    normalize_alternate_names,
)


def _loaded(*records: GameRecord) -> SearchCache:
    cache = SearchCache()
    cache.load_games(records)
    return cache


# ---------------------------------------------------------------------------
# normalize_alternate_names
# ---------------------------------------------------------------------------


class TestNormalizeAlternateNames:
    def test_strips_whitespace(self) -> None:
        assert normalize_alternate_names(["  Catan  "]) == ["Catan"]

    def test_drops_empty_entries(self) -> None:
        assert normalize_alternate_names(["", "   ", "Catan"]) == ["Catan"]

    def test_drops_case_insensitive_duplicates_keeping_first(self) -> None:
        assert normalize_alternate_names(["Catan", "CATAN", "catan "]) == ["Catan"]

    def test_ignores_non_string_entries(self) -> None:
        assert normalize_alternate_names(["Catan", None, 42]) == ["Catan"]  # type: ignore[list-item]

    def test_preserves_input_order(self) -> None:
        assert normalize_alternate_names(["B", "A", "C"]) == ["B", "A", "C"]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoadGames:
    def test_new_cache_is_empty_and_not_loaded(self) -> None:
        cache = SearchCache()
        assert cache.is_loaded() is False
        assert cache.get_count() == 0
        assert cache.get_data_source() == "memory"

    def test_load_marks_loaded_and_counts(self) -> None:
        cache = _loaded(GameRecord(id=1, name="Catan"), GameRecord(id=2, name="Azul"))
        assert cache.is_loaded() is True
        assert cache.get_count() == 2

    def test_loading_an_empty_list_still_marks_loaded(self) -> None:
        cache = _loaded()
        assert cache.is_loaded() is True
        assert cache.get_count() == 0

    def test_load_replaces_previous_snapshot(self) -> None:
        cache = _loaded(GameRecord(id=1, name="Catan"))
        cache.load_games([GameRecord(id=2, name="Azul")])
        assert cache.get_count() == 1
        assert cache.search("Catan") == []
        assert [r.id for r in cache.search("Azul")] == [2]

    def test_caller_records_are_not_shared(self) -> None:
        record = GameRecord(id=1, name="Catan", alternate_names=["Siedler"])
        cache = _loaded(record)
        record.alternate_names.append("Colons")
        assert cache.search("Colons") == []

    def test_load_normalizes_alternate_names(self) -> None:
        cache = _loaded(
            GameRecord(id=1, name="Catan", alternate_names=[" Siedler ", "siedler", ""])
        )
        (result,) = cache.search("Catan")
        assert result.alternate_names == ["Siedler"]

    def test_reset_clears_everything(self) -> None:
        cache = _loaded(GameRecord(id=1, name="Catan"))
        cache.reset()
        assert cache.is_loaded() is False
        assert cache.get_count() == 0
        assert cache.search("Catan") == []


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class TestSearch:
    def test_not_loaded_returns_empty(self) -> None:
        assert SearchCache().search("Catan") == []

    def test_empty_query_returns_empty(self) -> None:
        cache = _loaded(GameRecord(id=1, name="Catan"))
        assert cache.search("") == []

    def test_match_is_case_insensitive_substring(self) -> None:
        cache = _loaded(GameRecord(id=1, name="Ticket to Ride"))
        assert [r.id for r in cache.search("TO RI")] == [1]

    def test_siedler_matches_alternate_name(self) -> None:
        cache = _loaded(
            GameRecord(id=1, name="Catan", alternate_names=["Die Siedler von Catan"])
        )
        results = cache.search("Siedler")
        assert len(results) == 1
        assert results[0].matched_alternate_name == "Die Siedler von Catan"

    def test_primary_match_wins_over_alternate(self) -> None:
        cache = _loaded(
            GameRecord(id=1, name="Catan", alternate_names=["Die Siedler von Catan"])
        )
        results = cache.search("Catan")
        assert len(results) == 1
        assert results[0].matched_alternate_name is None
        assert results[0].alternate_names == ["Die Siedler von Catan"]

    def test_first_matching_alternate_is_reported(self) -> None:
        cache = _loaded(
            GameRecord(id=1, name="Catan", alternate_names=["Colons de Catane", "Coloni di Catan"])
        )
        (result,) = cache.search("colon")
        assert result.matched_alternate_name == "Colons de Catane"

    def test_results_year_descending_with_undated_last(self) -> None:
        cache = _loaded(
            GameRecord(id=1, name="Game A", year_published=None),
            GameRecord(id=2, name="Game B", year_published=1995),
            GameRecord(id=3, name="Game C", year_published=2020),
            GameRecord(id=4, name="Game D", year_published=2008),
        )
        assert [r.id for r in cache.search("game")] == [3, 4, 2, 1]

    def test_ties_keep_load_order(self) -> None:
        cache = _loaded(
            GameRecord(id=7, name="Game X", year_published=2010),
            GameRecord(id=3, name="Game Y", year_published=2010),
            GameRecord(id=9, name="Game Z"),
            GameRecord(id=1, name="Game W"),
        )
        assert [r.id for r in cache.search("game")] == [7, 3, 9, 1]

    def test_truncates_to_max_results(self) -> None:
        cache = _loaded(
            *(GameRecord(id=i, name=f"Game {i}", year_published=2000 + i) for i in range(20))
        )
        results = cache.search("game", max_results=5)
        assert [r.id for r in results] == [19, 18, 17, 16, 15]

    def test_default_limit_is_ten(self) -> None:
        cache = _loaded(*(GameRecord(id=i, name=f"Game {i}") for i in range(15)))
        assert len(cache.search("game")) == 10

    def test_every_result_contains_query(self) -> None:
        cache = _loaded(
            GameRecord(id=1, name="Catan", alternate_names=["Siedler"]),
            GameRecord(id=2, name="Carcassonne"),
            GameRecord(id=3, name="Azul", alternate_names=["Azul: Summer Pavilion"]),
            GameRecord(id=4, name="Pandemic"),
        )
        for query in ("a", "an", "SUM", "ca"):
            for result in cache.search(query):
                names = [result.name, *result.alternate_names]
                assert any(query.casefold() in name.casefold() for name in names)

    def test_result_carries_display_fields(self) -> None:
        cache = _loaded(GameRecord(id=13, name="Catan", year_published=1995, rating=7.1, rank=500))
        (result,) = cache.search("cat")
        assert result.id == 13
        assert result.year_published == 1995
        assert result.rating == 7.1


# ---------------------------------------------------------------------------
# Mutation
# ---------------------------------------------------------------------------


class TestUpdateGameAlternateNames:
    def test_update_makes_new_names_searchable(self) -> None:
        cache = _loaded(GameRecord(id=1, name="Catan"))
        cache.update_game_alternate_names(1, ["Die Siedler von Catan"])
        (result,) = cache.search("Siedler")
        assert result.matched_alternate_name == "Die Siedler von Catan"

    def test_update_replaces_old_names(self) -> None:
        cache = _loaded(GameRecord(id=1, name="Catan", alternate_names=["Old Name"]))
        cache.update_game_alternate_names(1, ["New Name"])
        assert cache.search("Old") == []

    def test_update_normalizes_names(self) -> None:
        cache = _loaded(GameRecord(id=1, name="Catan"))
        cache.update_game_alternate_names(1, ["  Siedler", "SIEDLER", ""])
        (result,) = cache.search("Catan")
        assert result.alternate_names == ["Siedler"]

    def test_unknown_id_is_a_noop(self) -> None:
        cache = _loaded(GameRecord(id=1, name="Catan"))
        cache.update_game_alternate_names(999, ["Anything"])
        assert cache.get_count() == 1
        assert cache.search("Anything") == []

    def test_update_on_unloaded_cache_is_a_noop(self) -> None:
        cache = SearchCache()
        cache.update_game_alternate_names(1, ["Anything"])
        assert cache.is_loaded() is False


# ---------------------------------------------------------------------------
# Loading from the store
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestInitializeFromStore:
    async def test_loads_records_and_reports_database_source(self) -> None:
        store = MagicMock()
        store.load_search_records = AsyncMock(
            return_value=[
                GameRecord(id=13, name="Catan", year_published=1995, alternate_names=["Siedler"]),
                GameRecord(id=230802, name="Azul", year_published=2017),
            ]
        )
        cache = SearchCache()

        count = await cache.initialize_from_store(store)

        assert count == 2
        assert cache.is_loaded() is True
        assert cache.get_data_source() == "database"
        assert [r.id for r in cache.search("a")] == [230802, 13]
        store.load_search_records.assert_awaited_once()
