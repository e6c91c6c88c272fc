"""Unit tests for the catalog store.

Sessions are ``unittest.mock`` doubles; SQL is checked by compiling the
statements against the PostgreSQL dialect, so no database is required.
"""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from boardgame_enrichment.core.models.catalog import CATALOG_COLUMNS, ENRICHMENT_COLUMNS, BggGame
from boardgame_enrichment.core.store import CatalogStore, build_catalog_upsert


def _compile(stmt: Any) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


def _mock_session_factory() -> tuple[MagicMock, AsyncMock]:
    session = AsyncMock()
    session.__aenter__.return_value = session
    session.__aexit__.return_value = False
    factory = MagicMock(return_value=session)
    return factory, session


# ---------------------------------------------------------------------------
# build_catalog_upsert
# ---------------------------------------------------------------------------


class TestBuildCatalogUpsert:
    def test_column_sets_partition_the_table(self) -> None:
        table_columns = {column.name for column in BggGame.__table__.columns}

        assert set(CATALOG_COLUMNS).isdisjoint(ENRICHMENT_COLUMNS)
        assert {"id", *CATALOG_COLUMNS, *ENRICHMENT_COLUMNS} == table_columns

    def test_conflict_update_never_touches_enrichment_columns(self) -> None:
        sql = _compile(build_catalog_upsert([{"id": 13, "name": "Catan", "rank": 500}]))

        assert "ON CONFLICT (id) DO UPDATE SET" in sql
        set_clause = sql.split("DO UPDATE SET", 1)[1]
        for column in ENRICHMENT_COLUMNS:
            assert column not in set_clause

    def test_conflict_update_refreshes_every_catalog_column(self) -> None:
        sql = _compile(build_catalog_upsert([{"id": 13, "name": "Catan"}]))
        set_clause = sql.split("DO UPDATE SET", 1)[1]
        for column in CATALOG_COLUMNS:
            assert f"{column} = excluded.{column}" in set_clause

    def test_enrichment_keys_in_input_rows_are_dropped(self) -> None:
        stmt = build_catalog_upsert(
            [
                {
                    "id": 13,
                    "name": "Catan",
                    "scraping_done": False,
                    "enrichment_data": None,
                    "enriched_at": None,
                }
            ]
        )
        params = stmt.compile(dialect=postgresql.dialect()).params
        assert not any(key.startswith(ENRICHMENT_COLUMNS) for key in params)

    def test_rows_share_one_shape(self) -> None:
        stmt = build_catalog_upsert(
            [
                {"id": 1, "name": "Catan", "year_published": 1995},
                {"id": 2, "name": "Azul", "is_expansion": True},
            ]
        )
        params = stmt.compile(dialect=postgresql.dialect()).params

        years = [v for k, v in params.items() if k.startswith("year_published")]
        expansions = [v for k, v in params.items() if k.startswith("is_expansion")]
        assert sorted(years, key=lambda year: year is None) == [1995, None]
        assert sorted(expansions) == [False, True]


# ---------------------------------------------------------------------------
# CatalogStore
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestCatalogStore:
    async def test_get_enrichment_record_projects_row(self) -> None:
        factory, session = _mock_session_factory()
        session.get.return_value = BggGame(
            id=13,
            name="Catan",
            year_published=1995,
            scraping_done=True,
            enriched_at=datetime(2026, 3, 14, tzinfo=timezone.utc),
            enrichment_data={"primaryName": "CATAN"},
        )

        record = await CatalogStore(factory).get_enrichment_record(13)

        assert record is not None
        assert record.id == 13
        assert record.scraping_done is True
        assert record.enrichment_data == {"primaryName": "CATAN"}
        session.get.assert_awaited_once_with(BggGame, 13)

    async def test_get_enrichment_record_unknown_id(self) -> None:
        factory, session = _mock_session_factory()
        session.get.return_value = None
        assert await CatalogStore(factory).get_enrichment_record(404) is None

    async def test_save_enrichment_marks_done_and_commits(self) -> None:
        factory, session = _mock_session_factory()
        enriched_at = datetime(2026, 3, 14, tzinfo=timezone.utc)

        await CatalogStore(factory).save_enrichment(13, {"primaryName": "CATAN"}, enriched_at)

        stmt = session.execute.await_args.args[0]
        sql = _compile(stmt)
        assert sql.startswith("UPDATE bgg_games SET")
        assert "scraping_done" in sql
        assert "enrichment_data" in sql
        assert "WHERE bgg_games.id" in sql
        session.commit.assert_awaited_once()

    async def test_count_enrichment_states(self) -> None:
        factory, session = _mock_session_factory()
        result = MagicMock()
        result.all.return_value = [(False, 120), (True, 30)]
        session.execute.return_value = result

        assert await CatalogStore(factory).count_enrichment_states() == (120, 30)

    async def test_count_enrichment_states_missing_group_is_zero(self) -> None:
        factory, session = _mock_session_factory()
        result = MagicMock()
        result.all.return_value = [(False, 7)]
        session.execute.return_value = result

        assert await CatalogStore(factory).count_enrichment_states() == (7, 0)

    async def test_list_pending_ids_newest_first_nulls_last(self) -> None:
        factory, session = _mock_session_factory()
        result = MagicMock()
        result.scalars.return_value.all.return_value = [342942, 13, 9999]
        session.execute.return_value = result

        ids = await CatalogStore(factory).list_pending_ids()

        assert ids == [342942, 13, 9999]
        sql = _compile(session.execute.await_args.args[0])
        assert "WHERE bgg_games.scraping_done IS false" in sql
        assert "ORDER BY bgg_games.year_published DESC NULLS LAST, bgg_games.id" in sql

    async def test_load_search_records(self) -> None:
        factory, session = _mock_session_factory()
        result = MagicMock()
        result.all.return_value = [
            SimpleNamespace(
                id=13,
                name="Catan",
                year_published=1995,
                rank=None,
                average=7.0866,
                enrichment_data={
                    "alternateNames": [{"name": "Die Siedler von Catan"}, {"language": "x"}]
                },
            ),
            SimpleNamespace(
                id=230802,
                name="Azul",
                year_published=2017,
                rank=80,
                average=None,
                enrichment_data=None,
            ),
        ]
        session.execute.return_value = result

        records = await CatalogStore(factory).load_search_records()

        catan, azul = records
        assert catan.rank == 0
        assert catan.rating == 7.1
        assert catan.alternate_names == ["Die Siedler von Catan"]
        assert azul.rank == 80
        assert azul.rating is None
        assert azul.alternate_names == []
        sql = _compile(session.execute.await_args.args[0])
        assert "bgg_games.is_expansion IS false" in sql

    async def test_upsert_empty_rows_skips_database(self) -> None:
        factory, _session = _mock_session_factory()
        assert await CatalogStore(factory).upsert_catalog_rows([]) == 0
        factory.assert_not_called()

    async def test_upsert_executes_and_commits(self) -> None:
        factory, session = _mock_session_factory()

        count = await CatalogStore(factory).upsert_catalog_rows(
            [{"id": 13, "name": "Catan"}, {"id": 822, "name": "Carcassonne"}]
        )

        assert count == 2
        session.execute.assert_awaited_once()
        session.commit.assert_awaited_once()
