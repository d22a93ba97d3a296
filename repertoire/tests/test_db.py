"""Tests for db.py and the PostgreSQL-backed stores."""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import psycopg
import pytest

from repertoire import db
from repertoire.exceptions import StoreUnavailableError
from repertoire.models import Alias, Opening, Transition
from repertoire.stores import PostgresOpeningStore, PostgresTransitionStore
from repertoire.transition_graph import TransitionGraph

OPENING_ROW = ("c60", "fen-ruy", "C60", "1. e4 e5 2. Nf3 Nc6 3. Bb5", "Ruy Lopez", "eco_tsv", None, True)


def make_async_conn(fetchall=(), fetchone=None):
    cur = AsyncMock()
    cur.fetchall.side_effect = list(fetchall)
    cur.fetchone.return_value = fetchone
    conn = MagicMock()
    conn.cursor.return_value.__aenter__ = AsyncMock(return_value=cur)
    conn.cursor.return_value.__aexit__ = AsyncMock(return_value=False)
    return conn, cur


def make_sync_conn(fetchall=(), fetchone=None):
    cur = MagicMock()
    cur.fetchall.side_effect = list(fetchall)
    cur.fetchone.return_value = fetchone
    conn = MagicMock()
    conn.cursor.return_value.__enter__ = MagicMock(return_value=cur)
    conn.cursor.return_value.__exit__ = MagicMock(return_value=False)
    return conn, cur


def test_escape_like():
    assert db.escape_like("1. e4") == "1. e4"
    assert db.escape_like("50%_off\\") == "50\\%\\_off\\\\"


def test_build_order_by():
    assert db.build_order_by(db.DEFAULT_MATCH_ORDER) == (
        'is_eco_root DESC NULLS LAST, eco COLLATE "C" ASC NULLS LAST, moves COLLATE "C" ASC NULLS LAST'
    )
    with pytest.raises(ValueError):
        db.build_order_by([("fen; DROP TABLE openings", "asc")])
    with pytest.raises(ValueError):
        db.build_order_by([("eco", "sideways")])


def test_find_openings_matching_patterns_and_aliases():
    conn, cur = make_async_conn(fetchall=[[OPENING_ROW], [("c60", "scid", "Spanish Game")]])

    found = asyncio.run(db.find_openings_matching(conn, "1. e4 e5", 15))

    sql, params = cur.execute.call_args_list[0].args
    assert "ILIKE" in sql and "LIMIT" in sql
    assert params == ("1. e4 e5%", "% 1. e4 e5 %", 15)
    assert found == [
        Opening(
            id="c60", fen="fen-ruy", eco="C60", moves="1. e4 e5 2. Nf3 Nc6 3. Bb5", name="Ruy Lopez",
            src="eco_tsv", scid=None, is_eco_root=True, aliases=[Alias(source="scid", value="Spanish Game")],
        )
    ]


def test_find_openings_matching_skips_alias_query_when_empty():
    conn, cur = make_async_conn(fetchall=[[]])
    assert asyncio.run(db.find_openings_matching(conn, "1. h4", 15)) == []
    assert cur.execute.await_count == 1


def test_find_transitions_matching_is_unanchored():
    conn, cur = make_async_conn(fetchall=[[(3, "a", "b", "1. e4 e5", "1. e4 e5 2. Nf3")]])

    found = asyncio.run(db.find_transitions_matching(conn, "e5 2.", 10))

    _, params = cur.execute.call_args.args
    assert params == ("%e5 2.%", "%e5 2.%", 10)
    assert found == [Transition(id="3", from_fen="a", to_fen="b", from_src="1. e4 e5", to_src="1. e4 e5 2. Nf3")]


def test_find_opening_by_fen_missing():
    conn, _ = make_async_conn(fetchone=None)
    assert asyncio.run(db.find_opening_by_fen(conn, "nowhere")) is None


def test_list_openings_builds_filters():
    conn, cur = make_sync_conn(fetchall=[[OPENING_ROW], []])

    found = db.list_openings(conn, search="ruy", eco="C60", offset=20, limit=10)

    sql, params = cur.execute.call_args_list[0].args
    assert "EXISTS" in sql and "eco = %s" in sql
    assert params == ["%ruy%", "%ruy%", "%ruy%", "%ruy%", "C60", 10, 20]
    assert found[0].name == "Ruy Lopez"
    assert found[0].aliases == []


def test_upsert_opening_sets_id():
    conn, _ = make_sync_conn(fetchone=("generated-id",))
    opening = db.upsert_opening(conn, Opening(fen="f", eco="A00", moves="1. a3", name="Anderssen's Opening"))
    assert opening.id == "generated-id"


def test_insert_transition_reports_duplicates():
    conn, _ = make_sync_conn(fetchone=None)
    assert db.insert_transition(conn, Transition(from_fen="a", to_fen="b", from_src="x", to_src="y")) is False


def test_postgres_store_wraps_database_errors():
    with patch("repertoire.stores.db.get_async_connection", side_effect=psycopg.OperationalError("down")):
        with pytest.raises(StoreUnavailableError):
            asyncio.run(PostgresOpeningStore().find_by_prefix_or_substring("1. e4", 15))
        with pytest.raises(StoreUnavailableError):
            asyncio.run(PostgresOpeningStore().find_by_exact_position("fen"))
        with pytest.raises(StoreUnavailableError):
            asyncio.run(PostgresOpeningStore().find_by_positions(["fen"]))
        with pytest.raises(StoreUnavailableError):
            asyncio.run(PostgresTransitionStore().find_by_canonical_substring("1. e4", 10))


def test_find_openings_by_fens_single_query():
    conn, cur = make_async_conn(fetchall=[[OPENING_ROW]])

    found = asyncio.run(db.find_openings_by_fens(conn, ["fen-ruy", "fen-missing"]))

    sql, params = cur.execute.call_args.args
    assert "fen = ANY(%s)" in sql
    assert params == (["fen-ruy", "fen-missing"],)
    assert cur.execute.await_count == 1
    assert list(found) == ["fen-ruy"]
    assert found["fen-ruy"].name == "Ruy Lopez"


def test_transition_lookup_uses_two_connections():
    opened = []

    @asynccontextmanager
    async def counting_connection():
        opened.append(True)
        yield MagicMock()

    edges = [
        Transition(id=str(i), from_fen=f"a{i}", to_fen=f"b{i}", from_src="1. e4", to_src=f"1. e4 {i}")
        for i in range(10)
    ]
    graph = TransitionGraph(PostgresTransitionStore(), PostgresOpeningStore(), limit=10)
    with patch("repertoire.stores.db.get_async_connection", side_effect=counting_connection), \
         patch("repertoire.stores.db.find_transitions_matching", AsyncMock(return_value=edges)), \
         patch("repertoire.stores.db.find_openings_by_fens", AsyncMock(return_value={})) as mock_lookup:
        found = asyncio.run(graph.find_transitions("1. e4"))

    assert len(found) == 10
    assert len(opened) == 2
    assert len(mock_lookup.await_args.args[1]) == 20


@pytest.mark.integration
def test_match_against_live_database():
    import os
    if not os.environ.get("REPERTOIRE_LIVE_DB"):
        pytest.skip("REPERTOIRE_LIVE_DB not set, skipping DB integration test")
    found = asyncio.run(PostgresOpeningStore().find_by_prefix_or_substring("1. e4", 15))
    assert all(o.moves.lower().startswith("1. e4") or " 1. e4 " in o.moves.lower() for o in found)
