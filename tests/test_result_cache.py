"""Tests for SqliteResultCache: append-only keyed range store."""

from __future__ import annotations

import sqlite3
from unittest.mock import patch

import pytest

from metasearch.cache import SqliteResultCache, normalize_query
from metasearch.contracts import Engines, ResultCache
from metasearch.errors import PersistenceError


class TestNormalizeQuery:
    def test_collapses_whitespace_and_case(self):
        assert normalize_query("  Rust   Programming\tLanguage ") == "rust programming language"

    def test_idempotent(self):
        q = normalize_query("Hello World")
        assert normalize_query(q) == q


class TestEngineIds:
    def test_protocol_conformance(self, cache):
        assert isinstance(cache, ResultCache)

    def test_create_or_fetch_is_idempotent(self, cache):
        first = cache.get_engine_id(Engines.DUCKDUCKGO)
        second = cache.get_engine_id(Engines.DUCKDUCKGO)
        assert first == second

    def test_distinct_engines_distinct_ids(self, cache):
        assert cache.get_engine_id(Engines.DUCKDUCKGO) != cache.get_engine_id(Engines.BING)

    def test_accepts_string_value(self, cache):
        assert cache.get_engine_id("google") == cache.get_engine_id(Engines.GOOGLE)

    def test_ids_survive_reopen(self, tmp_path):
        path = tmp_path / "results.db"
        engine_id = SqliteResultCache(path).get_engine_id(Engines.BRAVE)
        assert SqliteResultCache(path).get_engine_id(Engines.BRAVE) == engine_id


class TestRecords:
    def test_missing_record(self, cache):
        engine_id = cache.get_engine_id(Engines.DUCKDUCKGO)
        assert cache.get_query_record("rust", engine_id) is None

    def test_append_creates_record(self, cache, make_rows):
        engine_id = cache.get_engine_id(Engines.DUCKDUCKGO)
        rows = make_rows(3)
        query_id = cache.append_rows(engine_id, "rust", rows, "2026-01-01T00:00:00+00:00")

        record = cache.get_query_record("rust", engine_id)
        assert record == {
            "id": query_id,
            "engine_id": engine_id,
            "query": "rust",
            "fetched_at": "2026-01-01T00:00:00+00:00",
        }
        assert cache.get_rows(query_id) == rows

    def test_append_extends_in_order_and_updates_timestamp(self, cache, make_rows):
        engine_id = cache.get_engine_id(Engines.DUCKDUCKGO)
        first, second = make_rows(3, "a"), make_rows(2, "b")
        qid1 = cache.append_rows(engine_id, "rust", first, "2026-01-01T00:00:00+00:00")
        qid2 = cache.append_rows(engine_id, "rust", second, "2026-01-02T00:00:00+00:00")

        assert qid1 == qid2
        assert cache.get_rows(qid1) == first + second
        assert cache.get_query_record("rust", engine_id)["fetched_at"].startswith("2026-01-02")

    def test_append_empty_touches_record(self, cache):
        engine_id = cache.get_engine_id(Engines.DUCKDUCKGO)
        query_id = cache.append_rows(engine_id, "empty", [], "2026-01-01T00:00:00+00:00")
        assert cache.get_query_record("empty", engine_id)["id"] == query_id
        assert cache.get_rows(query_id) == []

    def test_keys_isolated_by_engine_and_query(self, cache, make_rows):
        ddg = cache.get_engine_id(Engines.DUCKDUCKGO)
        bing = cache.get_engine_id(Engines.BING)
        cache.append_rows(ddg, "rust", make_rows(2, "d"), "t")
        cache.append_rows(bing, "rust", make_rows(1, "b"), "t")
        cache.append_rows(ddg, "python", make_rows(4, "p"), "t")

        assert len(cache.get_rows(cache.get_query_record("rust", ddg)["id"])) == 2
        assert len(cache.get_rows(cache.get_query_record("rust", bing)["id"])) == 1
        assert len(cache.get_rows(cache.get_query_record("python", ddg)["id"])) == 4

    def test_rows_persist_across_instances(self, tmp_path, make_rows):
        path = tmp_path / "results.db"
        writer = SqliteResultCache(path)
        engine_id = writer.get_engine_id(Engines.DUCKDUCKGO)
        query_id = writer.append_rows(engine_id, "rust", make_rows(5), "t")

        reader = SqliteResultCache(path)
        assert reader.get_rows(query_id) == make_rows(5)


class TestFailures:
    def test_sqlite_errors_become_persistence_errors(self, cache):
        with patch.object(cache, "_connect", side_effect=sqlite3.OperationalError("disk I/O error")):
            with pytest.raises(PersistenceError, match="disk I/O error") as exc_info:
                cache.get_rows(1)
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)

    def test_unwritable_location(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x", encoding="utf-8")
        with pytest.raises(PersistenceError, match="cannot initialise cache"):
            SqliteResultCache(blocker / "results.db")
