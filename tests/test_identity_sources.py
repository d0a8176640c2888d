"""Tests for the snapshot and SQLite identity sources."""

import json
import sqlite3
from pathlib import Path

import pytest

from conftest import ALLOWED_KEY, OTHER_KEY
from relayguard.adapters.identity.base import TextCheckResult, apply_filter_mode, find_blocked_words
from relayguard.adapters.identity.snapshot import SnapshotIdentitySource
from relayguard.adapters.identity.sqlite_store import SQLiteIdentitySource
from relayguard.core.config import FilterMode
from relayguard.core.errors import ConfigError, DataSourceConnectionError, QueryError
from relayguard.schemas.snapshot import IdentitySnapshot


class TestFilterModeHelpers:
    """Module-level helpers shared by both backends."""

    @pytest.mark.parametrize("present", [True, False])
    def test_modes_are_negations(self, present: bool) -> None:
        assert apply_filter_mode(present, FilterMode.BLACKLIST) is (not present)
        assert apply_filter_mode(present, FilterMode.WHITELIST) is present

    def test_find_blocked_words_is_case_insensitive_substring(self) -> None:
        assert find_blocked_words("Buy SPAMMY things", ["spam", "eggs"]) == ["spam"]

    def test_find_blocked_words_ignores_empty_words(self) -> None:
        assert find_blocked_words("anything", ["", "zzz"]) == []

    def test_text_check_result_sorts_and_dedupes(self) -> None:
        result = TextCheckResult.from_matches(["spam", "etf", "spam"])
        assert result.allowed is False
        assert result.matched_words == ("etf", "spam")
        assert TextCheckResult.from_matches([]).allowed is True


class TestIdentitySourceContract:
    """Both backends must answer identically."""

    def test_identity_whitelist(self, any_source) -> None:
        assert any_source.check_identity(ALLOWED_KEY, FilterMode.WHITELIST) is True
        assert any_source.check_identity(OTHER_KEY, FilterMode.WHITELIST) is False

    def test_identity_blacklist(self, any_source) -> None:
        assert any_source.check_identity(ALLOWED_KEY, FilterMode.BLACKLIST) is False
        assert any_source.check_identity(OTHER_KEY, FilterMode.BLACKLIST) is True

    @pytest.mark.parametrize("identity", [ALLOWED_KEY, OTHER_KEY, "", "abc"])
    def test_identity_modes_are_symmetric(self, any_source, identity: str) -> None:
        blacklist = any_source.check_identity(identity, FilterMode.BLACKLIST)
        whitelist = any_source.check_identity(identity, FilterMode.WHITELIST)
        assert blacklist is (not whitelist)

    @pytest.mark.parametrize("category", [0, 1, 7, 30023])
    def test_category_modes_are_symmetric(self, any_source, category: int) -> None:
        blacklist = any_source.check_category(category, FilterMode.BLACKLIST)
        whitelist = any_source.check_category(category, FilterMode.WHITELIST)
        assert blacklist is (not whitelist)
        assert whitelist is (category == 1)

    def test_text_without_blocked_words_is_allowed(self, any_source) -> None:
        result = any_source.check_text("a perfectly normal note")
        assert result == TextCheckResult(allowed=True, matched_words=())

    def test_text_match_is_case_insensitive(self, any_source) -> None:
        result = any_source.check_text("Buy SPAM now, new etf launch")
        assert result.allowed is False
        assert result.matched_words == ("ETF", "spam")

    def test_text_match_is_substring(self, any_source) -> None:
        assert any_source.check_text("spammers everywhere").matched_words == ("spam",)

    def test_empty_text_is_allowed(self, any_source) -> None:
        assert any_source.check_text("").allowed is True

    @pytest.mark.parametrize("backend", ["snapshot", "store"])
    def test_non_ascii_match_is_case_insensitive(self, tmp_path: Path, backend: str) -> None:
        snapshot = IdentitySnapshot(words=frozenset({"ÉTF", "straße"}))
        if backend == "snapshot":
            source = SnapshotIdentitySource(snapshot)
        else:
            source = SQLiteIdentitySource(tmp_path / "unicode.db")
            source.init_db()
            source.seed_from_snapshot(snapshot)

        result = source.check_text("buy étf now, STRASSE or STRAßE")

        assert result == TextCheckResult(allowed=False, matched_words=("straße", "ÉTF"))
        assert source.check_text("buy etf now").allowed is True


class TestSnapshotIdentitySource:
    def test_from_file_accepts_legacy_keys(self, snapshot_file: Path) -> None:
        source = SnapshotIdentitySource.from_file(snapshot_file)

        assert source.snapshot.identities == frozenset({ALLOWED_KEY})
        assert source.snapshot.categories == frozenset({1})
        assert source.snapshot.words == frozenset({"spam", "ETF"})

    def test_from_file_accepts_current_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "snapshot.json"
        path.write_text(
            json.dumps({"identities": ["abc"], "categories": [3], "words": ["x"]}),
            encoding="utf-8",
        )
        source = SnapshotIdentitySource.from_file(path)

        assert source.check_identity("abc", FilterMode.WHITELIST) is True
        assert source.check_category(3, FilterMode.BLACKLIST) is False

    def test_empty_words_never_match(self, tmp_path: Path) -> None:
        path = tmp_path / "snapshot.json"
        path.write_text(json.dumps({"words": ["", "bad"]}), encoding="utf-8")
        source = SnapshotIdentitySource.from_file(path)

        assert source.check_text("fine text").allowed is True

    def test_missing_file_is_config_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError) as exc_info:
            SnapshotIdentitySource.from_file(tmp_path / "missing.json")

        assert exc_info.value.code == "snapshot_unreadable"

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            json.dumps({"kinds": [-1]}),
            json.dumps({"pubkeys": "not-a-list"}),
        ],
    )
    def test_malformed_file_is_config_error(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "bad.json"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(ConfigError) as exc_info:
            SnapshotIdentitySource.from_file(path)

        assert exc_info.value.code == "snapshot_invalid"


class TestSQLiteIdentitySource:
    def test_values_are_bound_not_interpolated(self, store_source: SQLiteIdentitySource) -> None:
        injected = "x' OR '1'='1"

        assert store_source.check_identity(injected, FilterMode.WHITELIST) is False
        assert store_source.check_identity(injected, FilterMode.BLACKLIST) is True
        assert store_source.check_text("'); DROP TABLE words; --").allowed is True
        assert store_source.check_text("still spam").allowed is False

    def test_like_wildcards_in_words_are_literal(self, store_source: SQLiteIdentitySource) -> None:
        store_source.add_words(["100%", "a_b"])

        assert store_source.check_text("100 percent sure, axb").allowed is True
        result = store_source.check_text("100% sure about a_b")
        assert result.matched_words == ("100%", "a_b")

    def test_connect_missing_database(self, tmp_path: Path) -> None:
        store = SQLiteIdentitySource(tmp_path / "nope.db")

        with pytest.raises(DataSourceConnectionError) as exc_info:
            store.connect()

        assert exc_info.value.code == "store_unreachable"
        # Read-only connect must not create the file.
        assert not (tmp_path / "nope.db").exists()

    def test_connect_missing_tables(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.db"
        conn = sqlite3.connect(path)
        conn.execute("CREATE TABLE identities (identity TEXT PRIMARY KEY)")
        conn.commit()
        conn.close()

        with pytest.raises(DataSourceConnectionError) as exc_info:
            SQLiteIdentitySource(path).connect()

        assert exc_info.value.code == "store_schema_missing"
        assert "categories, words" in exc_info.value.message

    def test_lookup_failure_raises_query_error(self, store_source: SQLiteIdentitySource) -> None:
        conn = sqlite3.connect(store_source.db_path)
        conn.execute("DROP TABLE categories")
        conn.commit()
        conn.close()

        with pytest.raises(QueryError) as exc_info:
            store_source.check_category(1, FilterMode.WHITELIST)

        assert exc_info.value.code == "store_query_failed"
        # Other tables keep working.
        assert store_source.check_identity(ALLOWED_KEY, FilterMode.WHITELIST) is True

    def test_init_db_is_idempotent(self, store_source: SQLiteIdentitySource) -> None:
        store_source.init_db()
        store_source.add_identities([ALLOWED_KEY])

        assert store_source.check_identity(ALLOWED_KEY, FilterMode.WHITELIST) is True
