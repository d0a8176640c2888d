"""SQLite store identity source.

Every check is a parameterized query against three lookup tables. Values
under test are always bound as parameters, never formatted into SQL.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Iterable, Sequence

from relayguard.adapters.identity.base import AbstractIdentitySource, TextCheckResult, apply_filter_mode
from relayguard.core.config import FilterMode
from relayguard.core.errors import DataSourceConnectionError, QueryError
from relayguard.schemas.snapshot import IdentitySnapshot

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("identities", "categories", "words")

_IDENTITY_QUERY = "SELECT 1 FROM identities WHERE identity = ? LIMIT 1"
_CATEGORY_QUERY = "SELECT 1 FROM categories WHERE category = ? LIMIT 1"
# instr() keeps '%' and '_' in stored words literal, unlike LIKE.
# fold() is str.lower registered per connection; SQLite's lower() is ASCII-only.
_WORDS_QUERY = "SELECT word FROM words WHERE word <> '' AND instr(fold(?), fold(word)) > 0"


def _fold(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


class SQLiteIdentitySource(AbstractIdentitySource):
    """Identity source that looks values up in a SQLite database.

    Lookups open a short-lived read-only connection each, so the source can
    be shared by any number of threads.
    """

    name = "store"

    def __init__(self, db_path: str | Path, *, timeout_seconds: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._timeout_seconds = timeout_seconds

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self, *, read_only: bool = True) -> sqlite3.Connection:
        if read_only:
            # mode=ro refuses to create a missing database file.
            uri = f"{self._db_path.resolve().as_uri()}?mode=ro"
            conn = sqlite3.connect(uri, uri=True, timeout=self._timeout_seconds)
        else:
            conn = sqlite3.connect(self._db_path, timeout=self._timeout_seconds)
        conn.row_factory = sqlite3.Row
        conn.create_function("fold", 1, _fold, deterministic=True)
        return conn

    def connect(self) -> None:
        """Verify at startup that the database is reachable and has the schema.

        Raises:
            DataSourceConnectionError: If the database cannot be opened or a
                lookup table is missing.
        """

        placeholders = ", ".join("?" for _ in REQUIRED_TABLES)
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(
                    f"SELECT name FROM sqlite_master WHERE type = 'table' AND name IN ({placeholders})",
                    REQUIRED_TABLES,
                ).fetchall()
        except sqlite3.Error as exc:
            raise DataSourceConnectionError(
                code="store_unreachable",
                message=f"Cannot open store database {self._db_path}: {exc}",
                details={"path": str(self._db_path), "datasource": self.name},
            ) from exc

        missing = sorted(set(REQUIRED_TABLES) - {row["name"] for row in rows})
        if missing:
            raise DataSourceConnectionError(
                code="store_schema_missing",
                message=f"Store database {self._db_path} is missing tables: {', '.join(missing)}",
                details={
                    "path": str(self._db_path),
                    "datasource": self.name,
                    "hint": "run 'relayguard init-store' to create the schema",
                },
            )

        logger.info("store.connected", extra={"path": str(self._db_path)})

    def _query(self, sql: str, params: Sequence[Any], *, check: str) -> list[sqlite3.Row]:
        try:
            with closing(self._connect()) as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise QueryError(
                code="store_query_failed",
                message=f"Store lookup for {check} failed: {exc}",
                details={"datasource": self.name, "context": {"check": check}},
            ) from exc

    def check_identity(self, identity: str, mode: FilterMode) -> bool:
        rows = self._query(_IDENTITY_QUERY, (identity,), check="identity")
        return apply_filter_mode(bool(rows), mode)

    def check_category(self, category: int, mode: FilterMode) -> bool:
        rows = self._query(_CATEGORY_QUERY, (category,), check="category")
        return apply_filter_mode(bool(rows), mode)

    def check_text(self, text: str) -> TextCheckResult:
        rows = self._query(_WORDS_QUERY, (text,), check="content")
        return TextCheckResult.from_matches(row["word"] for row in rows)

    def init_db(self) -> None:
        """Create the lookup tables if they do not exist.

        Tables:
        - identities: listed author keys
        - categories: listed event kinds
        - words: blacklisted words for the content filter
        """

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect(read_only=False)) as conn, conn:
            conn.execute("CREATE TABLE IF NOT EXISTS identities (identity TEXT PRIMARY KEY)")
            conn.execute("CREATE TABLE IF NOT EXISTS categories (category INTEGER PRIMARY KEY)")
            conn.execute("CREATE TABLE IF NOT EXISTS words (word TEXT PRIMARY KEY)")

    def _insert_many(self, sql: str, values: Iterable[Any]) -> int:
        rows = [(value,) for value in values]
        with closing(self._connect(read_only=False)) as conn, conn:
            conn.executemany(sql, rows)
        return len(rows)

    def add_identities(self, identities: Iterable[str]) -> int:
        return self._insert_many("INSERT OR IGNORE INTO identities (identity) VALUES (?)", identities)

    def add_categories(self, categories: Iterable[int]) -> int:
        return self._insert_many("INSERT OR IGNORE INTO categories (category) VALUES (?)", categories)

    def add_words(self, words: Iterable[str]) -> int:
        return self._insert_many(
            "INSERT OR IGNORE INTO words (word) VALUES (?)", (word for word in words if word)
        )

    def seed_from_snapshot(self, snapshot: IdentitySnapshot) -> None:
        """Copy every set of a snapshot into the store."""

        self.add_identities(sorted(snapshot.identities))
        self.add_categories(sorted(snapshot.categories))
        self.add_words(snapshot.sorted_words())
        logger.info(
            "store.seeded",
            extra={
                "path": str(self._db_path),
                "identities": len(snapshot.identities),
                "categories": len(snapshot.categories),
                "words": len(snapshot.words),
            },
        )
