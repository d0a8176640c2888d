"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins RELAYGUARD_ENV so no developer .env file leaks into the tests.
"""

import json
import os
from pathlib import Path
from typing import Any, Callable

import pytest

# CRITICAL: Set this before any imports that might load settings
os.environ["RELAYGUARD_ENV"] = "testing"

from relayguard.adapters.identity.snapshot import SnapshotIdentitySource  # noqa: E402
from relayguard.adapters.identity.sqlite_store import SQLiteIdentitySource  # noqa: E402
from relayguard.core.config import FiltersSettings  # noqa: E402
from relayguard.schemas.events import Event  # noqa: E402
from relayguard.schemas.snapshot import IdentitySnapshot  # noqa: E402

ALLOWED_KEY = "d30effaa4af9d1522381866487bb0009203d687d44278dea3826be1ea64c46a8"
OTHER_KEY = "7e7e9c42a91bfef19fa929e5fda1b72e0ebc1a4c1141673e2794234d86addf4e"


@pytest.fixture(autouse=True)
def _clean_relayguard_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("RELAYGUARD_") and name != "RELAYGUARD_ENV":
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_event() -> Callable[..., Event]:
    def _make(
        identity: str = ALLOWED_KEY,
        category: int = 1,
        text: str = "hello relay",
        event_id: str = "a1" * 32,
    ) -> Event:
        return Event(id=event_id, identity=identity, category=category, text=text)

    return _make


@pytest.fixture
def make_filters() -> Callable[..., FiltersSettings]:
    def _make(**sections: Any) -> FiltersSettings:
        return FiltersSettings(**sections)

    return _make


@pytest.fixture
def snapshot() -> IdentitySnapshot:
    return IdentitySnapshot(
        identities=frozenset({ALLOWED_KEY}),
        categories=frozenset({1}),
        words=frozenset({"spam", "ETF"}),
    )


@pytest.fixture
def snapshot_source(snapshot: IdentitySnapshot) -> SnapshotIdentitySource:
    return SnapshotIdentitySource(snapshot)


@pytest.fixture
def snapshot_file(tmp_path: Path) -> Path:
    path = tmp_path / "data.json"
    path.write_text(
        json.dumps({"pubkeys": [ALLOWED_KEY], "kinds": [1], "words": ["spam", "ETF"]}),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def store_source(tmp_path: Path, snapshot: IdentitySnapshot) -> SQLiteIdentitySource:
    store = SQLiteIdentitySource(tmp_path / "store.db")
    store.init_db()
    store.seed_from_snapshot(snapshot)
    store.connect()
    return store


@pytest.fixture(params=["snapshot", "store"])
def any_source(request: pytest.FixtureRequest, snapshot_source, store_source):
    """Run a test against both interchangeable backends."""

    return snapshot_source if request.param == "snapshot" else store_source


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[str], Path]:
    def _write(content: str, name: str = "config.toml") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write
