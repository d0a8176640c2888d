"""Identity source adapter layer - abstracts over the store and snapshot backends."""

from relayguard.adapters.identity.base import AbstractIdentitySource, TextCheckResult
from relayguard.adapters.identity.factory import create_identity_source
from relayguard.adapters.identity.snapshot import SnapshotIdentitySource
from relayguard.adapters.identity.sqlite_store import SQLiteIdentitySource

__all__ = [
    "AbstractIdentitySource",
    "SQLiteIdentitySource",
    "SnapshotIdentitySource",
    "TextCheckResult",
    "create_identity_source",
]
