"""Static snapshot identity source.

All lookups are in-memory set membership tests against data loaded once
from a JSON file; nothing can fail after a successful load.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from relayguard.adapters.identity.base import (
    AbstractIdentitySource,
    TextCheckResult,
    apply_filter_mode,
    find_blocked_words,
)
from relayguard.core.config import FilterMode
from relayguard.core.errors import ConfigError
from relayguard.schemas.snapshot import IdentitySnapshot

logger = logging.getLogger(__name__)


class SnapshotIdentitySource(AbstractIdentitySource):
    """Identity source backed by an immutable IdentitySnapshot."""

    name = "snapshot-file"

    def __init__(self, snapshot: IdentitySnapshot) -> None:
        self._snapshot = snapshot
        # Sorted once so matched words come back in a stable order.
        self._words = snapshot.sorted_words()

    @property
    def snapshot(self) -> IdentitySnapshot:
        return self._snapshot

    @classmethod
    def from_file(cls, file_path: str | Path) -> "SnapshotIdentitySource":
        """Load a snapshot JSON file.

        Raises:
            ConfigError: If the file cannot be read or does not match the schema.
        """

        path = Path(file_path)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(
                code="snapshot_unreadable",
                message=f"Error reading snapshot file {path}: {exc}",
                details={"path": str(path)},
            ) from exc

        try:
            snapshot = IdentitySnapshot.model_validate_json(raw)
        except ValidationError as exc:
            raise ConfigError(
                code="snapshot_invalid",
                message=f"Invalid snapshot file {path}: {exc.error_count()} error(s)",
                details={
                    "path": str(path),
                    "errors": exc.errors(include_url=False, include_input=False),
                },
            ) from exc

        logger.info(
            "snapshot.loaded",
            extra={
                "path": str(path),
                "identities": len(snapshot.identities),
                "categories": len(snapshot.categories),
                "words": len(snapshot.words),
            },
        )
        return cls(snapshot)

    def check_identity(self, identity: str, mode: FilterMode) -> bool:
        return apply_filter_mode(identity in self._snapshot.identities, mode)

    def check_category(self, category: int, mode: FilterMode) -> bool:
        return apply_filter_mode(category in self._snapshot.categories, mode)

    def check_text(self, text: str) -> TextCheckResult:
        return TextCheckResult.from_matches(find_blocked_words(text, self._words))
