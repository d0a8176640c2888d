"""Identity source interfaces.

The decision engine depends on this abstraction only; the concrete backend
(SQLite store or static snapshot) is chosen once at startup.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable

from relayguard.core.config import FilterMode


@dataclass(frozen=True)
class TextCheckResult:
    """Result of a content check.

    Attributes:
        allowed: False when at least one blacklisted word was found.
        matched_words: The blacklisted words found in the text, sorted.
    """

    allowed: bool
    matched_words: tuple[str, ...] = ()

    @classmethod
    def from_matches(cls, matches: Iterable[str]) -> "TextCheckResult":
        matched = tuple(sorted(set(matches)))
        return cls(allowed=not matched, matched_words=matched)


def apply_filter_mode(present: bool, mode: FilterMode) -> bool:
    """Turn a membership lookup into an allow/deny decision.

    Blacklist denies listed values; whitelist allows only listed values.
    """

    if mode is FilterMode.WHITELIST:
        return present
    return not present


def find_blocked_words(text: str, words: Iterable[str]) -> list[str]:
    """Return the words contained in text, compared case-insensitively."""

    lowered = text.lower()
    return [word for word in words if word and word.lower() in lowered]


class AbstractIdentitySource(ABC):
    """Interface for identity/content data sources."""

    name = "abstract"

    @abstractmethod
    def check_identity(self, identity: str, mode: FilterMode) -> bool:
        """Return whether the identity may write under the given mode.

        Raises:
            QueryError: If the lookup itself fails.
        """
        raise NotImplementedError

    @abstractmethod
    def check_category(self, category: int, mode: FilterMode) -> bool:
        """Return whether the event category is allowed under the given mode.

        Raises:
            QueryError: If the lookup itself fails.
        """
        raise NotImplementedError

    @abstractmethod
    def check_text(self, text: str) -> TextCheckResult:
        """Check text against the blacklisted words (always blacklist semantics).

        Raises:
            QueryError: If the lookup itself fails.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release any resources held by the source."""
