"""Pydantic schema for the static identity snapshot file."""

from __future__ import annotations

from typing import List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class IdentitySnapshot(BaseModel):
    """Lookup sets loaded once from a JSON file.

    The file holds three arrays; the older key names ``pubkeys`` and
    ``kinds`` are accepted as well.
    """

    model_config = ConfigDict(frozen=True)

    identities: frozenset[str] = Field(
        default_factory=frozenset,
        validation_alias=AliasChoices("identities", "pubkeys"),
        description="Listed identities (meaning depends on the identity filter mode).",
    )
    categories: frozenset[int] = Field(
        default_factory=frozenset,
        validation_alias=AliasChoices("categories", "kinds"),
        description="Listed categories (meaning depends on the category filter mode).",
    )
    words: frozenset[str] = Field(
        default_factory=frozenset,
        description="Blacklisted words, matched case-insensitively as substrings.",
    )

    @field_validator("categories")
    @classmethod
    def _unsigned(cls, value: frozenset[int]) -> frozenset[int]:
        if any(category < 0 for category in value):
            raise ValueError("categories must be unsigned integers")
        return value

    @field_validator("words")
    @classmethod
    def _drop_empty_words(cls, value: frozenset[str]) -> frozenset[str]:
        # An empty word would match every text.
        return frozenset(word for word in value if word)

    def sorted_words(self) -> List[str]:
        return sorted(self.words)
