"""Pydantic schema for the event under evaluation."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# Event kinds are unsigned 32-bit integers.
MAX_CATEGORY = 2**32 - 1


class Event(BaseModel):
    """Immutable view of an inbound relay event.

    Only the fields the filters need are kept; the rest of the wire event
    (tags, signature, timestamps) is ignored.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1, description="Hex event identifier.")
    identity: str = Field(
        ...,
        alias="pubkey",
        min_length=1,
        description="Author key the rate and identity filters act on.",
    )
    category: int = Field(..., alias="kind", ge=0, le=MAX_CATEGORY, description="Event kind.")
    text: str = Field("", alias="content", description="Free-form event body.")
