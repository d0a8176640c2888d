"""Pydantic schema for the decision produced for one event."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class RejectReason(str, Enum):
    """Which filter rejected the event."""

    RATE_LIMITED = "rate_limited"
    IDENTITY_BLOCKED = "identity_blocked"
    CATEGORY_BLOCKED = "category_blocked"
    CONTENT_BLOCKED = "content_blocked"


class Outcome(BaseModel):
    """Accept, or Reject with a reason and optional detail.

    Build instances with accept() / reject() so an accepted outcome never
    carries a reason.
    """

    model_config = ConfigDict(frozen=True)

    action: Literal["accept", "reject"]
    reason: RejectReason | None = None
    detail: str | int | list[str] | None = Field(
        default=None,
        description="Offending identity, category, or the matched words.",
    )

    @classmethod
    def accept(cls) -> "Outcome":
        return cls(action="accept")

    @classmethod
    def reject(cls, reason: RejectReason, detail: str | int | list[str] | None = None) -> "Outcome":
        return cls(action="reject", reason=reason, detail=detail)

    @property
    def accepted(self) -> bool:
        return self.action == "accept"
