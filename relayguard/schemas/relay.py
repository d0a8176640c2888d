"""Pydantic schemas for the line-delimited relay plugin protocol."""

from __future__ import annotations

from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field


class RelayRequest(BaseModel):
    """One inbound request line.

    ``event`` is kept raw here and only validated into an Event when the
    request type is one we act on.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = Field(..., description="Request type; only 'new' is evaluated.")
    event: Dict[str, Any] | None = Field(default=None, description="Raw wire event.")
    received_at: int | None = Field(default=None, alias="receivedAt")
    source_type: str | None = Field(default=None, alias="sourceType")
    source_info: str | None = Field(
        default=None,
        alias="sourceInfo",
        description="Where the event came from (e.g. client IP), used in logs.",
    )


class RelayResponse(BaseModel):
    """One outbound response line; ``msg`` is omitted on accept."""

    id: str
    action: Literal["accept", "reject"]
    msg: str | None = None

    def to_line(self) -> str:
        return self.model_dump_json(exclude_none=True)
