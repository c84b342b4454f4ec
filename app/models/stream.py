"""Messages exchanged with subscribers over the live stream."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.aircraft import Aircraft


class SubscribeRequest(BaseModel):
    """Payload of a client ``subscribe`` message.

    Values are kept loose on purpose; the subscription manager coerces them
    and falls back to configured defaults.
    """

    lat: Any = Field(default=None, description="Latitude of the point of interest")
    lon: Any = Field(default=None, description="Longitude of the point of interest")
    radius: Any = Field(default=None, description="Search radius in nautical miles")
    poll_ms: Any = Field(
        default=None,
        alias="pollMs",
        description="Requested poll interval; pollers are shared so this is advisory",
    )

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class UpdatePayload(BaseModel):
    """Snapshot broadcast to every subscriber of a poller."""

    nearest: Optional[Aircraft] = Field(default=None, description="Closest aircraft")
    others: list[Aircraft] = Field(default_factory=list, description="Nearby aircraft")
    others_total: int = Field(
        default=0, alias="othersTotal", description="Nearby count before the cap"
    )
    now: int = Field(..., description="Snapshot time in epoch milliseconds")

    model_config = ConfigDict(populate_by_name=True)

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ErrorPayload(BaseModel):
    """Non-fatal error reported to subscribers."""

    message: str = Field(..., description="Short error description")
    detail: Optional[str] = Field(default=None, description="Additional context")

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


__all__ = ["ErrorPayload", "SubscribeRequest", "UpdatePayload"]
