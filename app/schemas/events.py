from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class LifecycleEvent(BaseModel):
    """A normalised upstream lifecycle event for one credential."""

    model_config = ConfigDict(frozen=True)

    event_type: str = Field(..., description="Upstream event type, e.g. record_anchored")
    record_id: str = Field(..., description="Public identifier of the credential on the issuing platform")


class FeedSummary(BaseModel):
    success: bool
    events: list[LifecycleEvent] = Field(default_factory=list)
    raw_count: int = 0


class TimeWindow(BaseModel):
    """Half-open interval ``[start, end)`` covered by one reconciliation cycle."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end
