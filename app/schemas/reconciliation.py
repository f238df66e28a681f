from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.processing_log import ProcessingOutcome


class ProcessingLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    record_id: str
    event_type: str | None
    outcome: ProcessingOutcome
    error_message: str | None
    processed_at: datetime
    batch_from: datetime
    batch_to: datetime


class ProcessingLogListResponse(BaseModel):
    entries: list[ProcessingLogResponse]


class CheckpointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_name: str
    last_processed_to: datetime
    created_at: datetime
    updated_at: datetime


class CycleResult(BaseModel):
    """Summary of one reconciliation cycle."""

    window_from: datetime
    window_to: datetime
    fetched: int = Field(0, description="Events returned by the upstream feed")
    filtered: int = Field(0, description="Events whose record exists locally")
    unmapped: int = Field(0, description="Events dropped because their type is not mapped")
    succeeded: int = 0
    failed: int = 0
    skipped: int = Field(0, description="Records already applied in this window")
    checkpoint_advanced: bool = False
    duration_ms: int = 0
