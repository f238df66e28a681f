from __future__ import annotations

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Enum as SAEnum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.models.base import Base
from app.models.types import UTCDateTime, enum_values


class ProcessingOutcome(str, PyEnum):
    SUCCESS = "success"
    FAILED = "failed"


class ProcessingLogEntry(Base):
    """
    Append-only record of every event the engine applied or failed to apply.

    Doubles as the idempotency guard: a ``success`` row for a record inside the
    current batch window means the record is not processed again in that window.
    """

    __tablename__ = "credential_event_processing_log"
    __table_args__ = (Index("ix_credential_event_processing_log_batch", "batch_from", "batch_to"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    record_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    event_type: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    outcome: Mapped[ProcessingOutcome] = mapped_column(
        SAEnum(ProcessingOutcome, name="processingoutcome", native_enum=False, values_callable=enum_values),
        nullable=False,
        index=True,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    batch_from: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    batch_to: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), server_default=func.now(), nullable=False)
