from __future__ import annotations

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, PrimaryKeyUUIDMixin, TimestampMixin
from app.models.types import UTCDateTime


class CheckpointState(PrimaryKeyUUIDMixin, TimestampMixin, Base):
    """
    Watermark of a recurring job.

    ``last_processed_to`` is the upper bound of the last time window the job
    finished; the next run resumes from it. One row per job name.
    """

    __tablename__ = "reconciliation_checkpoints"

    job_name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    last_processed_to: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
