from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logger import get_logger
from app.models.processing_log import ProcessingLogEntry, ProcessingOutcome

logger = get_logger(component="ProcessingLogService")


class ProcessingLogService:
    async def has_success(
        self, session: AsyncSession, *, record_id: str, batch_from: datetime, batch_to: datetime
    ) -> bool:
        """Check whether the record was already applied successfully within this batch window."""
        result = await session.execute(
            select(ProcessingLogEntry.id)
            .where(
                ProcessingLogEntry.record_id == record_id,
                ProcessingLogEntry.outcome == ProcessingOutcome.SUCCESS,
                ProcessingLogEntry.batch_from == batch_from,
                ProcessingLogEntry.batch_to == batch_to,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def record(
        self,
        session: AsyncSession,
        *,
        record_id: str,
        event_type: str,
        outcome: ProcessingOutcome,
        batch_from: datetime,
        batch_to: datetime,
        error_message: str | None = None,
    ) -> ProcessingLogEntry:
        entry = ProcessingLogEntry(
            record_id=record_id,
            event_type=event_type,
            outcome=outcome,
            error_message=error_message,
            processed_at=datetime.now(tz=timezone.utc),
            batch_from=batch_from,
            batch_to=batch_to,
        )
        session.add(entry)
        await session.commit()
        logger.debug(
            "Processing log entry recorded",
            record_id=record_id,
            event_type=event_type,
            outcome=outcome.value,
        )
        return entry

    async def list_entries(
        self,
        session: AsyncSession,
        *,
        outcome: ProcessingOutcome | None = None,
        record_id: str | None = None,
        limit: int = 100,
    ) -> Sequence[ProcessingLogEntry]:
        """Newest entries first, optionally narrowed to one outcome or record."""
        query = select(ProcessingLogEntry)
        if outcome is not None:
            query = query.where(ProcessingLogEntry.outcome == outcome)
        if record_id is not None:
            query = query.where(ProcessingLogEntry.record_id == record_id)
        query = query.order_by(ProcessingLogEntry.processed_at.desc(), ProcessingLogEntry.id.desc()).limit(limit)
        result = await session.execute(query)
        return result.scalars().all()
