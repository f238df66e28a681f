from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logger import get_logger
from app.models.credential_record import CredentialRecord
from app.schemas.events import LifecycleEvent

logger = get_logger(component="CredentialRecordRepository")

# Keeps IN (...) lists well under the bound-parameter limits of SQLite and Postgres.
LOOKUP_CHUNK_SIZE = 500


class CredentialRecordRepository:
    async def find_by_record_id(self, session: AsyncSession, record_id: str) -> CredentialRecord | None:
        result = await session.execute(select(CredentialRecord).where(CredentialRecord.record_id == record_id))
        return result.scalar_one_or_none()

    async def find_existing_record_ids(self, session: AsyncSession, record_ids: Iterable[str]) -> set[str]:
        unique_ids = sorted(set(record_ids))
        existing: set[str] = set()
        for offset in range(0, len(unique_ids), LOOKUP_CHUNK_SIZE):
            chunk = unique_ids[offset : offset + LOOKUP_CHUNK_SIZE]
            result = await session.execute(
                select(CredentialRecord.record_id).where(CredentialRecord.record_id.in_(chunk))
            )
            existing.update(result.scalars().all())
        return existing

    async def save(self, session: AsyncSession, record: CredentialRecord) -> CredentialRecord:
        session.add(record)
        await session.flush()
        return record

    async def filter_known_events(
        self, session: AsyncSession, events: Sequence[LifecycleEvent]
    ) -> list[LifecycleEvent]:
        """
        Keep only events for records that exist locally, without repeated events.

        Records unknown to this service were never uploaded here, so their events are
        dropped rather than treated as failures. Feed order is preserved.
        """
        existing = await self.find_existing_record_ids(session, (event.record_id for event in events))

        seen: set[LifecycleEvent] = set()
        known: list[LifecycleEvent] = []
        unknown_count = 0
        for event in events:
            if event.record_id not in existing:
                unknown_count += 1
                continue
            if event in seen:
                continue
            seen.add(event)
            known.append(event)

        logger.info(
            "Filtered events against local records",
            kept=len(known),
            skipped_unknown=unknown_count,
            duplicates=len(events) - len(known) - unknown_count,
        )
        return known
