from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import CheckpointError
from app.core.logger import get_logger
from app.models.checkpoint import CheckpointState

logger = get_logger(component="CheckpointStore")


class CheckpointStore:
    async def get(self, session: AsyncSession, job_name: str) -> CheckpointState | None:
        result = await session.execute(select(CheckpointState).where(CheckpointState.job_name == job_name))
        return result.scalar_one_or_none()

    async def get_or_create(self, session: AsyncSession, job_name: str, *, initial: datetime) -> CheckpointState:
        """Return the job's checkpoint, creating it at ``initial`` on the first run."""
        checkpoint = await self.get(session, job_name)
        if checkpoint is not None:
            return checkpoint

        checkpoint = CheckpointState(job_name=job_name, last_processed_to=initial)
        session.add(checkpoint)
        try:
            await session.commit()
        except IntegrityError:
            # Another process created the row between our read and write.
            await session.rollback()
            existing = await self.get(session, job_name)
            if existing is None:
                raise
            return existing

        logger.info("Created initial checkpoint", job_name=job_name, last_processed_to=initial.isoformat())
        return checkpoint

    async def advance(self, session: AsyncSession, checkpoint: CheckpointState, to: datetime) -> CheckpointState:
        if to < checkpoint.last_processed_to:
            raise CheckpointError(
                f"Refusing to move checkpoint {checkpoint.job_name} back from "
                f"{checkpoint.last_processed_to.isoformat()} to {to.isoformat()}"
            )
        session.add(checkpoint)
        checkpoint.last_processed_to = to
        await session.commit()
        logger.info("Checkpoint advanced", job_name=checkpoint.job_name, last_processed_to=to.isoformat())
        return checkpoint
