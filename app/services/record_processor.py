"""Applies one mapped lifecycle event to one local credential record."""

from __future__ import annotations

import asyncio
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import Clock, utc_now
from app.core.errors import AdapterError, InvalidTransitionError, RecordMissingError, ReconciliationError
from app.core.logger import get_logger
from app.models.credential_record import CredentialRecord, CredentialStatus
from app.models.processing_log import ProcessingOutcome
from app.schemas.events import LifecycleEvent, TimeWindow
from app.services.adapters.base import CredentialAdapter, VerificationResult
from app.services.adapters.registry import AdapterRegistry
from app.services.processing_log import ProcessingLogService
from app.services.profile_refresh import ProfileRefreshTrigger
from app.services.record_repository import CredentialRecordRepository
from app.services.status_mapper import is_transition_allowed

logger = get_logger(component="RecordProcessor")

FETCHING_STATUSES = frozenset({CredentialStatus.ISSUED, CredentialStatus.REVOKED})


class RecordProcessor:
    """
    Idempotent per-record step of the reconciliation cycle.

    Each call runs in its own session so a failure for one record (adapter error,
    timeout, rejected transition, database error) is rolled back and logged as a
    ``failed`` outcome without touching any other record in the batch.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        repository: CredentialRecordRepository,
        processing_log: ProcessingLogService,
        adapter_registry: AdapterRegistry,
        profile_refresh: ProfileRefreshTrigger,
        adapter_timeout: float = 10.0,
        clock: Clock = utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.repository = repository
        self.processing_log = processing_log
        self.adapter_registry = adapter_registry
        self.profile_refresh = profile_refresh
        self.adapter_timeout = adapter_timeout
        self.clock = clock

    async def process_event(
        self, event: LifecycleEvent, status: CredentialStatus, window: TimeWindow
    ) -> ProcessingOutcome | None:
        """
        Apply ``status`` to the record named by ``event`` and log the outcome.

        Returns the logged outcome, or None when the record was already applied
        successfully within this window.
        """
        owner_id: UUID | None = None
        async with self.session_factory() as session:
            try:
                already_applied = await self.processing_log.has_success(
                    session, record_id=event.record_id, batch_from=window.start, batch_to=window.end
                )
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error(
                    "Could not read processing log, event not applied",
                    record_id=event.record_id,
                    event_type=event.event_type,
                    error=str(exc),
                )
                return ProcessingOutcome.FAILED
            if already_applied:
                logger.info("Record already processed in this window, skipping", record_id=event.record_id)
                return None

            error_message: str | None = None
            try:
                owner_id = await self._apply(session, event, status, window)
                outcome = ProcessingOutcome.SUCCESS
            except (ReconciliationError, SQLAlchemyError) as exc:
                await session.rollback()
                outcome = ProcessingOutcome.FAILED
                error_message = str(exc) or exc.__class__.__name__
                logger.error(
                    "Failed to apply lifecycle event",
                    record_id=event.record_id,
                    event_type=event.event_type,
                    status=status.value,
                    error=error_message,
                )
            except Exception as exc:
                await session.rollback()
                outcome = ProcessingOutcome.FAILED
                error_message = f"Unexpected error: {exc}"
                logger.exception(
                    "Unexpected error applying lifecycle event",
                    record_id=event.record_id,
                    event_type=event.event_type,
                )

            try:
                await self.processing_log.record(
                    session,
                    record_id=event.record_id,
                    event_type=event.event_type,
                    outcome=outcome,
                    batch_from=window.start,
                    batch_to=window.end,
                    error_message=error_message,
                )
            except SQLAlchemyError as exc:
                await session.rollback()
                # The record change may already be committed; only its log entry is lost.
                logger.error(
                    "Failed to write processing log entry",
                    record_id=event.record_id,
                    event_type=event.event_type,
                    outcome=outcome.value,
                    error=str(exc),
                )
                return ProcessingOutcome.FAILED

        if outcome is ProcessingOutcome.SUCCESS:
            logger.info("Lifecycle event applied", record_id=event.record_id, status=status.value)
            if owner_id is not None:
                await self._refresh_profile(owner_id, status)
        return outcome

    async def _apply(
        self, session: AsyncSession, event: LifecycleEvent, status: CredentialStatus, window: TimeWindow
    ) -> UUID:
        record = await self.repository.find_by_record_id(session, event.record_id)
        if record is None:
            raise RecordMissingError(f"No credential found for public ID: {event.record_id}")

        if not is_transition_allowed(record.status, status):
            raise InvalidTransitionError(
                f"Refusing transition {record.status.value} -> {status.value} for {event.record_id}"
            )

        adapter = self.adapter_registry.resolve(record.issuer_name)

        if status in FETCHING_STATUSES:
            payload = await self._fetch(adapter, record)
            record.payload = payload
            record.status = status
            record.status_updated_at = window.end
            await self._apply_verification(adapter, record, payload)
        else:
            record.payload = None
            record.verified = None
            record.verified_at = None
            record.status = CredentialStatus.DELETED
            record.status_updated_at = window.end

        await self.repository.save(session, record)
        await session.commit()
        return record.owner_id

    async def _fetch(self, adapter: CredentialAdapter, record: CredentialRecord) -> dict[str, Any]:
        try:
            return await asyncio.wait_for(
                adapter.fetch_authoritative_data(record.record_id, data_link=record.data_link),
                timeout=self.adapter_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise AdapterError(
                f"{adapter.issuer_name} did not return credential {record.record_id} within {self.adapter_timeout}s"
            ) from exc

    async def _apply_verification(
        self, adapter: CredentialAdapter, record: CredentialRecord, payload: dict[str, Any]
    ) -> None:
        # A failed verification marks the record unverified; it never fails the event.
        try:
            result = await asyncio.wait_for(adapter.verify(payload), timeout=self.adapter_timeout)
        except asyncio.TimeoutError:
            result = VerificationResult(success=False, message=f"Verification timed out after {self.adapter_timeout}s")
        except Exception as exc:
            logger.exception("Verification raised, marking credential unverified", record_id=record.record_id)
            result = VerificationResult(success=False, message=str(exc))

        record.verified = result.success
        if result.success:
            record.verified_at = self.clock()
        else:
            logger.warning(
                "Credential verification failed",
                record_id=record.record_id,
                message=result.message,
                errors=result.errors,
            )

    async def _refresh_profile(self, owner_id: UUID, status: CredentialStatus) -> None:
        try:
            await self.profile_refresh.notify(owner_id)
        except Exception as exc:
            logger.error(
                "Profile refresh failed after status change",
                owner_id=str(owner_id),
                status=status.value,
                error=str(exc),
            )
