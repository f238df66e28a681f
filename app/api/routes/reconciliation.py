from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import (
    get_checkpoint_store,
    get_db_session,
    get_processing_log_service,
    get_reconciliation_scheduler,
)
from app.core.config import get_settings
from app.core.errors import CycleAlreadyRunningError, FetchError
from app.models.processing_log import ProcessingOutcome
from app.schemas.reconciliation import (
    CheckpointResponse,
    CycleResult,
    ProcessingLogListResponse,
    ProcessingLogResponse,
)
from app.services.checkpoint_store import CheckpointStore
from app.services.processing_log import ProcessingLogService
from app.workers.reconciliation_scheduler import ReconciliationScheduler

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])


@router.get("/checkpoint", response_model=CheckpointResponse)
async def get_checkpoint(
    session: AsyncSession = Depends(get_db_session),
    checkpoint_store: CheckpointStore = Depends(get_checkpoint_store),
):
    job_name = get_settings().reconciliation_job_name
    checkpoint = await checkpoint_store.get(session, job_name)
    if checkpoint is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No checkpoint for job {job_name}")
    return CheckpointResponse.model_validate(checkpoint)


@router.get("/logs", response_model=ProcessingLogListResponse)
async def list_processing_logs(
    outcome: ProcessingOutcome | None = Query(default=None),
    record_id: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    session: AsyncSession = Depends(get_db_session),
    processing_log: ProcessingLogService = Depends(get_processing_log_service),
):
    entries = await processing_log.list_entries(session, outcome=outcome, record_id=record_id, limit=limit)
    return ProcessingLogListResponse(entries=[ProcessingLogResponse.model_validate(entry) for entry in entries])


@router.post("/run", response_model=CycleResult)
async def run_reconciliation(
    scheduler: ReconciliationScheduler = Depends(get_reconciliation_scheduler),
):
    try:
        return await scheduler.trigger()
    except CycleAlreadyRunningError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except FetchError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
