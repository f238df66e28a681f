from __future__ import annotations

from collections.abc import AsyncGenerator
from functools import lru_cache

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.config import get_settings
from app.db.session import build_engine, build_session_factory, session_scope
from app.services.adapters.dhiway import DhiwayCredentialAdapter
from app.services.adapters.registry import AdapterRegistry
from app.services.checkpoint_store import CheckpointStore
from app.services.event_source_client import EventSourceClient
from app.services.processing_log import ProcessingLogService
from app.services.profile_refresh import ProfileRefreshTrigger
from app.services.reconciliation_service import ReconciliationService
from app.services.record_processor import RecordProcessor
from app.services.record_repository import CredentialRecordRepository
from app.workers.reconciliation_scheduler import ReconciliationScheduler


@lru_cache(maxsize=1)
def get_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient()


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    return build_engine(get_settings())


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return build_session_factory(get_engine())


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async for session in session_scope(get_session_factory()):
        yield session


@lru_cache(maxsize=1)
def get_adapter_registry() -> AdapterRegistry:
    settings = get_settings()
    return AdapterRegistry(
        [
            DhiwayCredentialAdapter(
                get_http_client(),
                record_url_template=settings.dhiway_record_url_template,
                verification_service_url=(
                    str(settings.verification_service_url) if settings.verification_service_url else None
                ),
                fetch_timeout=settings.adapter_timeout_seconds,
                verification_timeout=settings.verification_timeout_seconds,
            ),
        ]
    )


@lru_cache(maxsize=1)
def get_processing_log_service() -> ProcessingLogService:
    return ProcessingLogService()


@lru_cache(maxsize=1)
def get_checkpoint_store() -> CheckpointStore:
    return CheckpointStore()


@lru_cache(maxsize=1)
def get_reconciliation_service() -> ReconciliationService:
    settings = get_settings()
    http_client = get_http_client()
    session_factory = get_session_factory()
    repository = CredentialRecordRepository()
    processor = RecordProcessor(
        session_factory,
        repository=repository,
        processing_log=get_processing_log_service(),
        adapter_registry=get_adapter_registry(),
        profile_refresh=ProfileRefreshTrigger(
            http_client,
            url=str(settings.profile_refresh_url) if settings.profile_refresh_url else None,
            timeout=settings.profile_refresh_timeout_seconds,
        ),
        adapter_timeout=settings.adapter_timeout_seconds,
    )
    return ReconciliationService(
        session_factory,
        job_name=settings.reconciliation_job_name,
        lookback_minutes=settings.lookback_minutes,
        event_source=EventSourceClient(
            http_client,
            base_url=str(settings.analytics_base_url),
            timeout=settings.analytics_timeout_seconds,
        ),
        checkpoint_store=get_checkpoint_store(),
        repository=repository,
        processor=processor,
        max_concurrency=settings.max_concurrency,
    )


@lru_cache(maxsize=1)
def get_reconciliation_scheduler() -> ReconciliationScheduler:
    return ReconciliationScheduler(
        get_reconciliation_service(),
        cron_schedule=get_settings().cron_schedule,
    )
