from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Ensure environment variables are set before application settings are imported.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./tests/test.db")
os.environ.setdefault("DATABASE_POOL_PRE_PING", "false")
os.environ.setdefault("RECONCILIATION_SCHEDULER_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")

from app.api import dependencies as dependencies_module
from app.core.config import get_settings
from app.core.errors import AdapterError
from app.db.session import build_session_factory
from app.main import create_app
from app.models import checkpoint, processing_log  # noqa: F401
from app.models.base import Base
from app.models.checkpoint import CheckpointState
from app.models.credential_record import CredentialRecord, CredentialStatus
from app.schemas.events import FeedSummary, LifecycleEvent
from app.services.adapters.base import CredentialAdapter, VerificationResult
from app.services.adapters.registry import AdapterRegistry
from app.services.checkpoint_store import CheckpointStore
from app.services.event_source_client import EventSourceClient
from app.services.processing_log import ProcessingLogService
from app.services.profile_refresh import ProfileRefreshTrigger
from app.services.reconciliation_service import ReconciliationService
from app.services.record_processor import RecordProcessor
from app.services.record_repository import CredentialRecordRepository
from app.workers.reconciliation_scheduler import ReconciliationScheduler

T0 = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)
JOB_NAME = "credential-status-sync-test"


class FrozenClock:
    """Callable clock that tests can move by hand."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class StubAdapter(CredentialAdapter):
    """
    In-memory issuer adapter.

    ``payloads`` maps record ids to the credential returned by the fetch; ids listed in
    ``failing`` raise ``AdapterError`` instead. ``verification`` is returned for every
    verify call.
    """

    issuer_name = "dhiway"

    def __init__(self) -> None:
        self.payloads: dict[str, dict[str, Any]] = {}
        self.failing: set[str] = set()
        self.verification = VerificationResult(success=True, message="ok")
        self.fetch_calls: list[str] = []
        self.verify_calls: list[dict[str, Any]] = []

    async def fetch_authoritative_data(self, record_id: str, *, data_link: str | None = None) -> dict[str, Any]:
        self.fetch_calls.append(record_id)
        if record_id in self.failing:
            raise AdapterError(f"Issuer unavailable for {record_id}")
        return self.payloads.get(
            record_id,
            {"@context": ["https://www.w3.org/2018/credentials/v1"], "credentialSubject": {"id": record_id}},
        )

    async def verify(self, payload: dict[str, Any]) -> VerificationResult:
        self.verify_calls.append(payload)
        return self.verification


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'reconciliation.db'}", poolclass=NullPool)
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(T0 + timedelta(minutes=300))


@pytest.fixture
def stub_adapter() -> StubAdapter:
    return StubAdapter()


@pytest.fixture
def profile_refresh() -> AsyncMock:
    trigger = AsyncMock(spec=ProfileRefreshTrigger)
    trigger.notify = AsyncMock(return_value=None)
    return trigger


@pytest.fixture
def event_source() -> AsyncMock:
    source = AsyncMock(spec=EventSourceClient)
    source.fetch = AsyncMock(return_value=FeedSummary(success=True, events=[]))
    return source


@pytest.fixture
def processor(session_factory, stub_adapter, profile_refresh, clock) -> RecordProcessor:
    return RecordProcessor(
        session_factory,
        repository=CredentialRecordRepository(),
        processing_log=ProcessingLogService(),
        adapter_registry=AdapterRegistry([stub_adapter]),
        profile_refresh=profile_refresh,
        adapter_timeout=1.0,
        clock=clock,
    )


@pytest.fixture
def build_service(session_factory, event_source, processor, clock) -> Callable[..., ReconciliationService]:
    def _factory(**overrides: Any) -> ReconciliationService:
        options: dict[str, Any] = {
            "job_name": JOB_NAME,
            "lookback_minutes": 120,
            "event_source": event_source,
            "checkpoint_store": CheckpointStore(),
            "repository": CredentialRecordRepository(),
            "processor": processor,
            "max_concurrency": 1,
            "clock": clock,
        }
        options.update(overrides)
        return ReconciliationService(session_factory, **options)

    return _factory


@pytest.fixture
def create_record(session_factory) -> Callable[..., Any]:
    """Factory that persists a credential record with sensible defaults."""

    async def _create(record_id: str | None, **kwargs: Any) -> CredentialRecord:
        defaults: dict[str, Any] = {
            "record_id": record_id,
            "owner_id": uuid4(),
            "issuer_name": "dhiway",
            "data_link": f"https://issuer.example/records/{record_id}.vc" if record_id else None,
            "payload": {"draft": True},
            "status": CredentialStatus.UNPUBLISHED,
        }
        defaults.update(kwargs)
        async with session_factory() as session:
            record = CredentialRecord(**defaults)
            session.add(record)
            await session.commit()
            return record

    return _create


@pytest.fixture
def load_record(session_factory) -> Callable[..., Any]:
    async def _load(record_id: str) -> CredentialRecord | None:
        async with session_factory() as session:
            return await CredentialRecordRepository().find_by_record_id(session, record_id)

    return _load


@pytest.fixture
def seed_checkpoint(session_factory) -> Callable[..., Any]:
    async def _seed(last_processed_to: datetime, job_name: str = JOB_NAME) -> CheckpointState:
        async with session_factory() as session:
            state = CheckpointState(job_name=job_name, last_processed_to=last_processed_to)
            session.add(state)
            await session.commit()
            return state

    return _seed


def feed(*pairs: tuple[str, str]) -> FeedSummary:
    """Build a successful feed summary from ``(event_type, record_id)`` pairs."""
    events = [LifecycleEvent(event_type=event_type, record_id=record_id) for event_type, record_id in pairs]
    return FeedSummary(success=True, events=events, raw_count=len(events))


@pytest.fixture
def make_feed() -> Callable[..., FeedSummary]:
    return feed


@pytest.fixture
def api_environment(session_factory, build_service) -> dict[str, object]:
    app = create_app()

    # Clear the cached dependency functions so the overrides below are the only wiring.
    dependencies_module.get_reconciliation_scheduler.cache_clear()
    dependencies_module.get_reconciliation_service.cache_clear()
    dependencies_module.get_http_client.cache_clear()

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    scheduler = ReconciliationScheduler(
        build_service(job_name=get_settings().reconciliation_job_name),
        cron_schedule="0 */2 * * *",
    )
    app.dependency_overrides[dependencies_module.get_db_session] = override_db_session
    app.dependency_overrides[dependencies_module.get_reconciliation_scheduler] = lambda: scheduler

    return {"app_instance": app, "scheduler": scheduler}


@pytest_asyncio.fixture
async def async_client(api_environment) -> AsyncGenerator[AsyncClient, None]:
    app = api_environment["app_instance"]
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
