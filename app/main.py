from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.dependencies import get_http_client, get_reconciliation_scheduler
from app.api.router import api_router
from app.core.config import get_settings
from app.core.logger import configure_logging, get_logger

logger = get_logger(component="FastAPI")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the reconciliation scheduler on startup, stop it on shutdown."""
    settings = get_settings()
    scheduler = None

    try:
        if settings.scheduler_enabled:
            scheduler = get_reconciliation_scheduler()
            scheduler.start()
        else:
            logger.info("Reconciliation scheduler not started (RECONCILIATION_SCHEDULER_ENABLED=false)")
    except Exception as exc:
        logger.exception("Failed to start reconciliation scheduler", error=str(exc))
        scheduler = None

    yield  # Application runs here

    if scheduler is not None:
        try:
            await scheduler.shutdown()
        except Exception as exc:
            logger.exception("Error during scheduler shutdown", error=str(exc))
    await get_http_client().aclose()


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(title=settings.project_name, version="1.0.0", lifespan=lifespan)
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get("/healthz", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
