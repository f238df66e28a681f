from collections.abc import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    database_url = make_url(settings.database_url)
    query = dict(database_url.query)
    if (database_url.host or "").endswith("supabase.co") and "sslmode" not in query:
        query["sslmode"] = "require"
        database_url = database_url.set(query=query)

    return create_async_engine(
        database_url.render_as_string(hide_password=False),
        echo=False,
        pool_pre_ping=settings.database_pool_pre_ping,
        poolclass=NullPool,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        expire_on_commit=False,
        class_=AsyncSession,
    )


async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
