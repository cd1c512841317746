"""Async SQLite engine holding the daily bucket cache and prompt logs."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from healthdash.config import get_settings

settings = get_settings()

engine = create_async_engine(settings.db_url, echo=settings.debug)

async_session = async_sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create missing tables. Cached buckets are derived data, so no migrations."""
    import healthdash.models  # noqa: F401 (registers all models with Base.metadata)

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(bind: AsyncEngine = engine) -> None:
    await bind.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session
