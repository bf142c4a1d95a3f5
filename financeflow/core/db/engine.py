from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from financeflow.core.config import config


def _engine_options() -> dict:
    options: dict = {"echo": False}
    if not config.is_production:
        # Every session opens its own SQLite connection in development
        options["poolclass"] = NullPool
    return options


engine = create_async_engine(config.db_url, **_engine_options())

# Shared by request handlers, scripts and background sync runs
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db_util() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session: commit on success, roll back on error."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_all() -> None:
    """Create missing tables. Migrations own the schema in production."""
    from financeflow.core.db import Base, import_models

    import_models()
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
