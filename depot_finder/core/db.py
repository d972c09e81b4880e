"""Database engine and session factory construction."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from depot_finder.core.config import Settings, settings as default_settings
from depot_finder.database.base import Base

# Import models so their tables are registered on Base.metadata
from depot_finder.database import models  # noqa: F401


def create_engine_from_settings(config: Settings | None = None) -> AsyncEngine:
    """Create the async engine for the configured database.

    Args:
        config: Settings to read DATABASE_URL from, defaults to module settings

    Returns:
        AsyncEngine bound to DATABASE_URL
    """
    config = config or default_settings
    database_url = config.DATABASE_URL
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)

    return create_async_engine(
        database_url,
        echo=config.DB_ECHO,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create the postal, depots and paint tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
