from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text
import logging

logger = logging.getLogger(__name__)


# Base class for declarative models
class Base(DeclarativeBase):
    pass


def create_engine(
    database_url: str,
    echo: bool = False,
    pool_size: Optional[int] = None,
) -> AsyncEngine:
    """Build the process-wide async engine. Owned by the app lifespan."""
    kwargs = {"echo": echo, "pool_pre_ping": True}
    # sqlite is only used by tests; keep its default pool
    if pool_size and not database_url.startswith("sqlite"):
        kwargs["pool_size"] = pool_size
    logger.info(f"Creating database engine for {_redact(database_url)}")
    return create_async_engine(database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session maker to be used by the services."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# Function to initialize the database (create tables)
async def init_db(engine: AsyncEngine) -> None:
    # Import models so every table is registered on the metadata
    import database.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ping(sessions: async_sessionmaker[AsyncSession]) -> None:
    """Round-trip to the database; raises on failure."""
    async with sessions() as session:
        await session.execute(text("SELECT 1"))


# Function to close database connections
async def close_db(engine: AsyncEngine) -> None:
    """Close database engine and connections."""
    await engine.dispose()


def _redact(url: str) -> str:
    scheme, sep, rest = url.partition("://")
    if "@" not in rest:
        return url
    return f"{scheme}{sep}***@{rest.split('@', 1)[1]}"
