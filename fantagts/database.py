import os
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base

from .config import Settings

Base = declarative_base()


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Build the async engine for the configured database URL.

    A DATABASE_URL environment variable wins over the settings value, the
    way hosted deployments inject it.
    """
    db_url = os.environ.get("DATABASE_URL") or settings.database_url

    if db_url.startswith("sqlite"):
        _ensure_sqlite_directory(db_url)
        return create_async_engine(db_url, echo=settings.debug)

    return create_async_engine(
        db_url,
        echo=settings.debug,
        pool_size=10,
        max_overflow=20,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def _ensure_sqlite_directory(db_url: str):
    path = db_url.split(":///", 1)[-1]
    if not path or path.startswith(":memory:"):
        return
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)


async def init_db(engine: AsyncEngine):
    """Initialize database tables."""
    # Register every table on Base.metadata
    from . import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
