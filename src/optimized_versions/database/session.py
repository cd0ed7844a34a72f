"""Database session management."""

import logging
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .base import Base

logger = logging.getLogger(__name__)


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine, making sure a SQLite file has a directory.

    Args:
        database_url: SQLAlchemy URL (async driver)
        echo: Log SQL statements

    Returns:
        AsyncEngine instance
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    return create_async_engine(database_url, echo=echo, future=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create the session factory bound to an engine.

    Returns:
        async_sessionmaker producing AsyncSession instances
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Initialize database tables.

    Creates all tables defined in ORM models.
    """
    async with engine.begin() as conn:
        # Import all models to register them with Base
        from .models import JobORM, OutputFileORM  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized successfully")
