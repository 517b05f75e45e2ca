"""Async SQLAlchemy database setup.

The MQTT handler and the HTTP API write through the same SQLite file, so
every connection gets WAL journaling, enforced foreign keys and a busy
timeout instead of failing immediately on a locked database.
"""

import logging
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from airsense.config import DATABASE_PATH, SQLITE_BUSY_TIMEOUT

logger = logging.getLogger(__name__)

SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA foreign_keys=ON",
)


class Base(DeclarativeBase):
    pass


def get_database_url(path: str = DATABASE_PATH) -> str:
    """SQLite URL for the given path, creating its directory."""
    db_path = Path(path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{db_path.resolve()}"


def _apply_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    for pragma in SQLITE_PRAGMAS:
        cursor.execute(pragma)
    cursor.close()


def create_engine(url: str | None = None) -> AsyncEngine:
    db_engine = create_async_engine(
        url or get_database_url(),
        echo=False,
        connect_args={"timeout": SQLITE_BUSY_TIMEOUT},
    )
    event.listen(db_engine.sync_engine, "connect", _apply_pragmas)
    return db_engine


engine = create_engine()

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """Dependency for getting async database sessions."""
    async with async_session() as session:
        yield session


async def init_db(db_engine: AsyncEngine | None = None) -> None:
    """Create all tables that don't exist yet."""
    # Register models on Base.metadata
    import airsense.models  # noqa: F401

    async with (db_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database ready at %s", (db_engine or engine).url.database)
