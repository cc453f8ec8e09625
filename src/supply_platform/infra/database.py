"""Async database engine, session management and transaction helpers."""

import logging
from contextlib import asynccontextmanager

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from supply_platform.app.config import get_settings
from supply_platform.domain.errors import StorageError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""
    pass


settings = get_settings()

# Auto-detect driver from DATABASE_URL
_is_sqlite = "sqlite" in settings.database_url
_connect_args = {}
if _is_sqlite:
    _connect_args["check_same_thread"] = False
    _connect_args["timeout"] = 30  # Wait up to 30s for write lock (default 5s)

_engine_kwargs = {
    "echo": False,  # Set True only when debugging SQL queries
    "connect_args": _connect_args,
}
if not _is_sqlite:
    _engine_kwargs["pool_size"] = settings.database_pool_size
    _engine_kwargs["max_overflow"] = settings.database_max_overflow

engine = create_async_engine(settings.database_url, **_engine_kwargs)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def enable_sqlite_foreign_keys(async_engine) -> None:
    """Turn on FK enforcement for every new SQLite connection of ``async_engine``."""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


if _is_sqlite:
    enable_sqlite_foreign_keys(engine)


async def get_db():
    """FastAPI dependency: yield an async database session."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    """Create all tables (for local dev). Use migrations for production."""
    # Ensure models are registered with Base.metadata
    import supply_platform.domain.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # WAL lets readers proceed while a single writer holds the lock
    if _is_sqlite:
        async with engine.begin() as conn:
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.execute(text("PRAGMA busy_timeout=30000"))


async def execute(db: AsyncSession, operation: str, statement):
    """Execute ``statement`` on ``db``, reporting driver failures as StorageError."""
    try:
        return await db.execute(statement)
    except SQLAlchemyError as exc:
        logger.error("Database operation failed: %s (%s)", operation, exc)
        raise StorageError(
            f"Database operation failed: {operation}",
            operation,
            query=str(statement),
            cause=exc,
        ) from exc


@asynccontextmanager
async def transaction(db: AsyncSession, operation: str):
    """Scope a multi-statement write to one commit.

    Commits when the block exits normally. On any exception the session is
    rolled back before the error leaves the block: driver errors surface as
    StorageError, everything else propagates unchanged.
    """
    try:
        yield db
        await db.commit()
    except StorageError:
        await db.rollback()
        logger.warning("Rolled back %s after storage failure", operation)
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Rolled back %s: %s", operation, exc)
        raise StorageError(
            f"Database operation failed: {operation}",
            operation,
            cause=exc,
        ) from exc
    except BaseException:
        await db.rollback()
        logger.warning("Rolled back %s", operation)
        raise
