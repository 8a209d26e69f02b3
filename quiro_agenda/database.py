"""Database configuration and connection management."""

from typing import Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from quiro_agenda.config import settings


def async_database_url(url: str) -> str:
    """Convert a sync PostgreSQL URL to the asyncpg driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def engine_options(url: str) -> dict[str, Any]:
    """Connection pool options suited to the backend behind ``url``."""
    if url.startswith("sqlite"):
        return {"echo": settings.debug}
    return {
        "echo": settings.debug,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 3600,
        "connect_args": {
            "server_settings": {
                "application_name": settings.app_name,
            },
        },
    }


def enable_sqlite_write_locks(async_engine: AsyncEngine) -> None:
    """
    Make every SQLite transaction take the database write lock at ``BEGIN``.

    The sqlite3 driver defers ``BEGIN`` until the first write, so the reads a
    booking checks conflicts with would otherwise run outside any transaction
    and two concurrent bookings could both see the slot free. With
    ``BEGIN IMMEDIATE`` the second transaction waits for the first to commit.
    """

    @event.listens_for(async_engine.sync_engine, "connect")
    def disable_driver_transactions(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def begin_immediate(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


DATABASE_URL = async_database_url(settings.database_url)

# Create async engine with connection pooling
engine: AsyncEngine = create_async_engine(DATABASE_URL, **engine_options(DATABASE_URL))
if engine.dialect.name == "sqlite":
    enable_sqlite_write_locks(engine)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def check_database_connection() -> bool:
    """Check if database connection is healthy."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
