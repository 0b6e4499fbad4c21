"""Database configuration and connection management."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from clinic_portal.config import settings

# Convert sync PostgreSQL URL to async
DATABASE_URL = settings.database_url.replace("postgresql://", "postgresql+asyncpg://")


def enable_sqlite_immediate_transactions(async_engine: AsyncEngine) -> None:
    """
    Make every SQLite transaction start with BEGIN IMMEDIATE.

    Writers then queue on the busy timeout instead of failing on a
    SHARED -> RESERVED lock upgrade, so the check-then-insert booking
    sequence is serialised across connections.
    """

    @event.listens_for(async_engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_conn: Any, connection_record: Any) -> None:
        dbapi_conn.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _begin_immediate(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_for_url(url: str, **kwargs: Any) -> AsyncEngine:
    """Create an async engine with dialect appropriate settings."""
    if url.startswith("sqlite"):
        sqlite_engine = create_async_engine(url, echo=settings.debug, **kwargs)
        enable_sqlite_immediate_transactions(sqlite_engine)
        return sqlite_engine

    # Create async engine with connection pooling
    return create_async_engine(
        url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_recycle=3600,
        connect_args={
            "server_settings": {
                "application_name": settings.app_name,
            },
        },
        **kwargs,
    )


engine: AsyncEngine = create_engine_for_url(DATABASE_URL)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def check_database_connection() -> bool:
    """Check if database connection is healthy."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
