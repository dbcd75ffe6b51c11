"""Async SQLAlchemy engine and session plumbing.

Repositories issue raw SQL through the session they are handed; the
application service that opened the unit of work owns commit/rollback.
Row locks (SELECT ... FOR UPDATE) taken by a repository therefore last until
that service commits or rolls back.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings


class Base(DeclarativeBase):
    """Declarative base for the typed table references (users only)."""

    pass


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def check_schema() -> None:
    """Verify the database is reachable and migrated (transactions table exists)."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1 FROM transactions LIMIT 1"))


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: yields an AsyncSession, auto-closes after request."""
    async with async_session_factory() as session:
        yield session
