"""Async SQLAlchemy engine and session management.

Every request holds one session for scope resolution plus up to
``AGGREGATION_MAX_CONCURRENCY`` short-lived sessions for the fan-out, so
the pool is sized from both settings.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from hrscope.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_POOL_SIZE * settings.AGGREGATION_MAX_CONCURRENCY,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: a request-scoped session for reads.

    Nothing in the dashboard writes, so the transaction is always rolled
    back on the way out.
    """
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


def get_session_factory() -> async_sessionmaker:
    """FastAPI dependency: the factory used to open one session per fanned-out view."""
    return async_session_factory
