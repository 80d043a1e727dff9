"""
Favsync Database Module
Async SQLAlchemy with SQLite (dev) / PostgreSQL (prod) support.

Two stores are involved and they may live in different databases:
- destination: pjn_favoritos and the sync metadata, owned by this app
- source: the cases table written by the scraper, read-only here
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool, AsyncAdaptedQueuePool

from favsync.core.config import get_settings


class Base(DeclarativeBase):
    """Base class for destination ORM models."""
    pass


class SourceBase(DeclarativeBase):
    """Base class for the scraper's tables (source store)."""
    pass


# Engines and session factories (lazy initialization)
_engine = None
_async_session_factory = None
_source_engine = None
_source_session_factory = None


def _create_engine(url: str) -> AsyncEngine:
    """
    Create an async engine with proper connection pooling.

    Pool settings:
    - PostgreSQL: QueuePool with configurable size
    - SQLite: NullPool (SQLite doesn't support concurrent connections well)
    """
    settings = get_settings()
    if "sqlite" in url:
        pool_config = {
            "poolclass": NullPool,
            "connect_args": {"check_same_thread": False},
        }
    else:
        pool_config = {
            "poolclass": AsyncAdaptedQueuePool,
            "pool_size": 5,
            "max_overflow": 10,
            "pool_timeout": 30,
            "pool_recycle": 1800,
            "pool_pre_ping": True,
        }
    return create_async_engine(url, echo=settings.debug, **pool_config)


def get_engine() -> AsyncEngine:
    """Get or create the destination engine."""
    global _engine
    if _engine is None:
        _engine = _create_engine(get_settings().database_url)
    return _engine


def get_source_engine() -> AsyncEngine:
    """
    Get or create the source engine.
    Shares the destination engine when both stores are the same database.
    """
    global _source_engine
    if _source_engine is None:
        settings = get_settings()
        source_url = settings.effective_source_database_url
        if source_url == settings.database_url:
            _source_engine = get_engine()
        else:
            _source_engine = _create_engine(source_url)
    return _source_engine


def get_session_factory():
    """Get or create the destination session factory."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )
    return _async_session_factory


def get_source_session_factory():
    """Get or create the source session factory."""
    global _source_session_factory
    if _source_session_factory is None:
        _source_session_factory = async_sessionmaker(
            bind=get_source_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )
    return _source_session_factory


async def init_db():
    """
    Initialize the destination database - create all tables.
    Call this on startup.
    """
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """
    Close database connections.
    Call this on shutdown.
    """
    global _engine, _async_session_factory, _source_engine, _source_session_factory
    if _source_engine is not None and _source_engine is not _engine:
        await _source_engine.dispose()
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session_factory = None
    _source_engine = None
    _source_session_factory = None


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager for destination sessions.
    Use this in services/background tasks (not FastAPI routes).

    Usage:
        async with get_db_session() as db:
            fav = await db.get(PjnFavorito, fav_id)
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def get_source_session() -> AsyncGenerator[AsyncSession, None]:
    """Async context manager for read-only source sessions."""
    factory = get_source_session_factory()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()
