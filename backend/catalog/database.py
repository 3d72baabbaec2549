"""
Catalog Backend: Store Client
=============================

What:  Async SQLAlchemy engine, session factory, and schema bootstrap wrapped
       in one explicitly constructed `Database` object.
How:   `create_app()` builds a single `Database` from settings and keeps it on
       `app.state`; services receive it at construction time.

Connection Pooling:
    pool_size / max_overflow: bounded pool for the server driver (asyncpg)
    pool_pre_ping:            validates connections before use
    pool_recycle=3600:        recycles connections every hour

    SQLite URLs (used by the test suite) skip the pool arguments, which
    SQLite's pool classes do not accept.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from catalog.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine described by `settings`."""
    url = make_url(settings.database_url)
    options = {"echo": settings.log_level == "DEBUG"}
    if url.get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return create_async_engine(url, **options)


class Database:
    """
    Long-lived store client: one engine (and pool) per application.

    Usage:
        database = Database.from_settings(settings)
        await database.init_schema()
        async with database.session() as session:
            ...
        await database.dispose()
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        # expire_on_commit=False keeps returned rows readable after commit
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(build_engine(settings))

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Provides a session that commits on success and rolls back on error.

        Every CRUD operation runs exactly one statement inside one of these
        sessions, so each operation is a single atomic unit at the store.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def init_schema(self) -> None:
        """
        Issue the idempotent CREATE TABLE IF NOT EXISTS for every model.

        `create_all` checks for each table first, so running it on every
        startup is safe.
        """
        # Registers the products table on Base.metadata
        from catalog.models import product  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
        logger.info("Database initialized successfully")

    async def dispose(self) -> None:
        """Close all pooled connections (called on shutdown)."""
        await self.engine.dispose()


