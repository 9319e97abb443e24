"""
Hostel Ledger Backend: Database Engine Management
===================================================

What:  Async SQLAlchemy engine and session factory builders plus the
       declarative Base for ORM models.
Why:   Centralizes all database connection logic in one place.
How:   build_engine() creates an async engine from a URL, adding pool sizing
       for server databases; build_session_factory() wraps it.
Who:   Used by SqlUnitStore when store_backend == "database".
When:  Built once during app startup; disposed at shutdown via the store.

Connection Pooling Strategy:
    Server databases (PostgreSQL via asyncpg) get pool_size/max_overflow from
    settings. SQLite (aiosqlite) keeps SQLAlchemy's default pool, since its
    pool class does not take sizing arguments for in-memory databases.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from hostel_ledger.config import Settings, settings as default_settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shares one metadata object)."""
    pass


def build_engine(url: str, app_settings: Optional[Settings] = None) -> AsyncEngine:
    """
    Create the async engine for ``url``.

    Echoes SQL only when the log level is DEBUG.
    """
    app_settings = app_settings or default_settings
    options = {
        "echo": app_settings.log_level == "DEBUG",
        "pool_pre_ping": app_settings.db_pool_pre_ping,
    }
    if not url.startswith("sqlite"):
        options.update(
            pool_size=app_settings.db_pool_size,
            max_overflow=app_settings.db_max_overflow,
            pool_recycle=3600,
        )
    return create_async_engine(url, **options)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    # expire_on_commit=False: row attributes stay readable after commit
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def dispose_engine(engine: AsyncEngine) -> None:
    """Gracefully closes all connections in the pool (called at shutdown)."""
    await engine.dispose()
