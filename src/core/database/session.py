"""Process-wide engine and session factory.

The engine is created once, lazily, on the first caller of ``init_engine()``.
Concurrent first callers share a single initialization; a failed connectivity
check leaves nothing cached so the next caller retries.
"""
import asyncio
import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.core.config import settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None
_init_lock = asyncio.Lock()


def _make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_engine() -> AsyncEngine:
    """Create the engine on first use and verify the database answers."""
    global _engine, _session_factory

    if _engine is not None:
        return _engine

    async with _init_lock:
        if _engine is not None:
            return _engine

        # Hide password in logs
        url_for_log = make_url(settings.database_url).render_as_string(hide_password=True)
        logger.info("Connecting to database %s", url_for_log)

        engine = create_async_engine(
            settings.database_url,
            echo=settings.database_echo,
            pool_pre_ping=True,
        )
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            logger.exception("Database connection failed")
            await engine.dispose()
            raise

        _engine = engine
        _session_factory = _make_session_factory(engine)
        return _engine


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine (shutdown, test teardown)."""
    global _engine, _session_factory, _init_lock

    engine = _engine
    _engine = None
    _session_factory = None
    # The next lifecycle may run on another event loop
    _init_lock = asyncio.Lock()
    if engine is not None:
        await engine.dispose()


async def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency for components that open their own sessions (fan-out, background writes)."""
    await init_engine()
    if _session_factory is None:
        raise RuntimeError("Database session factory is not initialized")
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database session."""
    session_factory = await get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
