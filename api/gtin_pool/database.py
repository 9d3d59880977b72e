# gtin_pool/database.py
"""
Database connection for the GTIN pool.

Uses SQLAlchemy 2.0 async; asyncpg for PostgreSQL, aiosqlite for local runs.
Pool stores commit their own writes, the session scope below only closes
whatever is left open at the end of a request.
"""
from __future__ import annotations
import logging
from typing import AsyncGenerator, AsyncIterator, Optional
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from gtin_pool.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for gtin_pool and project_identifiers."""


# ============================================================================
# Engine / sessions
# ============================================================================

_engine: Optional[AsyncEngine] = None
_sessions: Optional[async_sessionmaker[AsyncSession]] = None


def get_database_url() -> str:
    """DATABASE_URL if set, else postgresql+asyncpg from the DB_* settings."""
    if settings.DATABASE_URL:
        return settings.DATABASE_URL
    return (
        f"postgresql+asyncpg://{settings.DB_USER}:{settings.DB_PASSWORD}"
        f"@{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}"
    )


def build_engine(url: str) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    kwargs = {"echo": settings.DB_ECHO}
    if make_url(url).get_backend_name() != "sqlite":
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
    return create_async_engine(url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # results outlive the commit that produced them
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


async def init_db(url: Optional[str] = None) -> None:
    """Create the process-wide engine once; optionally create missing tables."""
    global _engine, _sessions
    if _engine is not None:
        return

    url = url or get_database_url()
    _engine = build_engine(url)
    _sessions = build_session_factory(_engine)
    logger.info("Database engine created for %s", make_url(url).render_as_string(hide_password=True))

    if settings.DB_CREATE_ALL:
        await create_all(_engine)


async def create_all(engine: AsyncEngine) -> None:
    """Create missing tables (dev/test helper; production uses migrations)."""
    # models must be registered on Base.metadata before create_all
    from gtin_pool import db_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def close_db() -> None:
    global _engine, _sessions
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _sessions = None


@asynccontextmanager
async def _session_scope() -> AsyncIterator[AsyncSession]:
    if _sessions is None:
        await init_db()
    async with _sessions() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency, one session per request.

        @router.get("/gtin-pool")
        async def list_pool(db: AsyncSession = Depends(get_session)): ...
    """
    async with _session_scope() as session:
        yield session


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Same session scope for scripts and jobs running outside FastAPI."""
    async with _session_scope() as session:
        yield session


# ============================================================================
# Health
# ============================================================================

async def check_db_health() -> dict:
    try:
        async with get_session_context() as db:
            await db.execute(text("SELECT 1"))
            dialect = db.bind.dialect.name
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        return {"status": "unhealthy", "database": "disconnected", "error": str(e)}
    return {"status": "healthy", "database": "connected", "dialect": dialect}
