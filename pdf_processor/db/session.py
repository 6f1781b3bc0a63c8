"""
Database session management.

Flow:
  1. FastAPI dependency get_db() opens a session per request.
  2. The metadata repository commits its own writes, so a successful
     create() means the row is durable before the request moves on to
     best-effort indexing.
  3. After the route completes (or raises), the session is closed and the
     connection is returned to the pool.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from pdf_processor.core.config import settings
from pdf_processor.models.documents import Base

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

engine: AsyncEngine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,          # detect stale connections before use
    pool_recycle=3600,           # recycle connections every hour
    echo=settings.db_echo_sql,   # log SQL in dev; disable in prod
)

# expire_on_commit=False: ORM objects stay readable after commit
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a database session for the lifetime of one request.

    Usage in a route:
        @router.get("/documents/{id}")
        async def read(db: AsyncSession = Depends(get_db)): ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


# ---------------------------------------------------------------------------
# Schema bootstrap (local dev / tests against a scratch database)
# ---------------------------------------------------------------------------

async def create_tables() -> None:
    """Create missing tables. Production schemas are managed by migrations."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


# ---------------------------------------------------------------------------
# Health check helper
# ---------------------------------------------------------------------------

async def check_db_health() -> dict:
    """Ping the database; used by /ready endpoint."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        logger.error("DB health check failed: %s", exc)
        return {"status": "error", "detail": str(exc)}
