"""
Async SQLAlchemy engine / session factory.

The engine (and its connection pool) is owned by the application: it is
built in ``create_app`` and kept on ``app.state``, never as a module global.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncGenerator, Dict

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import Settings
from database.models import Base

logger = logging.getLogger(__name__)


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine with a bounded connection pool."""
    kwargs: Dict[str, Any] = {"echo": False, "pool_pre_ping": True}
    if not settings.is_sqlite:
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle,
        )
    return create_async_engine(settings.database_url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine, create_tables: bool = False, timeout: float = 5.0) -> None:
    """
    Verify connectivity at startup (fail fast) and optionally create tables.
    """
    async def _check() -> None:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if create_tables:
                await conn.run_sync(Base.metadata.create_all)

    await asyncio.wait_for(_check(), timeout=timeout)
    logger.info("Database connected%s", " (tables verified)" if create_tables else "")


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency function — use in FastAPI `Depends(get_db_session)`."""
    factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            # also runs on cancellation (request deadline): returns the connection
            await session.close()
