"""Database configuration and session management.

This module constructs an asynchronous SQLAlchemy engine and session
factory for the application from ``settings.DATABASE_URL``.  Plain
``sqlite`` URLs are upgraded to the ``aiosqlite`` driver so the same
connection string can be shared with synchronous tooling.  Other
backends must name their async driver explicitly (for example
``postgresql+asyncpg``).
"""

from __future__ import annotations

import logging
from typing import Any, AsyncGenerator

from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from snapcart.core.config import settings

logger = logging.getLogger(__name__)

_ASYNC_DRIVERS = {
    "sqlite": "sqlite+aiosqlite",
}


def normalise_async_url(url: str) -> str:
    """Return ``url`` rewritten to use an async driver where we know one."""
    url_obj = make_url(url)
    driver = _ASYNC_DRIVERS.get(url_obj.drivername)
    if driver:
        url_obj = url_obj.set(drivername=driver)
    return url_obj.render_as_string(hide_password=False)


db_url = normalise_async_url(settings.DATABASE_URL)
engine_kwargs: dict[str, Any] = dict(echo=False, pool_pre_ping=True)

engine = create_async_engine(db_url, **engine_kwargs)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Declarative base
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields a database session.

    This function is intended for FastAPI dependency injection.  Each
    session is scoped to the request and closed after use.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """Create all tables declared on ``Base``.

    Typically called during application startup.  Alembic is not used;
    ``create_all`` is idempotent for existing tables.
    """
    async with engine.begin() as conn:
        # Import all models to ensure metadata is populated
        from snapcart.models import tables  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready (%s)", make_url(db_url).render_as_string(hide_password=True))
