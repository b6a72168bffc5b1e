"""Database session and engine helpers."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from campreg.core.config import get_settings

logger = logging.getLogger(__name__)

_engines: dict[str, AsyncEngine] = {}
_sessionmakers: dict[str, async_sessionmaker[AsyncSession]] = {}


def _database_url(override: str | None = None) -> str:
    return override or get_settings().database_url


def _engine_options(url: str) -> dict[str, Any]:
    # SQLite (tests, local dev) uses a static pool and rejects pool sizing.
    if make_url(url).get_backend_name() == "sqlite":
        return {}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


def get_sessionmaker(
    database_url: str | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Return (and cache) an async sessionmaker for the given database URL."""
    url = _database_url(database_url)
    factory = _sessionmakers.get(url)
    if factory is None:
        engine = create_async_engine(url, **_engine_options(url))
        factory = async_sessionmaker(
            engine, expire_on_commit=False, class_=AsyncSession
        )
        _engines[url] = engine
        _sessionmakers[url] = factory
        logger.debug("Created async engine for %s", make_url(url).render_as_string())
    return factory


async def get_session() -> AsyncIterator[AsyncSession]:
    """Yield an async database session using the configured engine."""
    factory = get_sessionmaker()
    async with factory() as session:
        yield session


async def dispose_engine(database_url: str | None = None) -> None:
    """Dispose the cached engine/sessionmaker for the given database URL."""
    url = _database_url(database_url)
    engine = _engines.pop(url, None)
    _sessionmakers.pop(url, None)
    if engine is not None:
        await engine.dispose()
