"""Async database manager for ReplyGate."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from replygate.common.config import ReplyGateSettings, get_settings
from replygate.common.models import Base

# Import all model modules so Base.metadata is complete for create_all().
import replygate.users.models  # noqa: F401
import replygate.usage.models  # noqa: F401

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict[str, Any]:
    parsed = make_url(url)
    if parsed.get_backend_name() == "postgresql":
        # conditional usage inserts must not interleave
        return {"isolation_level": "SERIALIZABLE"}
    if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return {}


class DatabaseManager:
    """Owns the async engine and hands out one session per unit of work."""

    def __init__(self, settings: ReplyGateSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        url = self._settings.db_url
        self.engine = create_async_engine(url, echo=False, **_engine_options(url))
        self._session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False
        )
        logger.info("Database engine ready (%s)", self.engine.dialect.name)

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session; commit when the block exits cleanly, roll back otherwise."""
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not initialized, call init() first")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized, call init() first")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
