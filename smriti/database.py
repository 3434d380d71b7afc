"""SQLAlchemy async store handle for the local SQLite database.

The store is an explicit object with an "open on startup, close on shutdown"
lifecycle so the app and the tests can each hold their own isolated instance.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _is_memory_url(url: str) -> bool:
    return url.endswith("://") or ":memory:" in url


class DraftStore:
    """Embedded durable store: engine + session factory."""

    def __init__(self, database_url: str, *, echo: bool = False) -> None:
        self.database_url = database_url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    async def open(self) -> None:
        """Create the engine and all tables (dev convenience — no migrations)."""
        if self._engine is not None:
            return
        kwargs: dict = {"echo": self.echo}
        if _is_memory_url(self.database_url):
            # One shared connection, otherwise every checkout gets an empty database
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        self._engine = create_async_engine(self.database_url, **kwargs)
        self._sessionmaker = async_sessionmaker(self._engine, class_=AsyncSession, expire_on_commit=False)

        # Import models so their tables are registered on Base.metadata
        import smriti.models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Opened draft store: %s", self.database_url)

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Closed draft store")

    def session(self) -> AsyncSession:
        if self._sessionmaker is None:
            raise RuntimeError("DraftStore is not open")
        return self._sessionmaker()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Session inside a single transaction: commit on success, full rollback on error."""
        async with self.session() as session:
            async with session.begin():
                yield session


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    store: DraftStore = request.app.state.store
    async with store.session() as session:
        yield session
