"""Database handle with an explicit open/close lifecycle."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tecassist.config import Settings
from tecassist.db.models import Base

logger = logging.getLogger(__name__)


def normalize_async_url(database_url: str) -> str:
    """Map sync driver URLs onto their async drivers.

    Raises:
        ValueError: If the URL is empty.
    """
    if not database_url:
        raise ValueError(
            "DATABASE_URL must be set to a valid connection string. "
            "Please configure the database_url setting."
        )

    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("sqlite:///"):
        return database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return database_url


class Database:
    """Explicitly constructed store handle.

    Opened once at process start and closed at shutdown; components receive
    the handle (or repositories built on it) instead of reaching for a
    module-level client.
    """

    def __init__(self, database_url: str, *, echo: bool = False) -> None:
        self.url = normalize_async_url(database_url)
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Build a handle from application settings."""
        return cls(settings.database_url, echo=settings.database_echo)

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not open")
        return self._engine

    async def open(self) -> None:
        """Create the engine and session factory."""
        if self._engine is not None:
            return

        if ":memory:" in self.url:
            # One shared connection, otherwise every session sees an empty DB
            self._engine = create_async_engine(
                self.url,
                echo=self.echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            self._engine = create_async_engine(self.url, pool_pre_ping=True, echo=self.echo)

        self._sessionmaker = async_sessionmaker(self._engine, expire_on_commit=False)
        logger.info("Database opened")

    async def create_all(self) -> None:
        """Create tables directly (tests and local dev; production uses Alembic)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Dispose of the engine; safe to call twice."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database closed")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session bound to this handle."""
        if self._sessionmaker is None:
            raise RuntimeError("Database is not open")
        async with self._sessionmaker() as session:
            yield session
