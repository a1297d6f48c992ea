from typing import Optional

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from examdash.config import Settings

# Base class for models (can be defined before any engine)
Base = declarative_base()


class Database:
    """
    Engine and session factory for the offline store.

    One instance per OfflineManager, created lazily on first use and
    disposed on shutdown. SQLite needs NullPool for thread safety.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            db_url = self.settings.database_url
            if "sqlite" in db_url:
                self._engine = create_async_engine(
                    db_url,
                    echo=self.settings.DB_ECHO,
                    connect_args={"check_same_thread": False},
                    poolclass=NullPool,
                )
            else:
                self._engine = create_async_engine(
                    db_url,
                    echo=self.settings.DB_ECHO,
                    pool_pre_ping=True,
                )
        return self._engine

    def session(self) -> AsyncSession:
        """Open a new session; use as `async with db.session() as session`"""
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
        return self._session_factory()

    async def create_tables(self) -> None:
        # Import models so they register on Base.metadata
        from examdash import models  # noqa: F401

        self.settings.ensure_directories()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
