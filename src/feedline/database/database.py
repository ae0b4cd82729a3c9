import contextlib
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from feedline.main.logging import get_logger

logger = get_logger(__name__)


class DatabaseSessionManager:
    def __init__(self):
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def initialized(self) -> bool:
        return self._engine is not None

    def init(self, host: str, **engine_kwargs):
        # If already initialized, don't reinitialize (important for tests)
        if self._engine is not None:
            logger.debug("Database already initialized, skipping reinitialization")
            return

        if host.startswith("postgresql"):
            engine_kwargs.setdefault("pool_size", 20)
            engine_kwargs.setdefault("max_overflow", 10)

        self._engine = create_async_engine(host, **engine_kwargs)
        self._sessionmaker = async_sessionmaker(
            autocommit=False,
            bind=self._engine,
            autobegin=False,
            expire_on_commit=False,
        )
        logger.debug("Database engine created", extra={"dialect": self._engine.dialect.name})

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise Exception("DatabaseSessionManager is not initialized")
        return self._engine

    async def close(self):
        if self._engine is None:
            logger.debug("DatabaseSessionManager already closed or not initialized")
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.debug("DatabaseSessionManager closed")

    @contextlib.asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        if self._engine is None:
            raise Exception("DatabaseSessionManager is not initialized")

        async with self._engine.begin() as connection:
            try:
                yield connection
            except Exception:
                await connection.rollback()
                raise

    @contextlib.asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        if self._sessionmaker is None:
            raise Exception("DatabaseSessionManager is not initialized")

        session = self._sessionmaker()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


class DatabaseRegistry:
    """One session manager per distinct database URL.

    Categories may live in separate databases; categories that share a URL
    share an engine and its pool.
    """

    def __init__(self):
        self._managers: dict[str, DatabaseSessionManager] = {}

    def init(self, urls, **engine_kwargs) -> None:
        for url in urls:
            self.get(url).init(url, **engine_kwargs)

    def get(self, url: str) -> DatabaseSessionManager:
        manager = self._managers.get(url)
        if manager is None:
            manager = DatabaseSessionManager()
            self._managers[url] = manager
        return manager

    def session(self, url: str):
        return self.get(url).session()

    async def close(self) -> None:
        for manager in self._managers.values():
            await manager.close()
        self._managers.clear()
