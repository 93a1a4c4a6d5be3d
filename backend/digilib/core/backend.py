"""
Backend container
=================

Everything a request needs to reach persistence, storage and the live change
feed, built once at start-up and handed to the app instead of living in
module-level singletons.

Usage:
    backend = create_backend(settings)
    await backend.startup()
    app.state.backend = backend
    ...
    await backend.dispose()

Request handlers get it with ``Depends(get_backend)``.
"""

from dataclasses import dataclass
from typing import AsyncGenerator

from fastapi import Depends
from fastapi.requests import HTTPConnection
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from digilib.core.config import Settings
from digilib.core.database import create_engine, create_session_factory, init_db
from digilib.core.exceptions import BackendUnavailableError
from digilib.core.logging_config import logger
from digilib.services.change_feed import ChangeFeed
from digilib.services.material_repository import MaterialRepository
from digilib.services.storage_service import ObjectStore, S3ObjectStore, create_object_store


@dataclass
class Backend:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    object_store: ObjectStore
    change_feed: ChangeFeed
    repository: MaterialRepository

    async def startup(self) -> None:
        """Create tables and make sure the bucket exists"""
        await init_db(self.engine)
        if isinstance(self.object_store, S3ObjectStore):
            await self.object_store.ensure_bucket()
        logger.info("[Backend] Database and object store ready")

    async def dispose(self) -> None:
        self.change_feed.close()
        await self.engine.dispose()
        logger.info("[Backend] Connections closed")


def create_backend(settings: Settings, object_store: ObjectStore = None) -> Backend:
    """Build the backend for these settings. Tests pass their own object store."""
    engine = create_engine(
        settings.DATABASE_URL,
        echo=settings.DB_ECHO,
        production=settings.ENVIRONMENT == "production",
    )
    change_feed = ChangeFeed()
    return Backend(
        settings=settings,
        engine=engine,
        session_factory=create_session_factory(engine),
        object_store=object_store or create_object_store(settings),
        change_feed=change_feed,
        repository=MaterialRepository(change_feed),
    )


def get_backend(connection: HTTPConnection) -> Backend:
    """FastAPI dependency returning the app's backend"""
    backend = getattr(connection.app.state, "backend", None)
    if backend is None:
        raise BackendUnavailableError("Backend is not initialized", backend="application")
    return backend


async def get_db(backend: Backend = Depends(get_backend)) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting a database session"""
    async with backend.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
