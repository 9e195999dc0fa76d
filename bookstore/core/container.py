"""Container: startup and shutdown of the shared infrastructure.

Single place for wiring (engine, session factory, cache client) and for
their lifecycle; no business logic here. Repositories receive the session
factory and the cache but never own them.
"""

from __future__ import annotations

import logging
from types import TracebackType

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from bookstore.core.config import Settings, get_settings
from bookstore.infrastructure.cache.cache_protocol import CacheProtocol
from bookstore.infrastructure.cache.redis_cache import CacheService
from bookstore.infrastructure.persistence.database import (
    create_engine,
    create_schema,
    create_session_factory,
)
from bookstore.infrastructure.persistence.repositories import (
    AddressRepository,
    BookRepository,
    CartRepository,
    OrderRepository,
    UserRepository,
    WishListRepository,
)
from bookstore.shared.telemetry.logging import setup_logging

logger = logging.getLogger(__name__)


class BookstoreContainer:
    """Holds the engine, session factory, cache, and the six repositories.

    Usage:
        async with BookstoreContainer() as container:
            result = await container.books.get_book(7)

    A cache can be injected (tests use an in-memory double); otherwise a
    Redis CacheService is created when settings.redis_enabled is True, and
    the repositories run cache-less when it is False.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        engine: AsyncEngine | None = None,
        cache: CacheProtocol | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.engine = engine or create_engine(self.settings)
        self.session_factory: async_sessionmaker[AsyncSession] = create_session_factory(
            self.engine
        )
        self._owns_cache = cache is None
        if cache is None and self.settings.redis_enabled:
            cache = CacheService(settings=self.settings)
        self.cache = cache

        args = (self.session_factory, self.cache)
        self.books = BookRepository(*args, settings=self.settings)
        self.addresses = AddressRepository(*args, settings=self.settings)
        self.carts = CartRepository(*args, settings=self.settings)
        self.orders = OrderRepository(*args, settings=self.settings)
        self.users = UserRepository(*args, settings=self.settings)
        self.wishlists = WishListRepository(*args, settings=self.settings)

    async def startup(self) -> None:
        """Configure logging and connect the cache (if this container created it)."""
        setup_logging(self.settings)
        if self._owns_cache and self.cache is not None:
            await self.cache.connect()
        logger.info(
            "%s %s started (cache %s)",
            self.settings.app_name,
            self.settings.app_version,
            "enabled" if self.cache is not None and self.cache.is_available() else "disabled",
        )

    async def shutdown(self) -> None:
        """Disconnect the cache (if owned) and dispose the SQL engine."""
        if self._owns_cache and self.cache is not None:
            await self.cache.disconnect()
            logger.info("Cache disconnected")
        await self.engine.dispose()
        logger.info("Database engine disposed")

    async def create_schema(self) -> None:
        """Create all tables (development and tests)."""
        await create_schema(self.engine)

    async def __aenter__(self) -> BookstoreContainer:
        await self.startup()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.shutdown()
