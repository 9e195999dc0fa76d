"""BookstoreContainer wiring and lifecycle."""

from bookstore.core.container import BookstoreContainer
from bookstore.infrastructure.cache.redis_cache import CacheService


async def test_cache_less_container_serves_from_store(settings) -> None:
    async with BookstoreContainer(settings) as container:
        assert container.cache is None
        await container.create_schema()

        result = await container.books.get_all_books()

        assert result.source == "from store"
        assert result.message == "No books found"


async def test_redis_enabled_creates_cache_service(settings) -> None:
    enabled = settings.model_copy(update={"redis_enabled": True})
    container = BookstoreContainer(enabled)
    try:
        assert isinstance(container.cache, CacheService)
        assert container.books.cache is container.cache
    finally:
        await container.engine.dispose()


async def test_injected_cache_is_shared_and_not_owned(container, cache) -> None:
    repos = (
        container.books,
        container.addresses,
        container.carts,
        container.orders,
        container.users,
        container.wishlists,
    )
    assert all(repo.cache is cache for repo in repos)
    assert all(repo.session_factory is container.session_factory for repo in repos)
    assert all(repo.cache_ttl == 1800 for repo in repos)
