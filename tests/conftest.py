"""Pytest configuration and fixtures for bookstore.

Durable store: a fresh SQLite file per test (aiosqlite), schema created by
the container. Cache: InMemoryCache, a CacheProtocol double that stores
JSON round-tripped values and can be told to fail.
"""

import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from bookstore.application.dtos import AddBookRequest, BookResult, RegisterUserRequest, UserResult
from bookstore.core.config import Settings, get_settings
from bookstore.core.container import BookstoreContainer
from bookstore.domain.exceptions import TransientCacheError


class InMemoryCache:
    """CacheProtocol double.

    fail_ops holds operation names ("get", "set", "delete", "update") that raise
    TransientCacheError; available=False makes the cache report itself down.
    Every call is recorded in calls as (op, key).
    """

    def __init__(self) -> None:
        self.store: dict[str, Any] = {}
        self.ttls: dict[str, int] = {}
        self.available = True
        self.fail_ops: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    def is_available(self) -> bool:
        return self.available

    def _check(self, op: str, key: str) -> None:
        self.calls.append((op, key))
        if op in self.fail_ops:
            raise TransientCacheError(key=key)

    async def get(self, key: str) -> Any:
        self._check("get", key)
        value = self.store.get(key)
        return json.loads(json.dumps(value)) if value is not None else None

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        self._check("set", key)
        self.store[key] = json.loads(json.dumps(value))
        self.ttls[key] = ttl
        return True

    async def delete(self, key: str) -> bool:
        self._check("delete", key)
        self.store.pop(key, None)
        self.ttls.pop(key, None)
        return True

    async def update(
        self, key: str, change: Callable[[Any | None], Any | None], ttl: int
    ) -> bool:
        """Read and write in one step, with no await in between."""
        self._check("update", key)
        current = self.store.get(key)
        updated = change(json.loads(json.dumps(current)) if current is not None else None)
        if updated is None:
            return False
        self.store[key] = json.loads(json.dumps(updated))
        self.ttls[key] = ttl
        return True

    def ops(self, op: str) -> list[str]:
        """Keys touched by op, in call order."""
        return [key for name, key in self.calls if name == op]


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'bookstore.db'}",
        redis_enabled=False,
        image_base_url="http://images.test",
    )


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
async def container(settings: Settings, cache: InMemoryCache) -> AsyncIterator[BookstoreContainer]:
    """Container over a fresh schema and the in-memory cache."""
    c = BookstoreContainer(settings, cache=cache)
    await c.create_schema()
    yield c
    await c.shutdown()


@pytest.fixture
async def user(container: BookstoreContainer) -> UserResult:
    result = await container.users.register(
        RegisterUserRequest(
            first_name="Ada",
            last_name="Reader",
            email="ada@example.com",
            password_hash="hashed-secret",
        )
    )
    assert result.is_success, result.message
    return result.data


@pytest.fixture
async def other_user(container: BookstoreContainer) -> UserResult:
    result = await container.users.register(
        RegisterUserRequest(
            first_name="Bo",
            last_name="Buyer",
            email="bo@example.com",
            password_hash="hashed-other",
        )
    )
    assert result.is_success, result.message
    return result.data


@pytest.fixture
def make_book(container: BookstoreContainer, user: UserResult):
    """Factory: add a book listed by user and return it."""

    async def _make(
        name: str = "Dune",
        quantity: int = 5,
        price: float = 499.0,
        author_id: int | None = None,
    ) -> BookResult:
        result = await container.books.add_book(
            author_id if author_id is not None else user.id,
            AddBookRequest(
                book_name=name,
                author_name="Frank Herbert",
                description="Desert planet",
                quantity=quantity,
                price=price,
            ),
            "dune.jpg",
        )
        assert result.is_success, result.message
        return result.data

    return _make


@pytest.fixture
async def book(make_book) -> BookResult:
    return await make_book()
