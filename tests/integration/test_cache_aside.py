"""CacheAsideRepository: read-through, write-through, and aggregate actions over SQLite."""

import asyncio

import pytest
from sqlalchemy import select

from bookstore.application.dtos import BookResult
from bookstore.core.constants import SOURCE_CACHE, SOURCE_STORE
from bookstore.domain.exceptions import DurableStoreError, NotFoundException
from bookstore.infrastructure.cache.codec import CacheCodec
from bookstore.infrastructure.persistence.models import Book
from bookstore.infrastructure.persistence.repositories import (
    CacheAsideRepository,
    Invalidate,
    Overwrite,
    RemoveFromAggregate,
    UpsertInAggregate,
)
from bookstore.infrastructure.persistence.repositories.book_repo import book_to_result

CODEC = CacheCodec(BookResult)
LIST_CODEC = CacheCodec(list[BookResult])


@pytest.fixture
def adapter(container, cache, settings) -> CacheAsideRepository:
    return CacheAsideRepository(container.session_factory, cache, settings=settings)


def counting_loader(book_id: int):
    calls = []

    async def loader(session):
        calls.append(book_id)
        book = await session.get(Book, book_id)
        return book_to_result(book) if book else None

    return loader, calls


async def test_miss_loads_from_store_and_populates_cache(adapter, cache, book) -> None:
    cache.store.clear()
    loader, calls = counting_loader(book.id)

    read = await adapter.read_through(f"book:{book.id}", CODEC, loader)

    assert read.source == SOURCE_STORE
    assert read.value == book
    assert calls == [book.id]
    assert cache.ttls[f"book:{book.id}"] == 1800
    assert CODEC.decode(cache.store[f"book:{book.id}"]) == book


async def test_hit_skips_store_and_equals_cold_read(adapter, cache, book) -> None:
    cache.store.clear()
    loader, calls = counting_loader(book.id)

    cold = await adapter.read_through(f"book:{book.id}", CODEC, loader)
    warm = await adapter.read_through(f"book:{book.id}", CODEC, loader)

    assert warm.source == SOURCE_CACHE
    assert warm.value == cold.value
    assert len(calls) == 1


async def test_absent_record_is_not_cached(adapter, cache) -> None:
    loader, _ = counting_loader(404)
    with pytest.raises(NotFoundException, match="Book Not Found"):
        await adapter.read_through("book:404", CODEC, loader, not_found_message="Book Not Found")
    assert "book:404" not in cache.store


async def test_corrupt_entry_self_heals(adapter, cache, book) -> None:
    """A payload that does not decode is deleted and replaced from the store."""
    key = f"book:{book.id}"
    cache.store[key] = {"v": 1, "data": {"unexpected": True}}
    loader, calls = counting_loader(book.id)

    read = await adapter.read_through(key, CODEC, loader)

    assert read.source == SOURCE_STORE
    assert read.value == book
    assert key in cache.ops("delete")
    assert CODEC.decode(cache.store[key]) == book


async def test_cache_errors_fall_back_to_store(adapter, cache, book) -> None:
    cache.fail_ops = {"get", "set"}
    loader, _ = counting_loader(book.id)

    read = await adapter.read_through(f"book:{book.id}", CODEC, loader)

    assert read.source == SOURCE_STORE
    assert read.value == book


async def test_unavailable_cache_is_bypassed(adapter, cache, book) -> None:
    cache.available = False
    cache.calls.clear()
    loader, _ = counting_loader(book.id)

    read = await adapter.read_through(f"book:{book.id}", CODEC, loader)

    assert read.source == SOURCE_STORE
    assert cache.calls == []


async def test_slow_cache_counts_as_miss(container, cache, settings, book) -> None:
    class SlowCache(type(cache)):
        async def get(self, key):
            await asyncio.sleep(1)
            return await super().get(key)

    slow = SlowCache()
    adapter = CacheAsideRepository(
        container.session_factory,
        slow,
        settings=settings.model_copy(update={"cache_timeout_seconds": 0.01}),
    )
    loader, _ = counting_loader(book.id)

    read = await adapter.read_through(f"book:{book.id}", CODEC, loader)

    assert read.source == SOURCE_STORE


async def test_slow_store_read_is_a_durable_store_error(container, cache, settings) -> None:
    adapter = CacheAsideRepository(
        container.session_factory,
        cache,
        settings=settings.model_copy(update={"store_timeout_seconds": 0.01}),
    )

    async def loader(session):
        await asyncio.sleep(1)

    with pytest.raises(DurableStoreError, match="timed out"):
        await adapter.read_through("book:1", CODEC, loader)


async def test_failed_mutation_rolls_back_and_touches_no_key(adapter, cache, book) -> None:
    """An exception after partial changes leaves store and cache untouched."""
    cache.calls.clear()

    async def mutation(session):
        row = await session.get(Book, book.id)
        row.quantity = 0
        session.add(
            Book(book_name="Half written", author_name="x", description="", quantity=1, price=1)
        )
        await session.flush()
        raise RuntimeError("crash between steps")

    def affected(_):
        raise AssertionError("cache actions must not run after a rollback")

    with pytest.raises(DurableStoreError, match="crash between steps"):
        await adapter.write_through(mutation, affected)

    assert cache.calls == []
    async with adapter.session_factory() as session:
        assert (await session.get(Book, book.id)).quantity == book.quantity
        names = (await session.execute(select(Book.book_name))).scalars().all()
    assert "Half written" not in names


async def test_precondition_failure_propagates_unchanged(adapter, cache) -> None:
    cache.calls.clear()

    async def mutation(session):
        raise NotFoundException("Book Not Found")

    with pytest.raises(NotFoundException):
        await adapter.write_through(mutation, lambda _: [Invalidate("book:1")])
    assert cache.calls == []


async def test_cache_failure_after_commit_keeps_the_write(adapter, cache, book) -> None:
    cache.fail_ops = {"delete"}

    async def mutation(session):
        row = await session.get(Book, book.id)
        row.quantity = 1
        return row.id

    result = await adapter.write_through(mutation, lambda _: [Invalidate(f"book:{book.id}")])

    assert result == book.id
    async with adapter.session_factory() as session:
        assert (await session.get(Book, book.id)).quantity == 1


async def test_actions_run_after_commit_in_order(adapter, cache, book) -> None:
    cache.calls.clear()
    cache.store["book:404"] = {"stale": True}

    async def mutation(session):
        return book

    await adapter.write_through(
        mutation,
        lambda b: [Invalidate("book:404"), Overwrite(f"book:{b.id}", CODEC, b)],
    )

    assert cache.calls == [("delete", "book:404"), ("set", f"book:{book.id}")]
    assert CODEC.decode(cache.store[f"book:{book.id}"]) == book


async def test_invalidation_is_idempotent(adapter, cache) -> None:
    await adapter.apply_cache_actions([Invalidate("book:404"), Invalidate("book:404")])
    assert cache.ops("delete") == ["book:404", "book:404"]


async def test_absent_aggregate_stays_absent(adapter, cache, book) -> None:
    cache.store.pop("all_books", None)
    await adapter.apply_cache_actions(
        [UpsertInAggregate("all_books", LIST_CODEC, book, lambda b: b.id)]
    )
    assert "all_books" not in cache.store


async def test_aggregate_upsert_and_remove(adapter, cache, book) -> None:
    other = BookResult(
        id=99,
        author_id=None,
        book_name="Other",
        author_name="",
        description="",
        book_image="",
        quantity=1,
        price=1.0,
    )
    cache.store["all_books"] = LIST_CODEC.encode([book])

    await adapter.apply_cache_actions(
        [UpsertInAggregate("all_books", LIST_CODEC, other, lambda b: b.id)]
    )
    assert LIST_CODEC.decode(cache.store["all_books"]) == [book, other]

    await adapter.apply_cache_actions(
        [RemoveFromAggregate("all_books", LIST_CODEC, book.id, lambda b: b.id)]
    )
    assert LIST_CODEC.decode(cache.store["all_books"]) == [other]


async def test_corrupt_aggregate_is_deleted_not_patched(adapter, cache, book) -> None:
    cache.store["all_books"] = "garbage"
    await adapter.apply_cache_actions(
        [UpsertInAggregate("all_books", LIST_CODEC, book, lambda b: b.id)]
    )
    assert "all_books" not in cache.store


async def test_unavailable_cache_skips_actions(adapter, cache) -> None:
    cache.available = False
    cache.calls.clear()
    await adapter.apply_cache_actions([Invalidate("book:1")])
    assert cache.calls == []


def yielding(cache):
    """A cache like cache that gives up the event loop inside get and set."""

    class YieldingCache(type(cache)):
        async def get(self, key):
            await asyncio.sleep(0.01)
            return await super().get(key)

        async def set(self, key, value, ttl):
            await asyncio.sleep(0.01)
            return await super().set(key, value, ttl)

    return YieldingCache()


def catalogue_entry(book_id: int) -> BookResult:
    return BookResult(
        id=book_id,
        author_id=None,
        book_name=f"Book {book_id}",
        author_name="",
        description="",
        book_image="",
        quantity=1,
        price=1.0,
    )


async def test_concurrent_aggregate_patches_keep_every_entry(
    container, cache, settings, book
) -> None:
    slow = yielding(cache)
    slow.store["all_books"] = LIST_CODEC.encode([book])
    adapter = CacheAsideRepository(container.session_factory, slow, settings=settings)
    added = [catalogue_entry(101), catalogue_entry(102)]

    await asyncio.gather(
        *(
            adapter.apply_cache_actions(
                [UpsertInAggregate("all_books", LIST_CODEC, entry, lambda b: b.id)]
            )
            for entry in added
        )
    )

    ids = [b.id for b in LIST_CODEC.decode(slow.store["all_books"])]
    assert sorted(ids) == sorted([book.id, 101, 102])


async def test_failed_aggregate_patch_deletes_the_entry(adapter, cache, book) -> None:
    cache.store["all_books"] = LIST_CODEC.encode([book])
    cache.fail_ops = {"update"}

    await adapter.apply_cache_actions(
        [RemoveFromAggregate("all_books", LIST_CODEC, book.id, lambda b: b.id)]
    )

    assert "all_books" not in cache.store


async def test_failing_affected_keeps_the_committed_write(adapter, cache, book) -> None:
    cache.calls.clear()

    async def mutation(session):
        row = await session.get(Book, book.id)
        row.quantity = 2
        return row.id

    def affected(_):
        raise ValueError("cannot build a key for this row")

    result = await adapter.write_through(mutation, affected)

    assert result == book.id
    assert cache.calls == []
    async with adapter.session_factory() as session:
        assert (await session.get(Book, book.id)).quantity == 2


async def test_unencodable_action_is_dropped_and_the_rest_still_run(
    adapter, cache, book
) -> None:
    class BrokenCodec:
        def encode(self, value):
            raise RuntimeError("cannot serialise")

    cache.store[f"book:{book.id}"] = {"stale": True}
    cache.calls.clear()

    await adapter.apply_cache_actions(
        [
            Overwrite(f"book:{book.id}", BrokenCodec(), book),
            Invalidate("book:404"),
        ]
    )

    assert f"book:{book.id}" not in cache.store
    assert cache.ops("delete") == [f"book:{book.id}", "book:404"]
