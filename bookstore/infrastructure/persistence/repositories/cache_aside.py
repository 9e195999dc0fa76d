"""Cache-aside repository adapter shared by every entity repository.

Reads: cache first, durable store on miss (or on a corrupt entry, which is
deleted), then populate the cache with the fixed TTL.

Writes: mutate the durable store inside a transaction, commit, and only
then apply cache actions (invalidate, overwrite, or atomically patch an
aggregate entry). A failure before commit rolls back and touches no cache
key; a cache failure after commit is logged and the committed write stands.

The cache is never a dependency for correctness: every cache call is
bounded by cache_timeout_seconds and any cache failure is treated as a
miss or a no-op.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookstore.application.dtos.result import OperationResult
from bookstore.core.config import Settings, get_settings
from bookstore.core.constants import SOURCE_CACHE, SOURCE_STORE
from bookstore.domain.exceptions import (
    BookstoreException,
    CacheDecodeError,
    DurableStoreError,
    NotFoundException,
    TransientCacheError,
)
from bookstore.infrastructure.cache.cache_protocol import CacheProtocol
from bookstore.infrastructure.cache.codec import CacheCodec
from bookstore.shared.telemetry.tracing import TracedOperation, add_span_attributes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheRead[T]:
    """Value returned by read_through and where it came from."""

    value: T
    source: str


@dataclass(frozen=True)
class Invalidate:
    """Delete key; the next read repopulates it from the store."""

    key: str


@dataclass(frozen=True)
class Overwrite:
    """Replace key with a value known to match the committed state."""

    key: str
    codec: CacheCodec[Any]
    value: Any


@dataclass(frozen=True)
class UpsertInAggregate:
    """Replace item in an aggregate entry by identity (first match), else append."""

    key: str
    codec: CacheCodec[Any]
    item: Any
    identity: Callable[[Any], Any]


@dataclass(frozen=True)
class RemoveFromAggregate:
    """Drop every element whose identity equals item_id from an aggregate entry."""

    key: str
    codec: CacheCodec[Any]
    item_id: Any
    identity: Callable[[Any], Any]


CacheAction = Invalidate | Overwrite | UpsertInAggregate | RemoveFromAggregate


def upsert_by_identity[T](
    items: Iterable[T], item: T, identity: Callable[[T], Any]
) -> list[T]:
    """Return items with the first element sharing item's identity replaced, or item appended."""
    target = identity(item)
    updated = list(items)
    for index, existing in enumerate(updated):
        if identity(existing) == target:
            updated[index] = item
            return updated
    updated.append(item)
    return updated


def remove_by_identity[T](
    items: Iterable[T], item_id: Any, identity: Callable[[T], Any]
) -> list[T]:
    """Return items without the elements whose identity equals item_id."""
    return [existing for existing in items if identity(existing) != item_id]


class CacheAsideRepository:
    """Base for repositories that front the durable store with a look-aside cache.

    Owns the mapping from logical queries to cache keys (through its
    subclasses); does not own the session factory or the cache client,
    whose lifecycle belongs to BookstoreContainer. Each read and each write
    opens its own session, so transactions are never shared.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: CacheProtocol | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.settings = settings
        self.session_factory = session_factory
        self.cache = cache
        self.cache_ttl = settings.cache_ttl_seconds
        self.cache_timeout = settings.cache_timeout_seconds
        self.store_timeout = settings.store_timeout_seconds

    # ---- cache primitives (never raise) ----

    def _cache_usable(self) -> bool:
        return self.cache is not None and self.cache.is_available()

    async def _cache_get(self, key: str) -> Any | None:
        if not self._cache_usable():
            return None
        try:
            async with asyncio.timeout(self.cache_timeout):
                return await self.cache.get(key)
        except TimeoutError:
            logger.warning("Cache get timed out for %s; treating as miss", key)
        except TransientCacheError as e:
            logger.warning("Cache get failed for %s; treating as miss: %s", key, e.message)
        return None

    async def _cache_set(self, key: str, payload: Any) -> bool:
        if not self._cache_usable():
            return False
        try:
            async with asyncio.timeout(self.cache_timeout):
                return bool(await self.cache.set(key, payload, ttl=self.cache_ttl))
        except TimeoutError:
            logger.warning("Cache set timed out for %s", key)
        except TransientCacheError as e:
            logger.warning("Cache set failed for %s: %s", key, e.message)
        return False

    async def _cache_delete(self, key: str) -> bool:
        if not self._cache_usable():
            return False
        try:
            async with asyncio.timeout(self.cache_timeout):
                return bool(await self.cache.delete(key))
        except TimeoutError:
            logger.warning("Cache delete timed out for %s", key)
        except TransientCacheError as e:
            logger.warning("Cache delete failed for %s: %s", key, e.message)
        return False

    async def _cache_update(self, key: str, change: Callable[[Any | None], Any | None]) -> bool:
        """Atomic read-modify-write of key. On any failure the key is deleted instead."""
        if not self._cache_usable():
            return False
        try:
            async with asyncio.timeout(self.cache_timeout):
                return bool(await self.cache.update(key, change, ttl=self.cache_ttl))
        except TimeoutError:
            logger.warning("Cache update timed out for %s; deleting", key)
        except CacheDecodeError as e:
            logger.warning("Stale cache entry %s (%s); deleting", key, e.details.get("reason"))
        except TransientCacheError as e:
            logger.warning("Cache update failed for %s; deleting: %s", key, e.message)
        await self._cache_delete(key)
        return False

    async def _read_cached[T](self, key: str, codec: CacheCodec[T]) -> tuple[bool, T | None]:
        """Return (hit, value). A payload that fails to decode is deleted and reported as a miss."""
        payload = await self._cache_get(key)
        if payload is None:
            return False, None
        try:
            return True, codec.decode(payload, key)
        except CacheDecodeError as e:
            logger.warning("Stale cache entry %s (%s); deleting", key, e.details.get("reason"))
            await self._cache_delete(key)
            return False, None

    # ---- durable store primitives ----

    async def _load[T](self, loader: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            async with asyncio.timeout(self.store_timeout):
                async with self.session_factory() as session:
                    return await loader(session)
        except BookstoreException:
            raise
        except TimeoutError as e:
            logger.error("Durable store read timed out after %ss", self.store_timeout)
            raise DurableStoreError("Durable store timed out") from e
        except SQLAlchemyError as e:
            logger.exception("Durable store read failed")
            raise DurableStoreError(str(e)) from e

    async def _commit[T](self, mutation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run mutation in a new transaction; commit on success, roll back on any exception."""
        try:
            async with asyncio.timeout(self.store_timeout):
                async with self.session_factory() as session:
                    async with session.begin():
                        result = await mutation(session)
                        await session.flush()
            return result
        except BookstoreException as e:
            logger.info("Write rejected (%s): %s", e.error_code, e.message)
            raise
        except TimeoutError as e:
            logger.error(
                "Durable store write timed out after %ss; rolled back", self.store_timeout
            )
            raise DurableStoreError("Durable store timed out") from e
        except SQLAlchemyError as e:
            logger.exception("Durable store write failed; rolled back")
            raise DurableStoreError(str(e)) from e
        except Exception as e:
            logger.exception("Write failed; rolled back")
            raise DurableStoreError(str(e) or e.__class__.__name__) from e

    # ---- cache-aside operations ----

    async def read_through[T](
        self,
        key: str,
        codec: CacheCodec[T],
        loader: Callable[[AsyncSession], Awaitable[T | None]],
        *,
        not_found_message: str = "Not found",
    ) -> CacheRead[T]:
        """Return the value for key from the cache, else from loader (then cache it).

        loader returning None means "no such record": nothing is cached and
        NotFoundException is raised. Any other value, including an empty
        list, is cached with the standard TTL.

        Raises:
            NotFoundException: loader found nothing.
            DurableStoreError: loader failed or timed out.
        """
        async with TracedOperation("cache_aside.read_through", {"cache.key": key}):
            hit, value = await self._read_cached(key, codec)
            if hit:
                logger.debug("Read %s from cache", key)
                add_span_attributes(**{"cache.source": SOURCE_CACHE})
                return CacheRead(value, SOURCE_CACHE)
            value = await self._load(loader)
            if value is None:
                raise NotFoundException(not_found_message)
            await self._cache_set(key, codec.encode(value))
            logger.debug("Read %s from store", key)
            add_span_attributes(**{"cache.source": SOURCE_STORE})
            return CacheRead(value, SOURCE_STORE)

    async def write_through[T](
        self,
        mutation: Callable[[AsyncSession], Awaitable[T]],
        affected: Callable[[T], Iterable[CacheAction]],
    ) -> T:
        """Commit mutation, then apply the cache actions affected(result) yields.

        mutation runs inside the transaction and raises a BookstoreException
        for failed preconditions. affected runs only after commit; if it
        fails, the error is logged and the committed result still returned.

        Raises:
            NotFoundException, ConflictException, ValidationException: precondition failed.
            DurableStoreError: the transaction failed and was rolled back.
        """
        async with TracedOperation("cache_aside.write_through"):
            result = await self._commit(mutation)
            try:
                actions = list(affected(result))
            except Exception:
                logger.exception("Could not derive cache actions after commit; cache left as is")
                return result
            await self.apply_cache_actions(actions)
            return result

    async def apply_cache_actions(self, actions: Iterable[CacheAction]) -> None:
        """Apply post-commit cache actions in order. Best effort; never raises.

        An action that fails (say, its value will not encode) is logged and
        its key deleted; the remaining actions still run.
        """
        actions = list(actions)
        if not actions:
            return
        if not self._cache_usable():
            logger.warning(
                "Cache unavailable; %d post-commit cache action(s) skipped", len(actions)
            )
            return
        for action in actions:
            try:
                await self._apply(action)
            except Exception:
                logger.exception("Cache action %r failed after commit", action)
                key = getattr(action, "key", None)
                if isinstance(key, str):
                    await self._cache_delete(key)

    async def _apply(self, action: CacheAction) -> None:
        if isinstance(action, Invalidate):
            await self._cache_delete(action.key)
        elif isinstance(action, Overwrite):
            await self._cache_set(action.key, action.codec.encode(action.value))
        elif isinstance(action, UpsertInAggregate):
            await self._rewrite_aggregate(
                action.key,
                action.codec,
                lambda items, a=action: upsert_by_identity(items, a.item, a.identity),
            )
        elif isinstance(action, RemoveFromAggregate):
            await self._rewrite_aggregate(
                action.key,
                action.codec,
                lambda items, a=action: remove_by_identity(items, a.item_id, a.identity),
            )
        else:
            raise TypeError(f"Unknown cache action: {action!r}")

    async def _rewrite_aggregate(
        self,
        key: str,
        codec: CacheCodec[Any],
        change: Callable[[list[Any]], list[Any]],
    ) -> None:
        """Patch a cached aggregate in place, in one atomic cache update.

        An absent aggregate stays absent: the next read-through rebuilds it
        from the store, which already holds the committed change. Concurrent
        patches of the same key are serialized by the cache, so none is lost.
        """

        def patch(payload: Any | None) -> Any | None:
            if payload is None:
                return None
            return codec.encode(change(codec.decode(payload, key)))

        await self._cache_update(key, patch)

    # ---- tagged-result helpers for subclasses ----

    async def _read_one[T](
        self,
        key: str,
        codec: CacheCodec[T],
        loader: Callable[[AsyncSession], Awaitable[T | None]],
        *,
        label: str,
        not_found_message: str,
    ) -> OperationResult[T]:
        try:
            read = await self.read_through(
                key, codec, loader, not_found_message=not_found_message
            )
        except BookstoreException as e:
            return OperationResult.from_exception(e)
        return OperationResult.success(f"{label} retrieved {read.source}", read.value, read.source)

    async def _read_many[T](
        self,
        key: str,
        codec: CacheCodec[list[T]],
        loader: Callable[[AsyncSession], Awaitable[list[T]]],
        *,
        label: str,
        empty_message: str,
    ) -> OperationResult[list[T]]:
        """Read an aggregate. An empty collection is cached, then reported as NOT_FOUND with data=[]."""
        try:
            read = await self.read_through(key, codec, loader)
        except BookstoreException as e:
            return OperationResult.from_exception(e, data=[])
        if not read.value:
            return OperationResult(
                is_success=False,
                message=empty_message,
                data=[],
                source=read.source,
                error_code="NOT_FOUND",
            )
        return OperationResult.success(f"{label} retrieved {read.source}", read.value, read.source)

    async def _write[T](
        self,
        mutation: Callable[[AsyncSession], Awaitable[T]],
        affected: Callable[[T], Iterable[CacheAction]],
        *,
        success_message: str,
    ) -> OperationResult[T]:
        try:
            result = await self.write_through(mutation, affected)
        except BookstoreException as e:
            return OperationResult.from_exception(e)
        return OperationResult.success(success_message, result)
