"""Redis-backed CacheProtocol implementation for the cache-aside repositories.

Values are stored as JSON strings under the bookstore key scheme with a
per-entry TTL (SETEX). A dropped connection gets one reconnect attempt;
when Redis stays unreachable, or answers with an error, the call raises
TransientCacheError and the repository degrades to the durable store.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import redis.asyncio as redis

from bookstore.core.config import Settings, get_settings
from bookstore.domain.exceptions import CacheDecodeError, TransientCacheError

logger = logging.getLogger(__name__)

# Optimistic retries for update() when another writer touches the watched key.
_MAX_WATCH_RETRIES = 5


class CacheService:
    """Async Redis cache with TTL.

    BookstoreContainer calls connect() on startup and disconnect() on
    shutdown. A client passed in (tests, DI) is treated as connected.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.redis = redis_client
        self.settings = settings or get_settings()
        self._connected = redis_client is not None

    def _new_client(self) -> redis.Redis:
        password = self.settings.redis_password
        return redis.Redis(
            host=self.settings.redis_host,
            port=self.settings.redis_port,
            db=self.settings.redis_db,
            password=password.get_secret_value() if password else None,
            decode_responses=True,
            socket_connect_timeout=self.settings.redis_socket_timeout,
            socket_timeout=self.settings.redis_socket_timeout,
            socket_keepalive=True,
        )

    async def connect(self) -> None:
        """Open the client and ping it. An unreachable server leaves the cache disabled."""
        if self.redis is not None:
            return
        client = self._new_client()
        try:
            await client.ping()
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning(
                "Redis at %s:%s unreachable (%s); running without cache",
                self.settings.redis_host,
                self.settings.redis_port,
                e,
            )
            await client.aclose()
            return
        self.redis = client
        self._connected = True
        logger.info("Redis cache connected: %s:%s", self.settings.redis_host, self.settings.redis_port)

    async def disconnect(self) -> None:
        if self.redis is None:
            return
        await self.redis.aclose()
        self.redis = None
        self._connected = False
        logger.info("Redis cache disconnected")

    async def _reconnect(self) -> bool:
        """Drop the current client and connect again. True when the new one answers."""
        stale, self.redis, self._connected = self.redis, None, False
        if stale is not None:
            try:
                await stale.aclose()
            except redis.RedisError:
                logger.debug("Ignoring error while closing stale Redis connection")
        await self.connect()
        return self.is_available()

    def is_available(self) -> bool:
        return self._connected and self.redis is not None

    async def _run[T](self, op: str, key: str, call: Callable[[redis.Redis], Awaitable[T]]) -> T:
        """Run call against the client, retrying once on a dropped connection.

        Raises:
            TransientCacheError: Redis unreachable after the retry, or it returned an error.
        """
        try:
            return await call(self.redis)
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning("Cache %s lost connection for %s; reconnecting", op, key)
            if not await self._reconnect():
                raise TransientCacheError(f"Redis unreachable during {op}", key) from e
        except redis.RedisError as e:
            logger.error("Cache %s failed for %s: %s", op, key, e)
            raise TransientCacheError(f"Redis {op} failed: {e}", key) from e
        try:
            return await call(self.redis)
        except redis.RedisError as e:
            logger.error("Cache %s failed for %s after reconnect: %s", op, key, e)
            raise TransientCacheError(f"Redis {op} failed after reconnect: {e}", key) from e

    async def get(self, key: str) -> Any | None:
        """Return the JSON-decoded value under key, or None.

        A stored value that is not JSON is deleted and reported as a miss.
        """
        if not self.is_available():
            return None
        raw = await self._run("get", key, lambda r: r.get(key))
        if raw is None:
            logger.debug("Cache MISS: %s", key)
            return None
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning("Cache entry for %s is not valid JSON; deleting", key)
            await self.delete(key)
            return None
        logger.debug("Cache HIT: %s", key)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store value as JSON for ttl seconds (default settings.cache_ttl_seconds)."""
        if not self.is_available():
            return False
        ttl = ttl or self.settings.cache_ttl_seconds
        payload = json.dumps(value)
        await self._run("set", key, lambda r: r.setex(key, ttl, payload))
        logger.debug("Cache SET: %s (TTL: %ss)", key, ttl)
        return True

    async def delete(self, key: str) -> bool:
        """Remove key. Removing an absent key succeeds."""
        if not self.is_available():
            return False
        await self._run("delete", key, lambda r: r.delete(key))
        logger.debug("Cache DELETE: %s", key)
        return True

    async def update(
        self, key: str, change: Callable[[Any | None], Any | None], ttl: int | None = None
    ) -> bool:
        """Replace the JSON value under key with change(current), atomically.

        Uses WATCH/MULTI: when another client writes key between the read and
        the EXEC, the transaction is discarded and change runs again on the
        fresh value. change returning None leaves key untouched.

        Raises:
            CacheDecodeError: the stored value is not JSON.
            TransientCacheError: Redis failed, or key kept changing under us.
        """
        if not self.is_available():
            return False
        ttl = ttl or self.settings.cache_ttl_seconds

        async def patch(r: redis.Redis) -> bool:
            async with r.pipeline(transaction=True) as pipe:
                for _ in range(_MAX_WATCH_RETRIES):
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    try:
                        current = json.loads(raw) if raw is not None else None
                    except ValueError as e:
                        raise CacheDecodeError(key, "not valid JSON") from e
                    updated = change(current)
                    if updated is None:
                        return False
                    pipe.multi()
                    pipe.setex(key, ttl, json.dumps(updated))
                    try:
                        await pipe.execute()
                    except redis.WatchError:
                        logger.debug("Cache UPDATE: %s changed concurrently; retrying", key)
                        continue
                    return True
            raise TransientCacheError(f"Gave up updating {key} after concurrent writes", key)

        stored = await self._run("update", key, patch)
        if stored:
            logger.debug("Cache UPDATE: %s (TTL: %ss)", key, ttl)
        return stored
