"""Cache protocol for the repository layer. Redis implementation in redis_cache.py."""

from collections.abc import Callable
from typing import Any, Protocol


class CacheProtocol(Protocol):
    """Protocol for cache backends used by the cache-aside adapter.

    Values are JSON-compatible. Implementations either degrade silently
    (return None / False) or raise TransientCacheError when the backend is
    unreachable; the adapter tolerates both.
    """

    def is_available(self) -> bool:
        """Return True if cache is connected and usable."""
        ...

    async def get(self, key: str) -> Any:
        """Return cached value or None."""
        ...

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """Store value with TTL in seconds."""
        ...

    async def delete(self, key: str) -> bool:
        """Remove key from cache. Deleting an absent key is not an error."""
        ...

    async def update(
        self, key: str, change: Callable[[Any | None], Any | None], ttl: int
    ) -> bool:
        """Atomically replace the value under key with change(current).

        change receives the current value (None when absent) and returns the
        new value, or None to leave the key untouched. No other writer may
        interleave between the read and the write. Exceptions raised by
        change propagate. Returns True when a new value was stored.
        """
        ...
