"""Cache: Redis service, cache protocol, typed codec, and key builders.

Used by the cache-aside repositories. Key format lives in keys.py.
"""

from bookstore.infrastructure.cache.cache_protocol import CacheProtocol
from bookstore.infrastructure.cache.codec import CacheCodec
from bookstore.infrastructure.cache.keys import (
    all_addresses_key,
    all_books_key,
    all_orders_key,
    all_users_key,
    book_key,
    cart_item_key,
    cart_key,
    user_address_key,
    user_key,
    user_orders_key,
    wishlist_books_key,
    wishlist_count_key,
)
from bookstore.infrastructure.cache.redis_cache import CacheService

__all__ = [
    "CacheCodec",
    "CacheProtocol",
    "CacheService",
    "all_addresses_key",
    "all_books_key",
    "all_orders_key",
    "all_users_key",
    "book_key",
    "cart_item_key",
    "cart_key",
    "user_address_key",
    "user_key",
    "user_orders_key",
    "wishlist_books_key",
    "wishlist_count_key",
]
