"""Persistence repositories. Re-exports for the container and callers."""

from bookstore.infrastructure.persistence.repositories.address_repo import AddressRepository
from bookstore.infrastructure.persistence.repositories.book_repo import BookRepository
from bookstore.infrastructure.persistence.repositories.cache_aside import (
    CacheAction,
    CacheAsideRepository,
    CacheRead,
    Invalidate,
    Overwrite,
    RemoveFromAggregate,
    UpsertInAggregate,
)
from bookstore.infrastructure.persistence.repositories.cart_repo import CartRepository
from bookstore.infrastructure.persistence.repositories.order_repo import OrderRepository
from bookstore.infrastructure.persistence.repositories.user_repo import UserRepository
from bookstore.infrastructure.persistence.repositories.wishlist_repo import (
    WishListRepository,
)

__all__ = [
    "AddressRepository",
    "BookRepository",
    "CacheAction",
    "CacheAsideRepository",
    "CacheRead",
    "CartRepository",
    "Invalidate",
    "OrderRepository",
    "Overwrite",
    "RemoveFromAggregate",
    "UpsertInAggregate",
    "UserRepository",
    "WishListRepository",
]
