"""ORM models. Importing this package registers every table on Base.metadata."""

from bookstore.infrastructure.persistence.models.address import Address
from bookstore.infrastructure.persistence.models.book import Book
from bookstore.infrastructure.persistence.models.cart import CartItem
from bookstore.infrastructure.persistence.models.order import Order
from bookstore.infrastructure.persistence.models.user import User
from bookstore.infrastructure.persistence.models.wishlist import WishListItem

__all__ = [
    "Address",
    "Book",
    "CartItem",
    "Order",
    "User",
    "WishListItem",
]
