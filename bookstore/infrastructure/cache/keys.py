"""Cache key builders. Single place for key format.

Format is "<EntityKind><Separator><Scope>" and matches the existing cache
population exactly, so prefixes keep their original casing. String scope
components (emails) must not contain CACHE_KEY_SEP, which would let two
distinct queries collide.
"""

from bookstore.core.constants import (
    CACHE_KEY_ALL_ADDRESSES,
    CACHE_KEY_ALL_BOOKS,
    CACHE_KEY_ALL_ORDERS,
    CACHE_KEY_ALL_USERS,
    CACHE_KEY_SEP,
    CACHE_PREFIX_BOOK,
    CACHE_PREFIX_CART,
    CACHE_PREFIX_CART_ITEM,
    CACHE_PREFIX_USER,
    CACHE_PREFIX_USER_ADDRESS,
    CACHE_PREFIX_USER_ORDERS,
    CACHE_PREFIX_WISHLIST_OWNER,
    CACHE_SUFFIX_WISHLIST_BOOKS,
    CACHE_SUFFIX_WISHLIST_COUNT,
)


def _validate_key_component(value: str, name: str) -> None:
    """Raise ValueError if value is empty or contains the cache key separator.

    Args:
        value: String component used in a cache key.
        name: Name of the component (for error message).

    Raises:
        ValueError: If value is empty or contains CACHE_KEY_SEP.
    """
    if not value:
        raise ValueError(f"Cache key component {name!r} must not be empty")
    if CACHE_KEY_SEP in value:
        raise ValueError(
            f"Cache key component {name!r} must not contain separator {CACHE_KEY_SEP!r}"
        )


def _validate_id(value: int, name: str) -> None:
    # bool is an int subclass; True would render as "True".
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Cache key component {name!r} must be an int, got {value!r}")


def book_key(book_id: int) -> str:
    """Cache key for a single book."""
    _validate_id(book_id, "book_id")
    return f"{CACHE_PREFIX_BOOK}{CACHE_KEY_SEP}{book_id}"


def all_books_key() -> str:
    """Aggregate key for every book."""
    return CACHE_KEY_ALL_BOOKS


def user_address_key(user_id: int) -> str:
    """Aggregate key for the addresses owned by one user."""
    _validate_id(user_id, "user_id")
    return f"{CACHE_PREFIX_USER_ADDRESS}{CACHE_KEY_SEP}{user_id}"


def all_addresses_key() -> str:
    """Aggregate key for every address."""
    return CACHE_KEY_ALL_ADDRESSES


def cart_key(user_id: int) -> str:
    """Aggregate key for a user's active cart lines."""
    _validate_id(user_id, "user_id")
    return f"{CACHE_PREFIX_CART}{CACHE_KEY_SEP}{user_id}"


def cart_item_key(cart_id: int) -> str:
    """Cache key for a single cart row."""
    _validate_id(cart_id, "cart_id")
    return f"{CACHE_PREFIX_CART_ITEM}{CACHE_KEY_SEP}{cart_id}"


def user_orders_key(user_id: int) -> str:
    """Aggregate key for a user's orders."""
    _validate_id(user_id, "user_id")
    return f"{CACHE_PREFIX_USER_ORDERS}{CACHE_KEY_SEP}{user_id}"


def all_orders_key() -> str:
    """Aggregate key for every order."""
    return CACHE_KEY_ALL_ORDERS


def wishlist_books_key(user_id: int) -> str:
    """Aggregate key for the books on a user's wishlist."""
    _validate_id(user_id, "user_id")
    return (
        f"{CACHE_PREFIX_WISHLIST_OWNER}{CACHE_KEY_SEP}{user_id}"
        f"{CACHE_KEY_SEP}{CACHE_SUFFIX_WISHLIST_BOOKS}"
    )


def wishlist_count_key(user_id: int) -> str:
    """Cache key for the number of books on a user's wishlist."""
    _validate_id(user_id, "user_id")
    return (
        f"{CACHE_PREFIX_WISHLIST_OWNER}{CACHE_KEY_SEP}{user_id}"
        f"{CACHE_KEY_SEP}{CACHE_SUFFIX_WISHLIST_COUNT}"
    )


def user_key(email: str) -> str:
    """Cache key for a user by email."""
    _validate_key_component(email, "email")
    return f"{CACHE_PREFIX_USER}{CACHE_KEY_SEP}{email}"


def all_users_key() -> str:
    """Aggregate key for every user."""
    return CACHE_KEY_ALL_USERS
