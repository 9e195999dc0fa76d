"""DTOs for wishlist operations (no dependency on ORM)."""

from dataclasses import dataclass


@dataclass(frozen=True)
class WishListEntryResult:
    """One wishlist row. Wishlist reads return the listed books (BookResult)."""

    id: int
    user_id: int
    book_id: int
