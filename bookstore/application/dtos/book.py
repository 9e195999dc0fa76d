"""DTOs for book operations (no dependency on ORM)."""

from dataclasses import dataclass


@dataclass(frozen=True)
class BookResult:
    """Book read-model. Cached under book:{id} and inside all_books."""

    id: int
    author_id: int | None
    book_name: str
    author_name: str
    description: str
    book_image: str
    quantity: int
    price: float


@dataclass(frozen=True)
class AddBookRequest:
    book_name: str
    author_name: str
    description: str
    quantity: int
    price: float


@dataclass(frozen=True)
class UpdateBookRequest:
    """Partial book update; None fields are left unchanged."""

    quantity: int | None = None
    price: float | None = None
    description: str | None = None
