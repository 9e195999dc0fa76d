"""DTOs for cart operations (no dependency on ORM)."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class CartItemResult:
    """Single cart row. Cached under cartuser:{cartId}."""

    id: int
    user_id: int
    book_id: int
    quantity: int
    is_ordered: bool
    is_uncarted: bool
    updated_at: datetime


@dataclass(frozen=True)
class CartLineResult:
    """Active cart line joined with its book. Cached inside cart:{userId}."""

    cart_id: int
    book_id: int
    book_name: str
    author_name: str
    description: str
    image: str
    price: float
    quantity: int


@dataclass(frozen=True)
class AddCartRequest:
    book_id: int
    quantity: int


@dataclass(frozen=True)
class UpdateCartRequest:
    book_id: int
    quantity: int
