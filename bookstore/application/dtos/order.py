"""DTOs for order operations (no dependency on ORM)."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class CreateOrderRequest:
    book_id: int
    address_id: int
    quantity: int


@dataclass(frozen=True)
class OrderResult:
    """Result of create_order."""

    order_id: int
    book_id: int
    address_id: int
    quantity: int
    order_date: datetime
    is_ordered: bool = True


@dataclass(frozen=True)
class OrderedBookResult:
    """Order joined with its book. Cached inside UserOrders:{userId} and AllUserOrders."""

    order_id: int
    user_id: int
    address_id: int | None
    book_id: int
    book_name: str
    author: str
    book_image: str
    price: float
    ordered_quantity: int
    ordered_date: datetime
