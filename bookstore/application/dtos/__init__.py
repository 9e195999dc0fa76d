"""Application DTOs: read models, request inputs, and the tagged OperationResult."""

from bookstore.application.dtos.address import (
    AddAddressRequest,
    AddressResult,
    UpdateAddressRequest,
)
from bookstore.application.dtos.book import AddBookRequest, BookResult, UpdateBookRequest
from bookstore.application.dtos.cart import (
    AddCartRequest,
    CartItemResult,
    CartLineResult,
    UpdateCartRequest,
)
from bookstore.application.dtos.order import (
    CreateOrderRequest,
    OrderedBookResult,
    OrderResult,
)
from bookstore.application.dtos.result import OperationResult
from bookstore.application.dtos.user import RegisterUserRequest, UserResult
from bookstore.application.dtos.wishlist import WishListEntryResult

__all__ = [
    "AddAddressRequest",
    "AddBookRequest",
    "AddCartRequest",
    "AddressResult",
    "BookResult",
    "CartItemResult",
    "CartLineResult",
    "CreateOrderRequest",
    "OperationResult",
    "OrderResult",
    "OrderedBookResult",
    "RegisterUserRequest",
    "UpdateAddressRequest",
    "UpdateBookRequest",
    "UpdateCartRequest",
    "UserResult",
    "WishListEntryResult",
]
