"""Cart repository. Lines are soft-removed (is_uncarted) and never deleted here.

cart:{userId} holds the active lines joined with book data; cartuser:{cartId}
holds a single row. Every write invalidates both; a re-add changes an
existing row, so its committed state is not overwritten into the cache.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.application.dtos.cart import (
    AddCartRequest,
    CartItemResult,
    CartLineResult,
    UpdateCartRequest,
)
from bookstore.application.dtos.result import OperationResult
from bookstore.domain.exceptions import NotFoundException
from bookstore.infrastructure.cache.codec import CacheCodec
from bookstore.infrastructure.cache.keys import cart_item_key, cart_key
from bookstore.infrastructure.persistence.models import Book, CartItem
from bookstore.infrastructure.persistence.repositories.cache_aside import (
    CacheAction,
    CacheAsideRepository,
    Invalidate,
)
from bookstore.shared.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

CART_ITEM_NOT_FOUND = "Cart item not found"
CART_EMPTY = "No items found in cart"
INVALID_QUANTITY = "Invalid quantity"

_CART_ITEM_CODEC: CacheCodec[CartItemResult] = CacheCodec(CartItemResult)
_CART_LINES_CODEC: CacheCodec[list[CartLineResult]] = CacheCodec(list[CartLineResult])


def cart_item_to_result(item: CartItem) -> CartItemResult:
    return CartItemResult(
        id=item.id,
        user_id=item.user_id,
        book_id=item.book_id,
        quantity=item.quantity,
        is_ordered=item.is_ordered,
        is_uncarted=item.is_uncarted,
        updated_at=ensure_utc(item.updated_at),
    )


def _cart_line(item: CartItem, book: Book) -> CartLineResult:
    return CartLineResult(
        cart_id=item.id,
        book_id=book.id,
        book_name=book.book_name,
        author_name=book.author_name,
        description=book.description,
        image=book.book_image,
        price=book.price,
        quantity=item.quantity,
    )


def _active_line(user_id: int, book_id: int):
    """Select the user's line for book_id that is in the cart and not yet ordered."""
    return select(CartItem).where(
        CartItem.user_id == user_id,
        CartItem.book_id == book_id,
        CartItem.is_ordered.is_(False),
        CartItem.is_uncarted.is_(False),
    )


def _invalidate_line(item: CartItemResult) -> list[CacheAction]:
    return [Invalidate(cart_key(item.user_id)), Invalidate(cart_item_key(item.id))]


class CartRepository(CacheAsideRepository):
    """Shopping cart per user."""

    async def add_to_cart(
        self, user_id: int, request: AddCartRequest
    ) -> OperationResult[CartItemResult]:
        """Add a book to the cart.

        A line already in the cart has its quantity increased. A line that
        was removed earlier (and never ordered) is reactivated with the
        requested quantity.
        """
        if request.quantity <= 0:
            return OperationResult.failure(INVALID_QUANTITY, "VALIDATION_ERROR")

        async def mutation(session: AsyncSession) -> CartItemResult:
            if await session.get(Book, request.book_id) is None:
                raise NotFoundException("Book Not Found", "book")
            result = await session.execute(
                select(CartItem)
                .where(
                    CartItem.user_id == user_id,
                    CartItem.book_id == request.book_id,
                    CartItem.is_ordered.is_(False),
                )
                .order_by(CartItem.id)
                .limit(1)
            )
            item = result.scalar_one_or_none()
            if item is None:
                item = CartItem(
                    user_id=user_id,
                    book_id=request.book_id,
                    quantity=request.quantity,
                    is_ordered=False,
                    is_uncarted=False,
                    updated_at=utc_now(),
                )
                session.add(item)
            elif item.is_uncarted:
                item.quantity = request.quantity
                item.is_uncarted = False
                item.updated_at = utc_now()
            else:
                item.quantity += request.quantity
                item.updated_at = utc_now()
            await session.flush()
            return cart_item_to_result(item)

        return await self._write(
            mutation, _invalidate_line, success_message="Item added/updated in cart successfully"
        )

    async def get_user_cart(self, user_id: int) -> OperationResult[list[CartLineResult]]:
        async def loader(session: AsyncSession) -> list[CartLineResult]:
            result = await session.execute(
                select(CartItem, Book)
                .join(Book, CartItem.book_id == Book.id)
                .where(
                    CartItem.user_id == user_id,
                    CartItem.is_ordered.is_(False),
                    CartItem.is_uncarted.is_(False),
                )
                .order_by(CartItem.id)
            )
            return [_cart_line(item, book) for item, book in result.all()]

        return await self._read_many(
            cart_key(user_id),
            _CART_LINES_CODEC,
            loader,
            label="Cart",
            empty_message=CART_EMPTY,
        )

    async def get_cart_item(self, cart_id: int) -> OperationResult[CartItemResult]:
        async def loader(session: AsyncSession) -> CartItemResult | None:
            item = await session.get(CartItem, cart_id)
            return cart_item_to_result(item) if item else None

        return await self._read_one(
            cart_item_key(cart_id),
            _CART_ITEM_CODEC,
            loader,
            label="Cart item",
            not_found_message=CART_ITEM_NOT_FOUND,
        )

    async def update_cart(
        self, user_id: int, request: UpdateCartRequest
    ) -> OperationResult[CartItemResult]:
        """Set the quantity of an active line."""
        if request.quantity <= 0:
            return OperationResult.failure(INVALID_QUANTITY, "VALIDATION_ERROR")

        async def mutation(session: AsyncSession) -> CartItemResult:
            result = await session.execute(_active_line(user_id, request.book_id))
            item = result.scalars().first()
            if item is None:
                raise NotFoundException(CART_ITEM_NOT_FOUND, "cart")
            item.quantity = request.quantity
            item.updated_at = utc_now()
            await session.flush()
            return cart_item_to_result(item)

        return await self._write(
            mutation, _invalidate_line, success_message="Cart item updated successfully"
        )

    async def remove_from_cart(self, user_id: int, book_id: int) -> OperationResult[CartItemResult]:
        async def mutation(session: AsyncSession) -> CartItemResult:
            result = await session.execute(_active_line(user_id, book_id))
            item = result.scalars().first()
            if item is None:
                raise NotFoundException(CART_ITEM_NOT_FOUND, "cart")
            item.is_uncarted = True
            item.updated_at = utc_now()
            await session.flush()
            return cart_item_to_result(item)

        return await self._write(
            mutation, _invalidate_line, success_message="Cart item removed successfully"
        )

    async def clear_cart(self, user_id: int) -> OperationResult[list[int]]:
        """Soft-remove every active line. Returns the affected cart ids."""

        async def mutation(session: AsyncSession) -> list[int]:
            result = await session.execute(
                select(CartItem).where(
                    CartItem.user_id == user_id,
                    CartItem.is_ordered.is_(False),
                    CartItem.is_uncarted.is_(False),
                )
            )
            items = list(result.scalars().all())
            if not items:
                raise NotFoundException(CART_EMPTY, "cart")
            now = utc_now()
            for item in items:
                item.is_uncarted = True
                item.updated_at = now
            await session.flush()
            logger.info("Cleared %d cart line(s) for user %s", len(items), user_id)
            return [item.id for item in items]

        def affected(cart_ids: list[int]) -> list[CacheAction]:
            return [Invalidate(cart_key(user_id))] + [
                Invalidate(cart_item_key(cart_id)) for cart_id in cart_ids
            ]

        return await self._write(mutation, affected, success_message="Cart cleared successfully")

