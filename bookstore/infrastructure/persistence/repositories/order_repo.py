"""Order repository. Placing an order touches books and the cart as well as orders."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.application.dtos.order import (
    CreateOrderRequest,
    OrderedBookResult,
    OrderResult,
)
from bookstore.application.dtos.result import OperationResult
from bookstore.domain.exceptions import (
    BookstoreException,
    ConflictException,
    NotFoundException,
)
from bookstore.infrastructure.cache.codec import CacheCodec
from bookstore.infrastructure.cache.keys import (
    all_books_key,
    all_orders_key,
    book_key,
    cart_item_key,
    cart_key,
    user_orders_key,
)
from bookstore.infrastructure.persistence.models import Address, Book, CartItem, Order
from bookstore.infrastructure.persistence.repositories.cache_aside import (
    CacheAction,
    CacheAsideRepository,
    Invalidate,
)
from bookstore.shared.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

_ORDERED_BOOKS_CODEC: CacheCodec[list[OrderedBookResult]] = CacheCodec(list[OrderedBookResult])


@dataclass(frozen=True)
class _PlacedOrder:
    order: OrderResult
    user_id: int
    cart_id: int | None


def _ordered_book(order: Order, book: Book) -> OrderedBookResult:
    return OrderedBookResult(
        order_id=order.id,
        user_id=order.user_id,
        address_id=order.address_id,
        book_id=book.id,
        book_name=book.book_name,
        author=book.author_name,
        book_image=book.book_image,
        price=book.price,
        ordered_quantity=order.quantity,
        ordered_date=ensure_utc(order.order_date),
    )


def _ordered_books_query():
    return select(Order, Book).join(Book, Order.book_id == Book.id).order_by(Order.id)


class OrderRepository(CacheAsideRepository):
    """Orders per user and across all users."""

    async def create_order(
        self, user_id: int, request: CreateOrderRequest
    ) -> OperationResult[OrderResult]:
        """Place an order for one book, shipped to one of the user's addresses.

        In one transaction: insert the order, decrement the book's stock,
        and mark the user's active cart line for the book as ordered.
        """
        if request.quantity <= 0:
            return OperationResult.failure("Invalid Quantity!", "VALIDATION_ERROR")

        async def mutation(session: AsyncSession) -> _PlacedOrder:
            book = await session.get(Book, request.book_id)
            if book is None or book.quantity == 0:
                raise ConflictException("Book Out Of Stock!", book_id=request.book_id)
            if request.quantity > book.quantity:
                raise ConflictException(
                    "Requested Quantity Not Available!",
                    book_id=request.book_id,
                    available=book.quantity,
                )
            address = await session.get(Address, request.address_id)
            if address is None or address.user_id != user_id:
                raise NotFoundException("Address Not Available!", "address")

            # Conditional decrement: a concurrent order may have taken the
            # stock since it was read above.
            reserved = await session.execute(
                update(Book)
                .where(Book.id == book.id, Book.quantity >= request.quantity)
                .values(quantity=Book.quantity - request.quantity)
                .execution_options(synchronize_session=False)
            )
            if reserved.rowcount == 0:
                raise ConflictException(
                    "Requested Quantity Not Available!", book_id=request.book_id
                )

            order = Order(
                user_id=user_id,
                address_id=address.id,
                book_id=book.id,
                quantity=request.quantity,
                order_date=utc_now(),
            )
            session.add(order)

            result = await session.execute(
                select(CartItem)
                .where(
                    CartItem.user_id == user_id,
                    CartItem.book_id == book.id,
                    CartItem.is_ordered.is_(False),
                    CartItem.is_uncarted.is_(False),
                )
                .order_by(CartItem.id)
                .limit(1)
            )
            cart_item = result.scalar_one_or_none()
            if cart_item is not None:
                cart_item.is_ordered = True
                cart_item.is_uncarted = True
                cart_item.updated_at = utc_now()

            await session.flush()
            logger.info(
                "Order %s placed by user %s for book %s (qty %s)",
                order.id,
                user_id,
                book.id,
                request.quantity,
            )
            return _PlacedOrder(
                order=OrderResult(
                    order_id=order.id,
                    book_id=book.id,
                    address_id=address.id,
                    quantity=order.quantity,
                    order_date=ensure_utc(order.order_date),
                ),
                user_id=user_id,
                cart_id=cart_item.id if cart_item is not None else None,
            )

        def affected(placed: _PlacedOrder) -> list[CacheAction]:
            actions: list[CacheAction] = [
                Invalidate(user_orders_key(placed.user_id)),
                Invalidate(all_orders_key()),
                Invalidate(book_key(placed.order.book_id)),
                Invalidate(all_books_key()),
                Invalidate(cart_key(placed.user_id)),
            ]
            if placed.cart_id is not None:
                actions.append(Invalidate(cart_item_key(placed.cart_id)))
            return actions

        try:
            placed = await self.write_through(mutation, affected)
        except BookstoreException as e:
            return OperationResult.from_exception(e)
        return OperationResult.success("Order Placed Successfully!", placed.order)

    async def get_user_orders(self, user_id: int) -> OperationResult[list[OrderedBookResult]]:
        async def loader(session: AsyncSession) -> list[OrderedBookResult]:
            result = await session.execute(_ordered_books_query().where(Order.user_id == user_id))
            return [_ordered_book(order, book) for order, book in result.all()]

        return await self._read_many(
            user_orders_key(user_id),
            _ORDERED_BOOKS_CODEC,
            loader,
            label="Orders",
            empty_message="No Orders Found!",
        )

    async def get_all_orders(self) -> OperationResult[list[OrderedBookResult]]:
        async def loader(session: AsyncSession) -> list[OrderedBookResult]:
            result = await session.execute(_ordered_books_query())
            return [_ordered_book(order, book) for order, book in result.all()]

        return await self._read_many(
            all_orders_key(),
            _ORDERED_BOOKS_CODEC,
            loader,
            label="Orders",
            empty_message="No Orders Found!",
        )
