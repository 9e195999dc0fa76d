"""Book repository: catalogue reads through book:{id} and all_books."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.application.dtos.book import AddBookRequest, BookResult, UpdateBookRequest
from bookstore.application.dtos.result import OperationResult
from bookstore.domain.exceptions import (
    BookstoreException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from bookstore.infrastructure.cache.codec import CacheCodec
from bookstore.infrastructure.cache.keys import (
    all_books_key,
    all_orders_key,
    book_key,
    cart_item_key,
    cart_key,
    user_orders_key,
    wishlist_books_key,
    wishlist_count_key,
)
from bookstore.infrastructure.persistence.models import Book, CartItem, Order, WishListItem
from bookstore.infrastructure.persistence.repositories.cache_aside import (
    CacheAction,
    CacheAsideRepository,
    Invalidate,
    Overwrite,
    RemoveFromAggregate,
    UpsertInAggregate,
)

BOOK_NOT_FOUND = "Book Not Found"

_BOOK_CODEC: CacheCodec[BookResult] = CacheCodec(BookResult)
_BOOKS_CODEC: CacheCodec[list[BookResult]] = CacheCodec(list[BookResult])


def _book_id(book: BookResult) -> int:
    return book.id


def book_to_result(book: Book) -> BookResult:
    """Map ORM Book to application BookResult."""
    return BookResult(
        id=book.id,
        author_id=book.author_id,
        book_name=book.book_name,
        author_name=book.author_name,
        description=book.description,
        book_image=book.book_image,
        quantity=book.quantity,
        price=book.price,
    )


@dataclass(frozen=True)
class _BookDependents:
    """Rows in other aggregates that show a book, collected inside the transaction."""

    book: BookResult
    cart_lines: list[tuple[int, int]] = field(default_factory=list)
    order_user_ids: set[int] = field(default_factory=set)
    wishlist_user_ids: set[int] = field(default_factory=set)

    def invalidations(self, *, row_keys: bool) -> list[CacheAction]:
        """Keys of the carts, orders and wishlists that embed this book.

        row_keys adds cartuser:{cartId} and the wishlist counts, which only
        change when the book's rows are deleted.
        """
        actions: list[CacheAction] = []
        for user_id in sorted({user_id for _, user_id in self.cart_lines}):
            actions.append(Invalidate(cart_key(user_id)))
        if row_keys:
            actions.extend(Invalidate(cart_item_key(cart_id)) for cart_id, _ in self.cart_lines)
        for user_id in sorted(self.order_user_ids):
            actions.append(Invalidate(user_orders_key(user_id)))
        if self.order_user_ids:
            actions.append(Invalidate(all_orders_key()))
        for user_id in sorted(self.wishlist_user_ids):
            actions.append(Invalidate(wishlist_books_key(user_id)))
            if row_keys:
                actions.append(Invalidate(wishlist_count_key(user_id)))
        return actions


async def _collect_dependents(session: AsyncSession, book: Book) -> _BookDependents:
    carts = await session.execute(
        select(CartItem.id, CartItem.user_id).where(CartItem.book_id == book.id)
    )
    orders = await session.execute(select(Order.user_id).where(Order.book_id == book.id))
    wishes = await session.execute(
        select(WishListItem.user_id).where(WishListItem.book_id == book.id)
    )
    return _BookDependents(
        book=book_to_result(book),
        cart_lines=[(cart_id, user_id) for cart_id, user_id in carts.all()],
        order_user_ids=set(orders.scalars().all()),
        wishlist_user_ids=set(wishes.scalars().all()),
    )


class BookRepository(CacheAsideRepository):
    """Books. New books overwrite their key and join all_books; edits invalidate."""

    def image_url(self, file_name: str) -> str:
        return f"{self.settings.image_base_url}/bookstore/images/{file_name}"

    async def add_book(
        self, author_id: int, request: AddBookRequest, image_file_name: str
    ) -> OperationResult[BookResult]:
        """Create a book listed by author_id. Title must be unique."""
        if not image_file_name:
            return OperationResult.failure("Image file is required", "VALIDATION_ERROR")
        if request.quantity < 0:
            return OperationResult.failure("Invalid quantity", "VALIDATION_ERROR")

        async def mutation(session: AsyncSession) -> BookResult:
            existing = await session.execute(
                select(Book.id).where(Book.book_name == request.book_name)
            )
            if existing.scalar_one_or_none() is not None:
                raise ConflictException(
                    f"Book titled '{request.book_name}' already exists!",
                    book_name=request.book_name,
                )
            book = Book(
                author_id=author_id,
                book_name=request.book_name,
                author_name=request.author_name,
                description=request.description,
                book_image=self.image_url(image_file_name),
                quantity=request.quantity,
                price=request.price,
            )
            session.add(book)
            try:
                await session.flush()
            except IntegrityError as e:
                raise ConflictException(
                    f"Book titled '{request.book_name}' already exists!",
                    book_name=request.book_name,
                ) from e
            return book_to_result(book)

        def affected(book: BookResult) -> list[CacheAction]:
            return [
                Overwrite(book_key(book.id), _BOOK_CODEC, book),
                UpsertInAggregate(all_books_key(), _BOOKS_CODEC, book, _book_id),
            ]

        return await self._write(mutation, affected, success_message="Book added successfully")

    async def get_book(self, book_id: int) -> OperationResult[BookResult]:
        async def loader(session: AsyncSession) -> BookResult | None:
            book = await session.get(Book, book_id)
            return book_to_result(book) if book else None

        return await self._read_one(
            book_key(book_id),
            _BOOK_CODEC,
            loader,
            label="Book",
            not_found_message=BOOK_NOT_FOUND,
        )

    async def get_all_books(self) -> OperationResult[list[BookResult]]:
        async def loader(session: AsyncSession) -> list[BookResult]:
            result = await session.execute(select(Book).order_by(Book.id))
            return [book_to_result(b) for b in result.scalars().all()]

        return await self._read_many(
            all_books_key(),
            _BOOKS_CODEC,
            loader,
            label="Books",
            empty_message="No books found",
        )

    async def update_book(
        self, book_id: int, request: UpdateBookRequest
    ) -> OperationResult[BookResult]:
        """Apply the non-None fields of request.

        Cached copies are invalidated, not patched: book:{id}, all_books,
        and every cart, order list and wishlist that embeds the book.
        """
        if request.quantity is not None and request.quantity < 0:
            return OperationResult.failure("Invalid quantity", "VALIDATION_ERROR")

        async def mutation(session: AsyncSession) -> _BookDependents:
            book = await session.get(Book, book_id)
            if book is None:
                raise NotFoundException(BOOK_NOT_FOUND, "book")
            if request.price is not None:
                if request.price < 0:
                    raise ValidationException("Invalid price", "price")
                book.price = request.price
            if request.quantity is not None:
                book.quantity = request.quantity
            if request.description is not None:
                book.description = request.description
            await session.flush()
            return await _collect_dependents(session, book)

        def affected(updated: _BookDependents) -> list[CacheAction]:
            return [
                Invalidate(book_key(book_id)),
                Invalidate(all_books_key()),
            ] + updated.invalidations(row_keys=False)

        try:
            updated = await self.write_through(mutation, affected)
        except BookstoreException as e:
            return OperationResult.from_exception(e)
        return OperationResult.success("Book updated successfully", updated.book)

    async def delete_book(self, book_id: int) -> OperationResult[BookResult]:
        """Delete a book. Its cart lines, orders and wishlist rows go with it."""

        async def mutation(session: AsyncSession) -> _BookDependents:
            book = await session.get(Book, book_id)
            if book is None:
                raise NotFoundException(BOOK_NOT_FOUND, "book")
            deleted = await _collect_dependents(session, book)
            await session.execute(delete(Book).where(Book.id == book_id))
            return deleted

        def affected(deleted: _BookDependents) -> list[CacheAction]:
            return [
                Invalidate(book_key(book_id)),
                RemoveFromAggregate(all_books_key(), _BOOKS_CODEC, book_id, _book_id),
            ] + deleted.invalidations(row_keys=True)

        try:
            deleted = await self.write_through(mutation, affected)
        except BookstoreException as e:
            return OperationResult.from_exception(e)
        return OperationResult.success("Book deleted successfully", deleted.book)
