"""Wishlist repository: User:{id}:WishList:Books and User:{id}:WishList:Count."""

from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.application.dtos.book import BookResult
from bookstore.application.dtos.result import OperationResult
from bookstore.application.dtos.wishlist import WishListEntryResult
from bookstore.domain.exceptions import ConflictException, NotFoundException
from bookstore.infrastructure.cache.codec import CacheCodec
from bookstore.infrastructure.cache.keys import wishlist_books_key, wishlist_count_key
from bookstore.infrastructure.persistence.models import Book, WishListItem
from bookstore.infrastructure.persistence.repositories.book_repo import book_to_result
from bookstore.infrastructure.persistence.repositories.cache_aside import (
    CacheAction,
    CacheAsideRepository,
    Invalidate,
)

ALREADY_LISTED = "Book already exists in the wishlist."
NOT_LISTED = "Book not found in the wishlist."

_BOOKS_CODEC: CacheCodec[list[BookResult]] = CacheCodec(list[BookResult])
_COUNT_CODEC: CacheCodec[int] = CacheCodec(int)


def _invalidate_wishlist(user_id: int) -> list[CacheAction]:
    return [Invalidate(wishlist_books_key(user_id)), Invalidate(wishlist_count_key(user_id))]


class WishListRepository(CacheAsideRepository):
    """Books a user wants. Both keys are invalidated on every write."""

    async def add_book(self, user_id: int, book_id: int) -> OperationResult[WishListEntryResult]:
        async def mutation(session: AsyncSession) -> WishListEntryResult:
            if await session.get(Book, book_id) is None:
                raise NotFoundException("Book Not Found", "book")
            existing = await session.execute(
                select(WishListItem.id).where(
                    WishListItem.user_id == user_id, WishListItem.book_id == book_id
                )
            )
            if existing.scalar_one_or_none() is not None:
                raise ConflictException(ALREADY_LISTED, book_id=book_id)
            item = WishListItem(user_id=user_id, book_id=book_id)
            session.add(item)
            try:
                await session.flush()
            except IntegrityError as e:
                raise ConflictException(ALREADY_LISTED, book_id=book_id) from e
            return WishListEntryResult(id=item.id, user_id=user_id, book_id=book_id)

        return await self._write(
            mutation,
            lambda _: _invalidate_wishlist(user_id),
            success_message="Book added to wishlist successfully.",
        )

    async def remove_book(self, user_id: int, book_id: int) -> OperationResult[WishListEntryResult]:
        async def mutation(session: AsyncSession) -> WishListEntryResult:
            result = await session.execute(
                select(WishListItem).where(
                    WishListItem.user_id == user_id, WishListItem.book_id == book_id
                )
            )
            item = result.scalar_one_or_none()
            if item is None:
                raise NotFoundException(NOT_LISTED, "wishlist")
            removed = WishListEntryResult(id=item.id, user_id=user_id, book_id=book_id)
            await session.delete(item)
            return removed

        return await self._write(
            mutation,
            lambda _: _invalidate_wishlist(user_id),
            success_message="Book removed from wishlist successfully.",
        )

    async def get_books(self, user_id: int) -> OperationResult[list[BookResult]]:
        async def loader(session: AsyncSession) -> list[BookResult]:
            result = await session.execute(
                select(Book)
                .join(WishListItem, WishListItem.book_id == Book.id)
                .where(WishListItem.user_id == user_id)
                .order_by(WishListItem.id)
            )
            return [book_to_result(b) for b in result.scalars().all()]

        return await self._read_many(
            wishlist_books_key(user_id),
            _BOOKS_CODEC,
            loader,
            label="Wishlist books",
            empty_message="No books found in wishlist.",
        )

    async def get_count(self, user_id: int) -> OperationResult[int]:
        """Number of books on the wishlist. Zero is a value and is cached like any other."""

        async def loader(session: AsyncSession) -> int:
            result = await session.execute(
                select(func.count(WishListItem.id)).where(WishListItem.user_id == user_id)
            )
            return int(result.scalar_one())

        return await self._read_one(
            wishlist_count_key(user_id),
            _COUNT_CODEC,
            loader,
            label="Wishlist count",
            not_found_message="No books found in wishlist.",
        )

    async def clear(self, user_id: int) -> OperationResult[int]:
        """Remove every wishlist row of the user. Returns how many were removed."""

        async def mutation(session: AsyncSession) -> int:
            result = await session.execute(
                delete(WishListItem).where(WishListItem.user_id == user_id)
            )
            if not result.rowcount:
                raise NotFoundException("No books found in the wishlist.", "wishlist")
            return result.rowcount

        return await self._write(
            mutation,
            lambda _: _invalidate_wishlist(user_id),
            success_message="Wishlist cleared successfully.",
        )
