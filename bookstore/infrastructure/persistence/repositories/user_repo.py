"""User repository. Cached users never carry the password hash."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.application.dtos.result import OperationResult
from bookstore.application.dtos.user import RegisterUserRequest, UserResult
from bookstore.domain.exceptions import (
    BookstoreException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from bookstore.infrastructure.cache.codec import CacheCodec
from bookstore.infrastructure.cache.keys import (
    all_addresses_key,
    all_books_key,
    all_orders_key,
    all_users_key,
    book_key,
    cart_item_key,
    cart_key,
    user_address_key,
    user_key,
    user_orders_key,
    wishlist_books_key,
    wishlist_count_key,
)
from bookstore.infrastructure.persistence.models import (
    Address,
    Book,
    CartItem,
    Order,
    User,
    WishListItem,
)
from bookstore.infrastructure.persistence.repositories.cache_aside import (
    CacheAction,
    CacheAsideRepository,
    Invalidate,
    Overwrite,
    RemoveFromAggregate,
)

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "User not found! Please register first."
USER_NOT_REGISTERED = "User not registered! Please register first."

_USER_CODEC: CacheCodec[UserResult] = CacheCodec(UserResult)
_USERS_CODEC: CacheCodec[list[UserResult]] = CacheCodec(list[UserResult])


def _user_id(user: UserResult) -> int:
    return user.id


def _email_key(email: str) -> str:
    """user:{email}, or ValidationException when email cannot be a key component."""
    try:
        return user_key(email)
    except ValueError as e:
        raise ValidationException(str(e), "email") from e


def _user_to_result(u: User) -> UserResult:
    return UserResult(id=u.id, first_name=u.first_name, last_name=u.last_name, email=u.email)


@dataclass(frozen=True)
class _UserDeletion:
    """Rows that disappear or change with the user, collected before the delete."""

    user: UserResult
    had_addresses: bool = False
    had_orders: bool = False
    cart_ids: list[int] = field(default_factory=list)
    authored_book_ids: list[int] = field(default_factory=list)
    # Other users whose wishlists show one of the authored books.
    wishlist_user_ids: set[int] = field(default_factory=set)


class UserRepository(CacheAsideRepository):
    """Registered users, keyed in the cache by email."""

    async def register(self, request: RegisterUserRequest) -> OperationResult[UserResult]:
        """Create a user. request.password_hash is stored as given."""
        if not request.password_hash:
            return OperationResult.failure("Password hash is required", "VALIDATION_ERROR")
        # Emails are cache key scope; reject ones that cannot form a key before writing.
        try:
            _email_key(request.email)
        except ValidationException as e:
            return OperationResult.from_exception(e)

        async def mutation(session: AsyncSession) -> UserResult:
            existing = await session.execute(select(User.id).where(User.email == request.email))
            if existing.scalar_one_or_none() is not None:
                raise ConflictException("User already exists with this email!", email=request.email)
            user = User(
                first_name=request.first_name,
                last_name=request.last_name,
                email=request.email,
                password_hash=request.password_hash,
            )
            session.add(user)
            try:
                await session.flush()
            except IntegrityError as e:
                raise ConflictException(
                    "User already exists with this email!", email=request.email
                ) from e
            logger.info("User %s registered", user.id)
            return _user_to_result(user)

        def affected(user: UserResult) -> list[CacheAction]:
            return [Overwrite(user_key(user.email), _USER_CODEC, user), Invalidate(all_users_key())]

        return await self._write(mutation, affected, success_message="User registered successfully!")

    async def get_by_email(self, email: str) -> OperationResult[UserResult]:
        try:
            key = _email_key(email)
        except ValidationException as e:
            return OperationResult.from_exception(e)

        async def loader(session: AsyncSession) -> UserResult | None:
            result = await session.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()
            return _user_to_result(user) if user else None

        return await self._read_one(
            key,
            _USER_CODEC,
            loader,
            label="User",
            not_found_message=USER_NOT_FOUND,
        )

    async def get_password_hash(self, email: str) -> OperationResult[str]:
        """Stored password hash for email. Always read from the durable store."""

        async def loader(session: AsyncSession) -> str | None:
            result = await session.execute(select(User.password_hash).where(User.email == email))
            return result.scalar_one_or_none()

        try:
            password_hash = await self._load(loader)
        except BookstoreException as e:
            return OperationResult.from_exception(e)
        if password_hash is None:
            return OperationResult.failure(USER_NOT_FOUND, "NOT_FOUND")
        return OperationResult.success("Password hash retrieved", password_hash)

    async def update_password(
        self, email: str, new_password_hash: str
    ) -> OperationResult[UserResult]:
        if not new_password_hash:
            return OperationResult.failure("Password hash is required", "VALIDATION_ERROR")

        async def mutation(session: AsyncSession) -> UserResult:
            result = await session.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()
            if user is None:
                raise NotFoundException(USER_NOT_REGISTERED, "user")
            user.password_hash = new_password_hash
            await session.flush()
            return _user_to_result(user)

        def affected(user: UserResult) -> list[CacheAction]:
            return [Invalidate(user_key(user.email)), Invalidate(all_users_key())]

        return await self._write(mutation, affected, success_message="Password reset successfully!")

    async def delete_user(self, email: str) -> OperationResult[UserResult]:
        """Delete a user.

        Addresses, cart lines, orders and wishlist rows cascade in the store
        and books the user listed lose their author_id, so every cache key
        that could show those rows is invalidated after commit.
        """

        async def mutation(session: AsyncSession) -> _UserDeletion:
            result = await session.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()
            if user is None:
                raise NotFoundException(USER_NOT_REGISTERED, "user")
            address_ids = await session.execute(
                select(Address.id).where(Address.user_id == user.id).limit(1)
            )
            order_ids = await session.execute(
                select(Order.id).where(Order.user_id == user.id).limit(1)
            )
            cart_ids = await session.execute(
                select(CartItem.id).where(CartItem.user_id == user.id)
            )
            book_ids = await session.execute(select(Book.id).where(Book.author_id == user.id))
            authored = list(book_ids.scalars().all())
            wishers: set[int] = set()
            if authored:
                wish_rows = await session.execute(
                    select(WishListItem.user_id).where(
                        WishListItem.book_id.in_(authored), WishListItem.user_id != user.id
                    )
                )
                wishers = set(wish_rows.scalars().all())
            deletion = _UserDeletion(
                user=_user_to_result(user),
                had_addresses=address_ids.scalar_one_or_none() is not None,
                had_orders=order_ids.scalar_one_or_none() is not None,
                cart_ids=list(cart_ids.scalars().all()),
                authored_book_ids=authored,
                wishlist_user_ids=wishers,
            )
            await session.execute(delete(User).where(User.id == user.id))
            return deletion

        def affected(deletion: _UserDeletion) -> list[CacheAction]:
            user = deletion.user
            actions: list[CacheAction] = [
                Invalidate(user_key(user.email)),
                RemoveFromAggregate(all_users_key(), _USERS_CODEC, user.id, _user_id),
                Invalidate(user_address_key(user.id)),
                Invalidate(cart_key(user.id)),
                Invalidate(user_orders_key(user.id)),
                Invalidate(wishlist_books_key(user.id)),
                Invalidate(wishlist_count_key(user.id)),
            ]
            if deletion.had_addresses:
                actions.append(Invalidate(all_addresses_key()))
            if deletion.had_orders:
                actions.append(Invalidate(all_orders_key()))
            actions.extend(Invalidate(cart_item_key(cart_id)) for cart_id in deletion.cart_ids)
            if deletion.authored_book_ids:
                actions.extend(Invalidate(book_key(b)) for b in deletion.authored_book_ids)
                actions.append(Invalidate(all_books_key()))
            for other in sorted(deletion.wishlist_user_ids):
                actions.append(Invalidate(wishlist_books_key(other)))
            return actions

        try:
            deletion = await self.write_through(mutation, affected)
        except BookstoreException as e:
            return OperationResult.from_exception(e)
        logger.info("User %s deleted", deletion.user.id)
        return OperationResult.success("User deleted successfully!", deletion.user)

    async def get_all_users(self) -> OperationResult[list[UserResult]]:
        async def loader(session: AsyncSession) -> list[UserResult]:
            result = await session.execute(select(User).order_by(User.id))
            return [_user_to_result(u) for u in result.scalars().all()]

        return await self._read_many(
            all_users_key(),
            _USERS_CODEC,
            loader,
            label="Users",
            empty_message="No users found!",
        )
