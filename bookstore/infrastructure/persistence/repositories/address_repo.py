"""Address repository. Maintains UserAddress:{userId} and All_addresses in place."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.application.dtos.address import (
    AddAddressRequest,
    AddressResult,
    UpdateAddressRequest,
)
from bookstore.application.dtos.result import OperationResult
from bookstore.domain.enums import AddressType
from bookstore.domain.exceptions import BookstoreException, ConflictException, NotFoundException
from bookstore.infrastructure.cache.codec import CacheCodec
from bookstore.infrastructure.cache.keys import (
    all_addresses_key,
    all_orders_key,
    user_address_key,
    user_orders_key,
)
from bookstore.infrastructure.persistence.models import Address, Order
from bookstore.infrastructure.persistence.repositories.cache_aside import (
    CacheAction,
    CacheAsideRepository,
    Invalidate,
    RemoveFromAggregate,
    UpsertInAggregate,
)

logger = logging.getLogger(__name__)

ADDRESS_EXISTS = "Address already exists for this address type."
ADDRESS_NOT_FOUND = "Address not found."

_ADDRESSES_CODEC: CacheCodec[list[AddressResult]] = CacheCodec(list[AddressResult])


def _address_id(address: AddressResult) -> int:
    return address.id


def _address_to_result(a: Address) -> AddressResult:
    return AddressResult(
        id=a.id,
        user_id=a.user_id,
        first_name=a.first_name,
        address=a.address,
        city=a.city,
        state=a.state,
        address_type=AddressType(a.address_type),
        locality=a.locality,
        phone_number=a.phone_number,
    )


def _upsert_everywhere(address: AddressResult) -> list[CacheAction]:
    return [
        UpsertInAggregate(
            user_address_key(address.user_id), _ADDRESSES_CODEC, address, _address_id
        ),
        UpsertInAggregate(all_addresses_key(), _ADDRESSES_CODEC, address, _address_id),
    ]


async def _type_taken(
    session: AsyncSession, user_id: int, address_type: AddressType, exclude_id: int | None = None
) -> bool:
    stmt = select(Address.id).where(
        Address.user_id == user_id, Address.address_type == address_type.value
    )
    if exclude_id is not None:
        stmt = stmt.where(Address.id != exclude_id)
    result = await session.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


class AddressRepository(CacheAsideRepository):
    """Delivery addresses, one per (user, address type)."""

    async def add_address(
        self, user_id: int, request: AddAddressRequest
    ) -> OperationResult[AddressResult]:
        async def mutation(session: AsyncSession) -> AddressResult:
            if await _type_taken(session, user_id, request.address_type):
                raise ConflictException(ADDRESS_EXISTS, address_type=request.address_type.value)
            address = Address(
                user_id=user_id,
                first_name=request.first_name,
                address=request.address,
                city=request.city,
                state=request.state,
                address_type=request.address_type.value,
                locality=request.locality,
                phone_number=request.phone_number,
            )
            session.add(address)
            try:
                await session.flush()
            except IntegrityError as e:
                raise ConflictException(
                    ADDRESS_EXISTS, address_type=request.address_type.value
                ) from e
            logger.info("Address %s added for user %s", address.id, user_id)
            return _address_to_result(address)

        return await self._write(
            mutation, _upsert_everywhere, success_message="Address added successfully."
        )

    async def get_user_addresses(self, user_id: int) -> OperationResult[list[AddressResult]]:
        """Addresses owned by user_id (owner-scoped aggregate)."""

        async def loader(session: AsyncSession) -> list[AddressResult]:
            result = await session.execute(
                select(Address).where(Address.user_id == user_id).order_by(Address.id)
            )
            return [_address_to_result(a) for a in result.scalars().all()]

        return await self._read_many(
            user_address_key(user_id),
            _ADDRESSES_CODEC,
            loader,
            label="Addresses",
            empty_message="No addresses found.",
        )

    async def get_all_addresses(self) -> OperationResult[list[AddressResult]]:
        async def loader(session: AsyncSession) -> list[AddressResult]:
            result = await session.execute(select(Address).order_by(Address.id))
            return [_address_to_result(a) for a in result.scalars().all()]

        return await self._read_many(
            all_addresses_key(),
            _ADDRESSES_CODEC,
            loader,
            label="Addresses",
            empty_message="No addresses found.",
        )

    async def update_address(
        self, user_id: int, request: UpdateAddressRequest
    ) -> OperationResult[AddressResult]:
        """Change city, state and type of an address owned by user_id."""

        async def mutation(session: AsyncSession) -> AddressResult:
            address = await session.get(Address, request.address_id)
            if address is None or address.user_id != user_id:
                raise NotFoundException(ADDRESS_NOT_FOUND, "address")
            if request.address_type.value != address.address_type and await _type_taken(
                session, user_id, request.address_type, exclude_id=address.id
            ):
                raise ConflictException(ADDRESS_EXISTS, address_type=request.address_type.value)
            address.city = request.city
            address.state = request.state
            address.address_type = request.address_type.value
            await session.flush()
            return _address_to_result(address)

        return await self._write(
            mutation, _upsert_everywhere, success_message="Address updated successfully."
        )

    async def delete_address(self, user_id: int, address_id: int) -> OperationResult[AddressResult]:
        """Delete an address. Orders shipped to it keep their row with address_id unset."""

        async def mutation(session: AsyncSession) -> tuple[AddressResult, bool]:
            address = await session.get(Address, address_id)
            if address is None or address.user_id != user_id:
                raise NotFoundException(ADDRESS_NOT_FOUND, "address")
            shipped = await session.execute(
                select(Order.id).where(Order.address_id == address_id).limit(1)
            )
            deleted = _address_to_result(address)
            await session.delete(address)
            return deleted, shipped.scalar_one_or_none() is not None

        def affected(outcome: tuple[AddressResult, bool]) -> list[CacheAction]:
            address, had_orders = outcome
            actions: list[CacheAction] = [
                RemoveFromAggregate(
                    user_address_key(user_id), _ADDRESSES_CODEC, address.id, _address_id
                ),
                RemoveFromAggregate(all_addresses_key(), _ADDRESSES_CODEC, address.id, _address_id),
            ]
            if had_orders:
                actions.append(Invalidate(user_orders_key(user_id)))
                actions.append(Invalidate(all_orders_key()))
            return actions

        try:
            address, _ = await self.write_through(mutation, affected)
        except BookstoreException as e:
            return OperationResult.from_exception(e)
        return OperationResult.success("Address deleted successfully.", address)
