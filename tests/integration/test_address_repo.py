"""Address repository integration tests: aggregates are patched in place, atomically."""

import asyncio

import pytest

from bookstore.application.dtos import (
    AddAddressRequest,
    CreateOrderRequest,
    UpdateAddressRequest,
)
from bookstore.core.constants import SOURCE_CACHE, SOURCE_STORE
from bookstore.domain.enums import AddressType
from bookstore.infrastructure.persistence.repositories import AddressRepository


def home(**overrides) -> AddAddressRequest:
    fields = {
        "first_name": "Ada",
        "address": "12 Analytical Row",
        "city": "London",
        "state": "LDN",
        "address_type": AddressType.HOME,
        "locality": "Marylebone",
        "phone_number": 4420700000,
    }
    fields.update(overrides)
    return AddAddressRequest(**fields)


@pytest.fixture
async def address(container, user):
    result = await container.addresses.add_address(user.id, home())
    assert result.is_success, result.message
    return result.data


async def test_add_address(container, user) -> None:
    result = await container.addresses.add_address(user.id, home())
    assert result.is_success
    assert result.message == "Address added successfully."
    assert result.data.address_type == AddressType.HOME


async def test_one_address_per_type(container, user, address) -> None:
    result = await container.addresses.add_address(user.id, home(city="Leeds"))
    assert not result.is_success
    assert result.error_code == "CONFLICT"
    assert result.message == "Address already exists for this address type."


async def test_added_address_joins_cached_aggregates(container, cache, user, address) -> None:
    await container.addresses.get_user_addresses(user.id)
    await container.addresses.get_all_addresses()

    work = await container.addresses.add_address(
        user.id, home(address_type=AddressType.WORK, city="Cambridge")
    )

    mine = await container.addresses.get_user_addresses(user.id)
    everyone = await container.addresses.get_all_addresses()
    assert mine.source == SOURCE_CACHE
    assert everyone.source == SOURCE_CACHE
    assert [a.id for a in mine.data] == [address.id, work.data.id]
    assert [a.id for a in everyone.data] == [address.id, work.data.id]


async def test_update_replaces_the_cached_entry(container, cache, user, address) -> None:
    await container.addresses.get_user_addresses(user.id)

    result = await container.addresses.update_address(
        user.id,
        UpdateAddressRequest(
            address_id=address.id, city="Bath", state="SOM", address_type=AddressType.OTHER
        ),
    )

    assert result.message == "Address updated successfully."
    read = await container.addresses.get_user_addresses(user.id)
    assert read.source == SOURCE_CACHE
    assert len(read.data) == 1
    assert read.data[0].city == "Bath"
    assert read.data[0].address_type == AddressType.OTHER
    # the aggregate that was never read stays absent
    assert "All_addresses" not in cache.store


async def test_update_someone_elses_address_is_not_found(
    container, other_user, address
) -> None:
    result = await container.addresses.update_address(
        other_user.id,
        UpdateAddressRequest(
            address_id=address.id, city="Bath", state="SOM", address_type=AddressType.HOME
        ),
    )
    assert result.error_code == "NOT_FOUND"
    assert result.message == "Address not found."


async def test_update_to_a_taken_type_conflicts(container, user, address) -> None:
    work = await container.addresses.add_address(user.id, home(address_type=AddressType.WORK))
    result = await container.addresses.update_address(
        user.id,
        UpdateAddressRequest(
            address_id=work.data.id, city="X", state="Y", address_type=AddressType.HOME
        ),
    )
    assert result.error_code == "CONFLICT"


async def test_delete_removes_from_cached_aggregates(container, cache, user, address) -> None:
    await container.addresses.get_user_addresses(user.id)
    await container.addresses.get_all_addresses()

    result = await container.addresses.delete_address(user.id, address.id)

    assert result.message == "Address deleted successfully."
    mine = await container.addresses.get_user_addresses(user.id)
    assert mine.source == SOURCE_CACHE
    assert mine.data == []
    assert mine.message == "No addresses found."
    everyone = await container.addresses.get_all_addresses()
    assert everyone.data == []


async def test_delete_shipped_address_invalidates_orders(
    container, cache, user, address, book
) -> None:
    placed = await container.orders.create_order(
        user.id, CreateOrderRequest(book_id=book.id, address_id=address.id, quantity=1)
    )
    assert placed.is_success
    await container.orders.get_user_orders(user.id)
    assert f"UserOrders:{user.id}" in cache.store

    await container.addresses.delete_address(user.id, address.id)

    assert f"UserOrders:{user.id}" not in cache.store
    orders = await container.orders.get_user_orders(user.id)
    assert orders.source == SOURCE_STORE
    assert orders.data[0].address_id is None


async def test_no_addresses(container, user) -> None:
    result = await container.addresses.get_user_addresses(user.id)
    assert not result.is_success
    assert result.error_code == "NOT_FOUND"
    assert result.data == []


async def test_concurrent_adds_all_reach_the_cached_aggregate(
    container, cache, settings, user, other_user
) -> None:
    """Two users add addresses at once while cache round trips yield to each other."""

    class YieldingCache(type(cache)):
        async def get(self, key):
            await asyncio.sleep(0.01)
            return await super().get(key)

        async def set(self, key, value, ttl):
            await asyncio.sleep(0.01)
            return await super().set(key, value, ttl)

    addresses = AddressRepository(container.session_factory, YieldingCache(), settings=settings)
    assert (await addresses.get_all_addresses()).data == []

    added = await asyncio.gather(
        addresses.add_address(user.id, home()),
        addresses.add_address(other_user.id, home(first_name="Bo", city="York")),
    )

    everyone = await addresses.get_all_addresses()
    assert everyone.source == SOURCE_CACHE
    assert sorted(a.id for a in everyone.data) == sorted(r.data.id for r in added)
