"""DTOs for address operations (no dependency on ORM)."""

from dataclasses import dataclass

from bookstore.domain.enums import AddressType


@dataclass(frozen=True)
class AddressResult:
    """Address read-model. Cached inside UserAddress:{userId} and All_addresses."""

    id: int
    user_id: int
    first_name: str
    address: str
    city: str
    state: str
    address_type: AddressType
    locality: str
    phone_number: int


@dataclass(frozen=True)
class AddAddressRequest:
    first_name: str
    address: str
    city: str
    state: str
    address_type: AddressType
    locality: str
    phone_number: int


@dataclass(frozen=True)
class UpdateAddressRequest:
    """Fields a user may change on an existing address."""

    address_id: int
    city: str
    state: str
    address_type: AddressType
