"""Domain enumerations for the bookstore."""

from enum import Enum


class AddressType(str, Enum):
    """Kind of a user address. A user holds at most one address per type."""

    HOME = "home"
    WORK = "work"
    OTHER = "other"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid address type values as strings."""
        return [address_type.value for address_type in cls]
