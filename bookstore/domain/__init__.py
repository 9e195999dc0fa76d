"""Domain layer: enums and exceptions.

No dependencies on infrastructure. Used by application and
infrastructure layers.
"""

from bookstore.domain.enums import AddressType
from bookstore.domain.exceptions import (
    BookstoreException,
    CacheDecodeError,
    ConflictException,
    DurableStoreError,
    NotFoundException,
    TransientCacheError,
    ValidationException,
)

__all__ = [
    "AddressType",
    "BookstoreException",
    "CacheDecodeError",
    "ConflictException",
    "DurableStoreError",
    "NotFoundException",
    "TransientCacheError",
    "ValidationException",
]
