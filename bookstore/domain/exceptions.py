"""Domain exceptions for the bookstore.

Raised inside the repository layer and converted to tagged
OperationResult failures at the repository boundary; callers never see
them as exceptions.
"""

from typing import Any


class BookstoreException(Exception):
    """Base exception for all bookstore errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. resource id, key).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class NotFoundException(BookstoreException):
    """Raised when the durable store holds no matching record (or an empty collection)."""

    def __init__(self, message: str, resource_type: str | None = None) -> None:
        """Initialize with a message and optional resource type.

        Args:
            message: Human-readable message surfaced to the caller.
            resource_type: Optional kind of resource (e.g. 'book').
        """
        details = {"resource_type": resource_type} if resource_type else {}
        super().__init__(message, "NOT_FOUND", details)


class ConflictException(BookstoreException):
    """Raised when a business precondition fails before any mutation.

    Examples: duplicate address type, duplicate book title, duplicate
    wishlist entry, insufficient stock.
    """

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message, "CONFLICT", details)


class ValidationException(BookstoreException):
    """Raised when an input value is out of range (e.g. non-positive quantity)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class DurableStoreError(BookstoreException):
    """Raised when the durable store fails mid-operation; the transaction is rolled back."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "DURABLE_STORE_ERROR")


class TransientCacheError(BookstoreException):
    """Raised by cache backends when the cache is unreachable.

    Always recoverable: the read path falls back to the durable store and
    the write path proceeds past the failed cache step.
    """

    def __init__(self, message: str = "Cache unavailable", key: str | None = None) -> None:
        details = {"key": key} if key else {}
        super().__init__(message, "CACHE_UNAVAILABLE", details)


class CacheDecodeError(TransientCacheError):
    """Raised when a cached payload cannot be decoded into its expected type."""

    def __init__(self, key: str | None, reason: str) -> None:
        super().__init__(f"Cached payload could not be decoded: {reason}", key)
        self.error_code = "CACHE_DECODE_ERROR"
        self.details["reason"] = reason
