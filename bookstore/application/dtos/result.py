"""Tagged operation result returned across the repository boundary."""

from __future__ import annotations

from dataclasses import dataclass

from bookstore.domain.exceptions import BookstoreException


@dataclass(frozen=True)
class OperationResult[T]:
    """Success flag + message + optional payload.

    source is "from cache" or "from store" for reads, None for writes and
    failures. error_code is set only on failures (NOT_FOUND, CONFLICT,
    VALIDATION_ERROR, DURABLE_STORE_ERROR).
    """

    is_success: bool
    message: str
    data: T | None = None
    source: str | None = None
    error_code: str | None = None

    @classmethod
    def success(
        cls, message: str, data: T | None = None, source: str | None = None
    ) -> OperationResult[T]:
        return cls(is_success=True, message=message, data=data, source=source)

    @classmethod
    def failure(
        cls, message: str, error_code: str | None = None, data: T | None = None
    ) -> OperationResult[T]:
        return cls(is_success=False, message=message, data=data, error_code=error_code)

    @classmethod
    def from_exception(
        cls, exc: BookstoreException, data: T | None = None
    ) -> OperationResult[T]:
        """Convert a domain exception into a failure result (message and code preserved)."""
        return cls.failure(exc.message, error_code=exc.error_code, data=data)
