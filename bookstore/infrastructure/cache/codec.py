"""Typed, versioned encoding of cached payloads.

Each entry is stored as {"v": CACHE_SCHEMA_VERSION, "data": ...}. Decoding
validates both the version and the shape with a pydantic TypeAdapter, so a
stale or foreign payload fails loudly instead of producing a half-built
object.
"""

from typing import Any

from pydantic import TypeAdapter, ValidationError

from bookstore.core.constants import CACHE_SCHEMA_VERSION
from bookstore.domain.exceptions import CacheDecodeError

_VERSION_FIELD = "v"
_DATA_FIELD = "data"


class CacheCodec[T]:
    """Encode values of type T to JSON-compatible envelopes and back."""

    def __init__(self, type_: Any, version: int = CACHE_SCHEMA_VERSION) -> None:
        self.adapter: TypeAdapter[T] = TypeAdapter(type_)
        self.version = version

    def encode(self, value: T) -> dict[str, Any]:
        """Return the envelope for value (datetimes as ISO strings, enums as values)."""
        return {
            _VERSION_FIELD: self.version,
            _DATA_FIELD: self.adapter.dump_python(value, mode="json"),
        }

    def decode(self, payload: Any, key: str | None = None) -> T:
        """Return the typed value from an envelope.

        Raises:
            CacheDecodeError: Envelope missing, version mismatch, or shape invalid.
        """
        if not isinstance(payload, dict) or _DATA_FIELD not in payload:
            raise CacheDecodeError(key, "missing envelope")
        if payload.get(_VERSION_FIELD) != self.version:
            raise CacheDecodeError(
                key, f"schema version {payload.get(_VERSION_FIELD)!r} != {self.version}"
            )
        try:
            return self.adapter.validate_python(payload[_DATA_FIELD])
        except ValidationError as e:
            raise CacheDecodeError(key, f"{e.error_count()} validation error(s)") from e
