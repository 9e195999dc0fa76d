"""UTC helpers. Timestamps written to the store and to the cache are aware UTC."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Normalize a timestamp read back from the store.

    SQLite returns naive values; they are taken as UTC. Aware values are
    converted, so cached and freshly loaded rows compare equal.
    """
    if dt is None:
        return None
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)
