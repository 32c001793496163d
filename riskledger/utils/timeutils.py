"""UTC datetime helpers shared by all storage engines.

All instants are stored as ISO-8601 strings with microsecond precision and an
explicit ``+00:00`` offset so that lexical order equals chronological order.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    return ensure_utc(value).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def stamp_record() -> dict[str, str]:
    """Fresh created_at/updated_at bookkeeping stamps."""
    now = to_iso(utcnow())
    return {"created_at": now, "updated_at": now}


def is_valid_range(start: datetime, end: datetime) -> bool:
    return ensure_utc(start) <= ensure_utc(end)
