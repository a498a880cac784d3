# mediashelf/core/clock.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    SQLite hands back naive datetimes; treat them as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_millis(value: datetime | None) -> int | None:
    """Epoch milliseconds, the timestamp format clients expect on the wire."""
    if value is None:
        return None
    return int(as_utc(value).timestamp() * 1000)


def from_millis(value: int | float | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
