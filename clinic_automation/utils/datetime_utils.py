"""Datetime helpers shared by the engine, lifecycle and scheduler."""

from datetime import datetime, timedelta, timezone

DAY = timedelta(days=1)
HOUR = timedelta(hours=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def whole_days_between(start: datetime, end: datetime) -> int:
    """floor((end - start) / 1 day). Negative when end is before start."""
    return (ensure_utc(end) - ensure_utc(start)) // DAY


def whole_hours_between(start: datetime, end: datetime) -> int:
    """floor((end - start) / 1 hour)."""
    return (ensure_utc(end) - ensure_utc(start)) // HOUR


def timestamp_note(text: str, at: datetime) -> str:
    """Format a note line as "[ISO-8601] text"."""
    return f"[{ensure_utc(at).isoformat()}] {text}"
