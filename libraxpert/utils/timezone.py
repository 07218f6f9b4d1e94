from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Get the current timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC.

    SQLite drops tzinfo on ``DateTime(timezone=True)`` columns, so values
    read back from it must be normalised before comparing with ``utcnow()``.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
