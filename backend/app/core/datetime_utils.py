"""
Datetime helpers shared by the models, the progress service and scripts.
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Return the current time as a timezone-aware UTC datetime.

    This is the only place the progress service reads the wall clock. Tests
    patch it (``app.services.progress_service.utc_now``) to move time forward
    without sleeping.
    """
    return datetime.now(timezone.utc)


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Interpret a naive datetime as UTC.

    SQLite drops tzinfo on the way back out of the database even for
    ``DateTime(timezone=True)`` columns, so every timestamp read from a progress
    record goes through here before it is compared with ``now``.

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def optional_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Like ensure_timezone_aware, but passes None through."""
    if dt is None:
        return None
    return ensure_timezone_aware(dt)
