"""SQLAlchemy ORM base and shared column helpers.

Timestamps are stored as ISO-8601 strings in UTC, the same way every
table in the project stores them.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialize a datetime for storage."""
    return ensure_utc(value).isoformat()


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp, tolerating plain ISO dates."""
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))


def now_iso() -> str:
    """Current time serialized for storage."""
    return to_iso(utc_now())
