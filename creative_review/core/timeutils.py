"""Timezone helpers.

SQLite hands back naive datetimes for ``DateTime(timezone=True)`` columns while
PostgreSQL returns aware ones. Everything written by this service is UTC, so a
naive value read back is treated as UTC.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
