# src/threadline/db/time.py
"""Clock helpers shared by the models and services.

Timestamps are stored timezone-aware in UTC. Calendar checks such as the
signup age compare against the current UTC day.
"""

from datetime import UTC, date, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def utc_today() -> date:
    return utcnow().date()


def age_on(birth_date: date, day: date) -> int:
    """Whole years elapsed between ``birth_date`` and ``day``."""
    before_birthday = (day.month, day.day) < (birth_date.month, birth_date.day)
    return day.year - birth_date.year - int(before_birthday)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as SQLite returns them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
